#!/usr/bin/env python3
"""
Tests for the appointment lifecycle state machine.
"""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from clinic_scheduler.core.errors import InvalidTransitionError, ValidationError
from clinic_scheduler.scheduling.lifecycle import (
    Action,
    allowed_actions,
    can_apply,
    is_report_eligible,
    plan_transition,
)
from clinic_scheduler.schemas.appointment import AppointmentStatus, CancelledBy

NOW = datetime(2025, 6, 10, 13, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestTransitionTable:

    @pytest.mark.parametrize("status,action,target", [
        ("scheduled", Action.confirm, "confirmed"),
        ("scheduled", Action.start, "in-progress"),
        ("confirmed", Action.start, "in-progress"),
        ("in-progress", Action.complete, "completed"),
        ("scheduled", Action.mark_no_show, "no-show"),
        ("confirmed", Action.mark_no_show, "no-show"),
    ])
    def test_allowed_transitions(self, status, action, target):
        plan = plan_transition(status, action, NOW)
        assert plan.changes["status"] == target
        assert plan.expected_status is AppointmentStatus.parse(status)
        assert plan.changes["updated_at"] == NOW

    @pytest.mark.parametrize("status,action", [
        ("confirmed", Action.confirm),
        ("scheduled", Action.complete),
        ("confirmed", Action.complete),
        ("in-progress", Action.mark_no_show),
        ("in-progress", Action.reschedule),
        ("completed", Action.cancel),
        ("cancelled", Action.confirm),
        ("no-show", Action.start),
        ("completed", Action.delete),
    ])
    def test_rejected_transitions(self, status, action):
        with pytest.raises(InvalidTransitionError) as exc:
            plan_transition(status, action, NOW)
        assert exc.value.status == status
        assert exc.value.action == action.value

    @pytest.mark.parametrize("status", ["scheduled", "confirmed", "in-progress"])
    def test_cancel_allowed_from_every_active_status(self, status):
        plan = plan_transition(status, Action.cancel, NOW, reason="patient-request",
                               cancelled_by=CancelledBy.patient)
        assert plan.changes["status"] == "cancelled"
        assert plan.changes["cancelled_at"] == NOW
        assert plan.changes["cancellation_reason"] == "patient-request"
        assert plan.changes["cancelled_by"] == "patient"

    @pytest.mark.parametrize("status", ["completed", "cancelled", "no-show"])
    def test_terminal_statuses_allow_nothing(self, status):
        assert allowed_actions(status) == []

    def test_underscore_aliases_are_accepted(self):
        assert can_apply("in_progress", "complete")
        assert not can_apply("no_show", "confirm")


@pytest.mark.unit
class TestTransitionFields:

    def test_entry_timestamps(self):
        assert plan_transition("scheduled", Action.confirm, NOW).changes["confirmed_at"] == NOW
        assert plan_transition("confirmed", Action.start, NOW).changes["started_at"] == NOW
        assert plan_transition("in-progress", Action.complete, NOW).changes["completed_at"] == NOW

    def test_no_show_has_no_entry_timestamp(self):
        changes = plan_transition("scheduled", Action.mark_no_show, NOW).changes
        assert set(changes) == {"status", "updated_at"}

    def test_complete_with_notes(self):
        changes = plan_transition("in-progress", Action.complete, NOW, session_notes="Worked on /r/").changes
        assert changes["session_notes"] == "Worked on /r/"

    def test_complete_without_notes_leaves_them_untouched(self):
        changes = plan_transition("in-progress", Action.complete, NOW).changes
        assert "session_notes" not in changes

    def test_reschedule_keeps_status(self):
        plan = plan_transition("confirmed", Action.reschedule, NOW)
        assert plan.new_status is None
        assert "status" not in plan.changes

    @pytest.mark.parametrize("reason,cancelled_by,field", [
        (None, "patient", "reason"),
        ("  ", "patient", "reason"),
        ("other", None, "cancelled_by"),
        ("other", "receptionist", "cancelled_by"),
    ])
    def test_cancel_requires_reason_and_actor(self, reason, cancelled_by, field):
        with pytest.raises(ValidationError) as exc:
            plan_transition("scheduled", Action.cancel, NOW, reason=reason, cancelled_by=cancelled_by)
        assert set(exc.value.errors) == {field}

    def test_cancel_missing_everything_reports_both_fields(self):
        with pytest.raises(ValidationError) as exc:
            plan_transition("confirmed", Action.cancel, NOW)
        assert set(exc.value.errors) == {"reason", "cancelled_by"}

    def test_cancel_notes_are_optional(self):
        changes = plan_transition("scheduled", Action.cancel, NOW, reason="other", cancelled_by="system",
                                  cancellation_notes="Clinic closed").changes
        assert changes["cancellation_notes"] == "Clinic closed"


@pytest.mark.unit
def test_report_eligibility():
    assert is_report_eligible(SimpleNamespace(status="completed", completed_at=NOW))
    assert not is_report_eligible(SimpleNamespace(status="in-progress", completed_at=None))
    assert not is_report_eligible(SimpleNamespace(status="cancelled", completed_at=None))

"""
Appointment lifecycle.

    scheduled --confirm--> confirmed
    scheduled|confirmed --start--> in-progress
    in-progress --complete--> completed
    scheduled|confirmed|in-progress --cancel--> cancelled
    scheduled|confirmed --mark_no_show--> no-show
    scheduled|confirmed --reschedule--> (same status, new time)
    scheduled|confirmed|in-progress --delete--> (row removed)

completed, cancelled and no-show are terminal. Planning a transition is
pure: ``plan_transition`` validates the action against the current status
and returns the field changes to write, conditioned on that status.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from clinic_scheduler.core.errors import InvalidTransitionError, ValidationError
from clinic_scheduler.schemas.appointment import AppointmentStatus, CancelledBy

S = AppointmentStatus


class Action(str, Enum):
    confirm = "confirm"
    start = "start"
    complete = "complete"
    cancel = "cancel"
    mark_no_show = "mark_no_show"
    reschedule = "reschedule"
    delete = "delete"


# action -> (allowed source statuses, target status or None when status is unchanged)
TRANSITIONS: Dict[Action, tuple[frozenset, Optional[AppointmentStatus]]] = {
    Action.confirm: (frozenset({S.scheduled}), S.confirmed),
    Action.start: (frozenset({S.scheduled, S.confirmed}), S.in_progress),
    Action.complete: (frozenset({S.in_progress}), S.completed),
    Action.cancel: (frozenset({S.scheduled, S.confirmed, S.in_progress}), S.cancelled),
    Action.mark_no_show: (frozenset({S.scheduled, S.confirmed}), S.no_show),
    Action.reschedule: (frozenset({S.scheduled, S.confirmed}), None),
    Action.delete: (frozenset({S.scheduled, S.confirmed, S.in_progress}), None),
}

# Timestamp written exactly once, on entry into the status
ENTRY_TIMESTAMPS = {
    S.confirmed: "confirmed_at",
    S.in_progress: "started_at",
    S.completed: "completed_at",
    S.cancelled: "cancelled_at",
}


@dataclass(frozen=True)
class TransitionPlan:
    action: Action
    expected_status: AppointmentStatus
    new_status: Optional[AppointmentStatus]
    changes: Dict[str, Any] = field(default_factory=dict)


def can_apply(status: "str | AppointmentStatus", action: "str | Action") -> bool:
    sources, _ = TRANSITIONS[Action(action)]
    return S.parse(status) in sources


def allowed_actions(status: "str | AppointmentStatus") -> list[Action]:
    current = S.parse(status)
    return [action for action, (sources, _) in TRANSITIONS.items() if current in sources]


def plan_transition(
    status: "str | AppointmentStatus",
    action: "str | Action",
    now: datetime,
    *,
    session_notes: Optional[str] = None,
    reason: Optional[str] = None,
    cancelled_by: "str | CancelledBy | None" = None,
    cancellation_notes: Optional[str] = None,
) -> TransitionPlan:
    """Validate ``action`` from ``status`` and compute the fields it writes.

    Raises InvalidTransitionError without touching anything when the action
    is not allowed from the current status, and ValidationError when a
    cancellation lacks its reason or who cancelled.
    """
    current = S.parse(status)
    action = Action(action)
    sources, target = TRANSITIONS[action]
    if current not in sources:
        raise InvalidTransitionError(current.value, action.value)

    changes: Dict[str, Any] = {"updated_at": now}
    if target is not None:
        changes["status"] = target.value
        stamp = ENTRY_TIMESTAMPS.get(target)
        if stamp:
            changes[stamp] = now

    if action is Action.complete and session_notes:
        changes["session_notes"] = session_notes

    if action is Action.cancel:
        errors = {}
        if not reason or not reason.strip():
            errors["reason"] = "A cancellation reason is required."
        try:
            actor = CancelledBy(cancelled_by) if cancelled_by is not None else None
        except ValueError:
            actor = None
        if actor is None:
            errors["cancelled_by"] = "Say who cancelled: therapist, patient or system."
        if errors:
            raise ValidationError(errors)
        changes["cancellation_reason"] = reason.strip()
        changes["cancelled_by"] = actor.value
        if cancellation_notes:
            changes["cancellation_notes"] = cancellation_notes

    return TransitionPlan(action=action, expected_status=current, new_status=target, changes=changes)


def is_report_eligible(appointment) -> bool:
    """Completed sessions are the ones a clinical report can be written for."""
    return S.parse(appointment.status) is S.completed and appointment.completed_at is not None

"""
Scheduling error taxonomy, de-duplicated error logging and the HTTP
mapping for each error kind.
"""
import hashlib
import time
from enum import Enum
from typing import Any, Dict, Iterable, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

logger = structlog.get_logger(__name__)


# ---------- Domain errors ----------

class SchedulingError(Exception):
    """Base class for every error raised by the scheduling core."""


class ValidationError(SchedulingError):
    """One or more booking inputs are missing or malformed.

    ``errors`` maps the form field (``patient``, ``therapist``, ``date``,
    ``time``, ``duration``) to a message so the caller can highlight it.
    """

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class ConflictError(SchedulingError):
    """The requested interval overlaps an active appointment."""

    def __init__(self, conflicting_ids: Iterable[str] = ()):
        self.conflicting_ids = list(conflicting_ids)
        super().__init__("Time slot is no longer available")


class InvalidTransitionError(SchedulingError):
    def __init__(self, status: str, action: str):
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} an appointment that is {status}")


class StaleStateError(SchedulingError):
    """A conditional update found a different status than the caller expected."""

    def __init__(self, appointment_id: str, expected: str, actual: str):
        self.appointment_id = appointment_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Appointment {appointment_id} is {actual}, expected {expected}"
        )


class AppointmentNotFound(SchedulingError):
    def __init__(self, appointment_id: str):
        self.appointment_id = appointment_id
        super().__init__(f"Appointment {appointment_id} not found")


class PatientNotFound(SchedulingError):
    def __init__(self, patient_id: str):
        self.patient_id = patient_id
        super().__init__(f"Patient {patient_id} not found")


class StoreUnavailableError(SchedulingError):
    """The appointment store could not be reached."""


# ---------- Error logging ----------

class ErrorSeverity(Enum):
    LOW = "low"           # validation errors, expected failures
    MEDIUM = "medium"     # invalid transitions, recoverable errors
    HIGH = "high"         # store unavailable, data inconsistency
    CRITICAL = "critical"


class ErrorPattern:
    """Track error patterns to reduce duplicate logging."""

    def __init__(self, error_type: str, message: str, context: Dict[str, Any]):
        self.error_type = error_type
        self.message = message[:100]
        self.endpoint = context.get('endpoint', '')
        self.fingerprint = self._generate_fingerprint()
        self.first_seen = time.time()
        self.last_seen = self.first_seen
        self.count = 1

    def _generate_fingerprint(self) -> str:
        content = f"{self.error_type}:{self.message}:{self.endpoint}"
        return hashlib.md5(content.encode(), usedforsecurity=False).hexdigest()[:8]

    def update(self):
        self.last_seen = time.time()
        self.count += 1


class ErrorAggregator:
    """Aggregate and deduplicate errors so repeated failures log once per window."""

    def __init__(self, log_threshold: int = 10, time_window: int = 300):
        self.log_threshold = log_threshold
        self.time_window = time_window
        self.patterns: Dict[str, ErrorPattern] = {}

    def should_log(self, pattern: ErrorPattern, severity: ErrorSeverity) -> bool:
        if severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
            return True
        if pattern.count == 1:
            return True
        return pattern.count % self.log_threshold == 0

    def log_error(self, error: Exception, context: Optional[Dict[str, Any]] = None,
                  severity: ErrorSeverity = ErrorSeverity.MEDIUM) -> str:
        context = context or {}
        error_type = type(error).__name__
        pattern = ErrorPattern(error_type, str(error), context)
        fingerprint = pattern.fingerprint

        if fingerprint in self.patterns:
            pattern = self.patterns[fingerprint]
            pattern.update()
        else:
            self.patterns[fingerprint] = pattern

        if self.should_log(pattern, severity):
            logger.error(
                "aggregated_error",
                error_hash=fingerprint,
                error_type=error_type,
                error=str(error),
                count=pattern.count,
                severity=severity.value,
                **context
            )
        return fingerprint

    def get_error_summary(self) -> Dict[str, Any]:
        now = time.time()
        recent = [p for p in self.patterns.values() if now - p.last_seen < self.time_window]
        top = sorted(recent, key=lambda p: p.count, reverse=True)[:5]
        return {
            "total_unique_errors": len(recent),
            "total_error_count": sum(p.count for p in recent),
            "top_errors": [
                {"fingerprint": p.fingerprint, "type": p.error_type, "message": p.message, "count": p.count}
                for p in top
            ],
        }


# Global error aggregator instance
error_aggregator = ErrorAggregator()


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None,
              severity: ErrorSeverity = ErrorSeverity.MEDIUM) -> str:
    return error_aggregator.log_error(error, context, severity)


# ---------- HTTP mapping ----------

def register_exception_handlers(app: FastAPI) -> None:
    """Translate scheduling errors into HTTP responses."""

    @app.exception_handler(ValidationError)
    async def _validation(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": {"errors": exc.errors}})

    @app.exception_handler(ConflictError)
    async def _conflict(request: Request, exc: ConflictError):
        return JSONResponse(
            status_code=409,
            content={"detail": {
                "error": "slot_unavailable",
                "message": "That time is no longer available. Please pick another slot.",
                "conflicting_ids": exc.conflicting_ids,
            }},
        )

    @app.exception_handler(StaleStateError)
    async def _stale(request: Request, exc: StaleStateError):
        return JSONResponse(
            status_code=409,
            content={"detail": {
                "error": "stale_state",
                "message": "This appointment changed in the meantime. Refresh and try again.",
                "expected_status": exc.expected,
                "current_status": exc.actual,
            }},
        )

    @app.exception_handler(InvalidTransitionError)
    async def _invalid_transition(request: Request, exc: InvalidTransitionError):
        log_error(exc, {"endpoint": request.url.path, "status": exc.status, "action": exc.action},
                  ErrorSeverity.MEDIUM)
        return JSONResponse(
            status_code=400,
            content={"detail": {"error": "invalid_transition", "message": "This action could not be completed."}},
        )

    @app.exception_handler(AppointmentNotFound)
    @app.exception_handler(PatientNotFound)
    async def _not_found(request: Request, exc: SchedulingError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(StoreUnavailableError)
    @app.exception_handler(OperationalError)
    @app.exception_handler(InterfaceError)
    async def _unavailable(request: Request, exc: Exception):
        log_error(exc, {"endpoint": request.url.path}, ErrorSeverity.HIGH)
        return JSONResponse(
            status_code=503,
            content={"detail": {
                "error": "store_unavailable",
                "message": "The schedule is temporarily unavailable. Please try again.",
            }},
        )

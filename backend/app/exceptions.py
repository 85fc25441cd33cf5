"""
Shop Floor - Error Types

Services raise these; app.main renders them as

    {"error": <error_code>, "message": ..., "details": {...}, "timestamp": ...}

with the HTTP status carried on the class. Nothing here knows about
FastAPI, so services and tests can use them directly:

    raise NotFoundError("Machine", machine_id)
    raise InvalidStateError("Job J-000042 is complete", current_state="complete")
"""
from typing import Any, Dict, Iterable, Optional


class ShopFloorException(Exception):
    """
    Root of every error the API reports deliberately.

    Subclasses set ``error_code`` and ``status_code``; ``details`` holds
    machine-readable context (field names, states, job numbers).
    """

    error_code: str = "SHOPFLOOR_ERROR"
    status_code: int = 500

    def __init__(self, message: str = "Something went wrong on the shop floor", *, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = dict(details or {})
        super().__init__(message)

    def _note(self, **context) -> None:
        """Add the non-empty entries of ``context`` to details."""
        for key, value in context.items():
            if value is not None and value != [] and value != "":
                self.details[key] = value

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.error_code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


# ===================
# 400 - bad input or wrong state
# ===================


class ValidationError(ShopFloorException):
    """A supplied value is missing or out of range."""

    error_code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str = "Invalid input", *, field: Optional[str] = None, value: Any = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self._note(field=field, value=None if value is None else str(value))


class InvalidStateError(ShopFloorException):
    """The record is not in a status that allows the action."""

    error_code = "INVALID_STATE"
    status_code = 400

    def __init__(self, message: str = "Not allowed in the current status", *, current_state: Optional[str] = None,
                 allowed_states: Optional[Iterable[str]] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self._note(
            current_state=current_state,
            allowed_states=list(allowed_states) if allowed_states is not None else None,
        )


# ===================
# 401 / 403 - caller identity and role
# ===================


class AuthenticationError(ShopFloorException):
    """The request carries no usable caller identity."""

    error_code = "AUTHENTICATION_ERROR"
    status_code = 401

    def __init__(self, message: str = "Caller could not be identified", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class PermissionDeniedError(ShopFloorException):
    """The caller's role does not allow the action (compliance and TCO sign-off)."""

    error_code = "PERMISSION_DENIED"
    status_code = 403

    def __init__(self, message: str = "Your role cannot perform this action", *, action: Optional[str] = None,
                 resource: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self._note(action=action, resource=resource)


# ===================
# 404
# ===================


class NotFoundError(ShopFloorException):
    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str = "Record", resource_id: Any = None, *, details: Optional[Dict[str, Any]] = None):
        label = resource if resource_id is None else f"{resource} {resource_id}"
        super().__init__(f"{label} not found", details=details)
        self._note(resource=resource, resource_id=None if resource_id is None else str(resource_id))


# ===================
# 409 - competing work
# ===================


class ConflictError(ShopFloorException):
    error_code = "CONFLICT"
    status_code = 409

    def __init__(self, message: str = "Conflicts with existing work", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class ScheduleConflictError(ConflictError):
    """
    A job slot overlaps other work on the machine.

    Repeating the schedule request with a resolution (return_to_queue or
    move_next) displaces ``conflicting_jobs`` instead.
    """

    error_code = "SCHEDULE_CONFLICT"

    def __init__(self, machine_id: int, conflicting_job_numbers: Iterable[str], *,
                 details: Optional[Dict[str, Any]] = None):
        job_numbers = list(conflicting_job_numbers)
        super().__init__(
            f"Machine {machine_id} is already booked for {', '.join(job_numbers)}",
            details=details,
        )
        self.details["machine_id"] = machine_id
        self.details["conflicting_jobs"] = job_numbers


# ===================
# 422 - workflow rules
# ===================


class BusinessRuleError(ShopFloorException):
    """
    The request is well formed but the workflow forbids it, e.g. completing
    an assembly while some of its jobs are still on machines.
    """

    error_code = "BUSINESS_RULE_ERROR"
    status_code = 422

    def __init__(self, message: str = "Workflow rule violated", *, rule: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self._note(rule=rule)


# ===================
# 500 - the store let us down
# ===================


class StoreWriteError(ShopFloorException):
    """An UPDATE that had to hit exactly one row hit none."""

    error_code = "STORE_WRITE_ERROR"
    status_code = 500

    def __init__(self, resource: str, resource_id: Any = None, message: Optional[str] = None, *,
                 details: Optional[Dict[str, Any]] = None):
        if message is None:
            target = resource if resource_id is None else f"{resource} {resource_id}"
            message = f"{target} was not saved; the row was missing or write-protected"
        super().__init__(message, details=details)
        self._note(resource=resource, resource_id=None if resource_id is None else str(resource_id))


class DatabaseError(ShopFloorException):
    """Any other SQLAlchemy failure surfacing from a request."""

    error_code = "DATABASE_ERROR"
    status_code = 500

    def __init__(self, message: str = "The database could not complete the request", *,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)

"""Error taxonomy for the dispute engine.

Every failure an operation can report is a DisputeError subclass with a
stable code and the HTTP status the API maps it to.
"""


class DisputeError(Exception):
    """Base class. Carries a stable error code plus a human-readable message."""

    code = "dispute_error"
    http_status = 400

    def __init__(self, message: str = "", details: dict | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details or {}

    def to_dict(self) -> dict:
        result = {"error": self.code, "message": self.message}
        if self.details:
            result["details"] = self.details
        return result


class Unauthenticated(DisputeError):
    """No caller identity."""
    code = "unauthenticated"
    http_status = 401


class Forbidden(DisputeError):
    """Caller known, but the guard rejected them (wrong party, role, or conflict of interest)."""
    code = "forbidden"
    http_status = 403


class NotFound(DisputeError):
    code = "not_found"
    http_status = 404


class InvalidState(DisputeError):
    """Action not permitted from the dispute's current status."""
    code = "invalid_state"
    http_status = 409


class DeadlineExpired(DisputeError):
    """A response, mediation, appeal or sprint window has closed. Not retryable."""
    code = "deadline_expired"
    http_status = 409


class Conflict(DisputeError):
    """Compare-and-swap lost a race, or the action was already applied."""
    code = "conflict"
    http_status = 409


class ValidationError(DisputeError):
    code = "validation_error"
    http_status = 400


class DependencyFailure(DisputeError):
    """A collaborator write needed for correctness failed."""
    code = "dependency_failure"
    http_status = 502

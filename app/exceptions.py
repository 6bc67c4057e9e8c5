"""
Domain errors for the placement API.

Every error carries an HTTP status and a stable ``code`` string so clients
can branch on the failure without parsing the message. The exception
handler in ``app.api.responses`` renders them as::

    {"success": false, "error": "...", "code": "...", "timestamp": "...", "requestId": "..."}
"""

from typing import List, Optional


class PlacementError(Exception):
    """Base class for errors reported to API clients."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code

    def extra(self) -> dict:
        """Additional fields merged into the error payload."""
        return {}


class ValidationError(PlacementError):
    """Malformed input: bad enum, out-of-range number, missing field."""
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(PlacementError):
    status_code = 401
    code = "UNAUTHORIZED"


class PermissionDeniedError(PlacementError):
    status_code = 403
    code = "INSUFFICIENT_PERMISSIONS"


class NotFoundError(PlacementError):
    """Entity absent or outside the caller's account."""
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(PlacementError):
    """Duplicate registration or a lost concurrent update."""
    status_code = 409
    code = "CONFLICT"


class StateError(PlacementError):
    """Operation not legal for the drive's current status."""
    status_code = 400
    code = "INVALID_STATE"


class EligibilityError(PlacementError):
    """Student fails one or more drive criteria. Carries every reason."""
    status_code = 400
    code = "NOT_ELIGIBLE"

    def __init__(self, reasons: List[str]):
        self.reasons = list(reasons)
        super().__init__(
            f"Student not eligible for this drive: {'; '.join(self.reasons)}"
        )

    def extra(self) -> dict:
        return {"reasons": self.reasons}

class InternalError(PlacementError):
    """Storage failure or unexpected exception. Details stay in the log."""
    status_code = 500
    code = "INTERNAL_ERROR"

from typing import Optional, Any


class QuluubError(Exception):
    """
    Base exception for the Quluub core.
    `code` is the stable error kind callers branch on.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ValidationError(QuluubError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION", status_code=422, details=details)


class ResourceNotFoundError(QuluubError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class DuplicateRelationshipError(QuluubError):
    """
    Raised when a relationship already exists for the pair, in either direction.
    `current_status` reports the existing relationship's status.
    """
    def __init__(self, current_status: str, message: Optional[str] = None):
        self.current_status = current_status
        super().__init__(
            message or f"A relationship already exists for this pair ({current_status})",
            code="DUPLICATE_RELATIONSHIP",
            status_code=409,
            details={"status": current_status},
        )


class InvalidStateTransitionError(QuluubError):
    def __init__(self, message: str = "Invalid state transition", details: Optional[Any] = None):
        super().__init__(message, code="INVALID_STATE_TRANSITION", status_code=409, details=details)


class NotAuthorizedError(QuluubError):
    def __init__(self, message: str = "Not authorized", details: Optional[Any] = None):
        super().__init__(message, code="NOT_AUTHORIZED", status_code=403, details=details)


class PlanExceededError(QuluubError):
    """
    Raised when the sender's plan allowance or per-message word limit is reached.
    """
    def __init__(self, message: str = "Plan exceeded", details: Optional[Any] = None):
        super().__init__(message, code="PLAN_EXCEEDED", status_code=422, details=details)


class FeatureNotInPlanError(QuluubError):
    def __init__(self, message: str = "Feature not available on this plan", details: Optional[Any] = None):
        super().__init__(message, code="FEATURE_NOT_IN_PLAN", status_code=403, details=details)


class WaliRequiredError(QuluubError):
    def __init__(self, message: str = "Wali details required to chat", details: Optional[Any] = None):
        super().__init__(message, code="WALI_REQUIRED", status_code=422, details=details)


class WaliEmailRequiredError(QuluubError):
    def __init__(self, message: str = "Wali email required to chat", details: Optional[Any] = None):
        super().__init__(message, code="WALI_EMAIL_REQUIRED", status_code=422, details=details)


class MalformedWaliJsonError(QuluubError):
    def __init__(self, message: str = "Wali details could not be parsed", details: Optional[Any] = None):
        super().__init__(message, code="MALFORMED_WALI_JSON", status_code=422, details=details)


class NotMatchedError(QuluubError):
    def __init__(self, message: str = "You can only message matched connections", details: Optional[Any] = None):
        super().__init__(message, code="NOT_MATCHED", status_code=403, details=details)


class AbsentWaliDetailsError(QuluubError):
    def __init__(self, message: str = "Wali details not found", details: Optional[Any] = None):
        super().__init__(message, code="ABSENT_WALI_DETAILS", status_code=400, details=details)


class PurgeFailedError(QuluubError):
    """
    Raised when account deletion aborted. The account is left fully intact
    and the operation can be retried.
    """
    def __init__(self, message: str = "Account deletion failed; nothing was removed", details: Optional[Any] = None):
        super().__init__(message, code="PURGE_FAILED", status_code=503, details=details)

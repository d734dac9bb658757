"""
Error taxonomy for the AlumniConnect client core.

Every failure that reaches a UI surface is one of these. They carry a
user-presentable ``message`` and a stable ``code``.

Usage:
    from alumni_connect.core.exceptions import UniquenessError

    try:
        await register_for_event(store, event_id)
    except UniquenessError as e:
        show_message(e.message)
"""

from typing import Any, Dict, Optional


class AlumniConnectError(Exception):
    """Base exception for all AlumniConnect errors"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthError(AlumniConnectError):
    """Bad credentials, duplicate email or a missing sign-in"""

    def __init__(self, message: str = "Authentication failed", code: str = "AUTH_FAILED"):
        super().__init__(message, code=code)


class SessionExpiredError(AuthError):
    """The stored session token was rejected by the data service"""

    def __init__(self, message: str = "Session expired, please login again"):
        super().__init__(message, code="SESSION_EXPIRED")


class PermissionDeniedError(AuthError):
    """The current profile may not perform this action"""

    def __init__(self, message: str = "You are not allowed to do that"):
        super().__init__(message, code="PERMISSION_DENIED")


# ============================================
# Input & Data Errors
# ============================================

class ValidationError(AlumniConnectError):
    """Input rejected before any remote call was made"""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)
        self.field = field


class ProfileMissingError(AlumniConnectError):
    """An identity exists but has no profile row"""

    def __init__(self, user_id: str):
        super().__init__(
            "No profile found for this account",
            code="PROFILE_MISSING",
            details={"user_id": user_id},
        )
        self.user_id = user_id


class UniquenessError(AlumniConnectError):
    """Duplicate registration, application or connection request"""

    def __init__(self, message: str = "Already done", table: Optional[str] = None):
        details = {"table": table} if table else {}
        super().__init__(message, code="DUPLICATE", details=details)
        self.table = table


class RemoteServiceError(AlumniConnectError):
    """Network failure or unexpected data service response"""

    def __init__(self, message: str = "Data service request failed", status_code: Optional[int] = None):
        details = {"status_code": status_code} if status_code is not None else {}
        super().__init__(message, code="REMOTE_SERVICE_ERROR", details=details)
        self.status_code = status_code

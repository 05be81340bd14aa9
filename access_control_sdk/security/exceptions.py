"""
Access Control Exceptions for the Access Control SDK.
This module defines the exception hierarchy for the access-control engine.
Evaluators report decisions as result objects; these exceptions are raised
only when rule data or configuration cannot be loaded, or by the FastAPI
integration when it converts a denial into an HTTP error.
"""
from typing import Optional, Dict, Any, List
from ..exceptions import SecurityError


class AccessControlError(SecurityError):
    """
    Base exception for access-control features.
    Carries an error code, structured details and the underlying cause.
    """
    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message, details)
        self.error_code = error_code or self.__class__.__name__
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": str(self),
            "details": self.details,
            "cause": str(self.cause) if self.cause else None
        }


class RoleStoreError(AccessControlError):
    """
    Raised when role permission templates cannot be loaded.
    """
    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.source = source
        if source:
            self.details["source"] = source


class RuleDataError(AccessControlError):
    """
    Raised when rule data is structurally invalid at load time.
    """
    def __init__(
        self,
        message: str,
        rule_type: Optional[str] = None,
        validation_errors: Optional[List[Any]] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.rule_type = rule_type
        self.validation_errors = validation_errors or []
        if rule_type:
            self.details["rule_type"] = rule_type
        if validation_errors:
            self.details["validation_errors"] = validation_errors


class AccessDeniedError(AccessControlError):
    """Raised by integrations that must turn a denial into an error."""
    def __init__(
        self,
        message: str = None,
        user_id: Optional[str] = None,
        reasons: Optional[List[str]] = None,
        **kwargs
    ):
        if message is None and reasons:
            message = "; ".join(reasons)
        elif message is None:
            message = "Access denied"
        super().__init__(message, **kwargs)
        self.user_id = user_id
        self.reasons = reasons or []
        if user_id:
            self.details["user_id"] = user_id
        if reasons:
            self.details["reasons"] = reasons


class SecurityLoggingError(AccessControlError):
    """Security logging related errors."""
    pass


class AuditTrailError(SecurityLoggingError):
    """Audit trail specific errors."""
    pass

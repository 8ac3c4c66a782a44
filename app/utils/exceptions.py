"""
Custom Exception Classes for SkillBoard API
"""
from typing import Dict, Any
from fastapi import HTTPException
from pymongo.errors import PyMongoError


class SkillBoardBaseException(Exception):
    """Base exception for SkillBoard API"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ValidationError(SkillBoardBaseException):
    """Raised when an argument has the wrong shape or is out of range"""

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if field:
            details['field'] = field
        if value is not None:
            details['invalid_value'] = str(value)
        kwargs.setdefault('error_code', "VALIDATION_ERROR")
        super().__init__(message, details=details, **kwargs)


class SelfEndorsementError(ValidationError):
    """Raised when a user tries to endorse their own skill"""

    def __init__(self, message: str = "Cannot endorse yourself", user_id: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if user_id:
            details['user_id'] = user_id
        super().__init__(message, error_code="SELF_ENDORSEMENT", details=details, **kwargs)


class PreconditionFailedError(SkillBoardBaseException):
    """Raised when the target state does not allow the operation"""

    def __init__(self, message: str, rule: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if rule:
            details['rule'] = rule
        super().__init__(message, error_code="PRECONDITION_FAILED", details=details, **kwargs)


class NotFoundError(SkillBoardBaseException):
    """Raised when a referenced entity does not exist"""

    def __init__(self, message: str, resource: str = None, resource_id: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if resource:
            details['resource'] = resource
        if resource_id:
            details['resource_id'] = resource_id
        super().__init__(message, error_code="NOT_FOUND", details=details, **kwargs)


class ConflictError(SkillBoardBaseException):
    """Raised when a uniqueness constraint would be violated"""

    def __init__(self, message: str, resource: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if resource:
            details['resource'] = resource
        super().__init__(message, error_code="CONFLICT", details=details, **kwargs)


class DatabaseError(SkillBoardBaseException):
    """Raised when database operations fail"""

    def __init__(self, message: str, operation: str = None, collection: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if operation:
            details['operation'] = operation
        if collection:
            details['collection'] = collection
        super().__init__(message, error_code="DATABASE_ERROR", details=details, **kwargs)


class AuthenticationError(SkillBoardBaseException):
    """Raised when the request carries no principal"""

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(message, error_code="AUTHENTICATION_ERROR", **kwargs)


class AuthorizationError(SkillBoardBaseException):
    """Raised when the principal does not own the target resource"""

    def __init__(self, message: str = "Insufficient permissions", resource: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if resource:
            details['resource'] = resource
        super().__init__(message, error_code="AUTHORIZATION_ERROR", details=details, **kwargs)


STATUS_CODE_MAPPING = {
    ValidationError: 400,
    SelfEndorsementError: 400,
    PreconditionFailedError: 400,
    AuthenticationError: 401,
    AuthorizationError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    DatabaseError: 500,
}


# HTTP Exception Mapping
def map_to_http_exception(exc: SkillBoardBaseException) -> HTTPException:
    """Map custom exceptions to HTTP exceptions"""
    status_code = next(
        (STATUS_CODE_MAPPING[cls] for cls in type(exc).__mro__ if cls in STATUS_CODE_MAPPING),
        500
    )

    detail = {
        "error": exc.to_dict(),
        "message": exc.message
    }

    return HTTPException(status_code=status_code, detail=detail)


# Exception context manager for better error handling
class ExceptionContext:
    """Context manager that logs failures and wraps store errors"""

    def __init__(self, operation: str, logger=None, collection: str = None, **context):
        self.operation = operation
        self.logger = logger
        self.collection = collection
        self.context = context

    def __enter__(self):
        if self.logger:
            self.logger.debug(f"Starting operation: {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            if self.logger:
                self.logger.debug(f"Operation completed: {self.operation}", extra=self.context)
            return False

        if self.logger:
            self.logger.error(
                f"Operation failed: {self.operation} - {exc_val}",
                extra={**self.context, "exception_type": exc_type.__name__}
            )

        # Re-raise custom exceptions as-is
        if isinstance(exc_val, SkillBoardBaseException):
            return False

        if isinstance(exc_val, PyMongoError):
            raise DatabaseError(
                f"Database error in {self.operation}: {str(exc_val)}",
                operation=self.operation,
                collection=self.collection,
                details=dict(self.context),
                cause=exc_val
            ) from exc_val

        return False

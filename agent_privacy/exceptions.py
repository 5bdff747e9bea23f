"""
Custom Exceptions for the agent privacy engine

Provides a unified exception hierarchy for consent validation,
record lookup and lifecycle conflicts. Every error is terminal
for the call that raised it; nothing here is retried internally.
"""

from typing import Optional, Dict, Any

from .constants import ErrorCodes


class PrivacyError(Exception):
    """
    Base exception for all privacy engine errors.
    
    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional context about the error
    """
    
    def __init__(
        self,
        message: str,
        error_code: str = ErrorCodes.PRIVACY_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses"""
        result: Dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(PrivacyError):
    """Raised when a request is malformed or incomplete"""
    
    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        if field:
            details["field"] = field
        self.field = field
        super().__init__(message, ErrorCodes.VALIDATION_ERROR, details)


class NotFoundError(PrivacyError):
    """Raised when a referenced consent record does not exist"""
    
    def __init__(self, consent_id: str):
        self.consent_id = consent_id
        super().__init__(
            message=f"Consent record not found: {consent_id}",
            error_code=ErrorCodes.NOT_FOUND,
            details={"consent_id": consent_id}
        )


class ConflictError(PrivacyError):
    """Raised when an operation is invalid for the record's current state"""
    
    def __init__(
        self,
        message: str,
        consent_id: Optional[str] = None,
        status: Optional[str] = None
    ):
        details: Dict[str, Any] = {}
        if consent_id:
            details["consent_id"] = consent_id
        if status:
            details["status"] = status
        self.consent_id = consent_id
        self.status = status
        super().__init__(message, ErrorCodes.CONFLICT, details)

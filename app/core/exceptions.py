"""
Error taxonomy for the submission lifecycle core.

- ValidationError:       malformed input (blank feedback, weights not summing to 100)
- BusinessRuleError:     illegal transition or rule violation, carries a stable code
- ConflictError:         duplicate compute, already released, duplicate names
- ResourceNotFoundError: missing entity

The API layer maps these to 422 / 400 / 409 / 404. None of them are retried.
"""

from typing import Any, Dict, Optional


class FypError(Exception):
    """Base exception for all service errors"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(FypError):
    """Input validation failed"""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class BusinessRuleError(FypError):
    """A business rule or state transition guard was violated"""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, details=details)


class ConflictError(FypError):
    """The operation was already performed or collides with existing state"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFLICT", details=details)


class ResourceNotFoundError(FypError):
    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{_snake_upper(resource_type)}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


def _snake_upper(name: str) -> str:
    out = []
    for i, ch in enumerate(name):
        if ch.isupper() and i > 0 and not name[i - 1].isupper():
            out.append("_")
        out.append(ch.upper())
    return "".join(out)

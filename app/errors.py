from dataclasses import dataclass
from typing import Any, List, Optional


@dataclass(frozen=True)
class FieldError:
    field: str
    rule: str  # required | type | range | enum | length
    message: str


class ProductsAPIError(Exception):
    """Base class for failures that carry their own HTTP status."""

    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailure(ProductsAPIError):
    status_code = 400
    default_message = "Validation Error"

    def __init__(self, errors: List[FieldError]):
        self.errors = list(errors)
        super().__init__(", ".join(e.message for e in self.errors) or None)

    @property
    def fields(self) -> List[str]:
        return [e.field for e in self.errors]


class NotFound(ProductsAPIError):
    status_code = 404
    default_message = "Not found"


class InvalidIdentifier(ProductsAPIError):
    status_code = 400

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value}")


class ConflictFailure(ProductsAPIError):
    status_code = 409

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(f"Duplicate key {field}: {value}")


class AuthFailure(ProductsAPIError):
    """Reserved: no route is protected yet."""

    status_code = 401

    def __init__(self, expired: bool = False):
        self.expired = expired
        super().__init__("jwt expired" if expired else "invalid token")


class UploadFailure(ProductsAPIError):
    """Reserved: no upload route exists yet."""

    status_code = 400
    FILE_SIZE = "LIMIT_FILE_SIZE"
    FILE_COUNT = "LIMIT_FILE_COUNT"

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        super().__init__(message or code)


class InternalFailure(ProductsAPIError):
    status_code = 500


class ConfigurationError(RuntimeError):
    """Raised at startup when required settings are missing."""

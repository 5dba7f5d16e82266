from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class ListingsException(Exception):
    """Base exception for the listings service."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class StorageError(ListingsException):
    """Raised when a query against the listing store fails or times out."""
    pass


class PageNotFoundError(ListingsException):
    """Raised when the requested page lies beyond the last page of results."""

    def __init__(self, page: int, total_pages: int):
        super().__init__(
            f"Page {page} is out of range (total pages: {total_pages})",
            error_code="PAGE_NOT_FOUND",
            details={"page": page, "total_pages": total_pages},
        )
        self.page = page
        self.total_pages = total_pages


class ResourceNotFoundError(ListingsException):
    """Exception for missing properties, communities or lookup rows."""
    pass


class CacheError(ListingsException):
    """Exception for cache backend errors."""
    pass


class ValidationException(ListingsException):
    """Exception for invalid write-path input."""
    pass


class ConfigurationException(ListingsException):
    """Exception for unusable settings at startup."""
    pass


def create_http_exception(
    status_code: int,
    message: str,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> HTTPException:
    """HTTPException whose detail is ``{message, error_code, details}``."""
    return HTTPException(
        status_code=status_code,
        detail={
            "message": message,
            "error_code": error_code,
            "details": details or {},
        }
    )


def http_exception_from(exc: ListingsException, status_code: int) -> HTTPException:
    """Expose a domain exception with its own code and details."""
    return create_http_exception(status_code, exc.message, exc.error_code, exc.details)


def not_found_exception(message: str = "Resource not found") -> HTTPException:
    return create_http_exception(status.HTTP_404_NOT_FOUND, message, "RESOURCE_NOT_FOUND")


def bad_request_exception(message: str = "Bad request", details: Optional[Dict[str, Any]] = None) -> HTTPException:
    return create_http_exception(status.HTTP_400_BAD_REQUEST, message, "BAD_REQUEST", details)


def unauthorized_exception(message: str = "Invalid API key") -> HTTPException:
    return create_http_exception(status.HTTP_401_UNAUTHORIZED, message, "UNAUTHORIZED")


def internal_server_exception(message: str = "Internal server error") -> HTTPException:
    return create_http_exception(status.HTTP_500_INTERNAL_SERVER_ERROR, message, "INTERNAL_SERVER_ERROR")

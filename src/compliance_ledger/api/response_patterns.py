"""API response patterns following Result[T,E] + HTTP semantics."""

from typing import Any, TypeVar

from beartype import beartype
from fastapi import Response
from pydantic import Field

from ..core.result_types import Result
from ..models.base import BaseModelConfig

T = TypeVar("T")


class ErrorResponse(BaseModelConfig):
    """Standardized error response for business logic failures."""

    success: bool = Field(default=False, description="Always false for error responses")
    error: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(default=None, description="Machine-readable error code")
    details: dict[str, Any] | None = Field(default=None, description="Additional error context")


_STATUS_PHRASES: tuple[tuple[int, tuple[str, ...]], ...] = (
    (404, ("not found", "does not exist")),
    (400, ("validation", "invalid", "malformed", "required")),
    (409, ("already exists", "conflict", "duplicate", "concurrent modification")),
    (503, ("unavailable",)),
)

_ERROR_CODES: dict[int, str] = {
    404: "not_found",
    400: "validation_error",
    409: "conflict",
    503: "store_unavailable",
    422: "unprocessable",
}


class APIResponseHandler:
    """Maps service results onto HTTP responses."""

    @staticmethod
    @beartype
    def map_error_to_status(error: str) -> int:
        """Map business logic errors to HTTP status codes; 422 when unrecognised."""
        error_lower = error.lower()
        for status_code, phrases in _STATUS_PHRASES:
            if any(phrase in error_lower for phrase in phrases):
                return status_code
        return 422

    @staticmethod
    @beartype
    def from_result(
        result: Result[T, str],
        response: Response,
        success_status: int = 200,
    ) -> Any:
        """Unwrap an ``Ok`` or turn an ``Err`` into an :class:`ErrorResponse`."""
        if result.is_err():
            error_msg = result.unwrap_err()
            status_code = APIResponseHandler.map_error_to_status(error_msg)
            response.status_code = status_code
            return ErrorResponse(error=error_msg, error_code=_ERROR_CODES[status_code])

        response.status_code = success_status
        return result.unwrap()


@beartype
def handle_result(
    result: Result[T, str],
    response: Response,
    success_status: int = 200,
) -> Any:
    """Convenience function for standard result handling."""
    return APIResponseHandler.from_result(result, response, success_status)

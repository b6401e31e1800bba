"""Common schemas used across the API."""

from typing import Any

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Structured error detail for unexpected failures."""

    code: str
    message: str
    detail: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Error envelope returned by the global exception handler.

    Rating endpoints answer expected failures with { "success": false, "message" } instead.
    """

    success: bool = False
    error: ErrorDetail

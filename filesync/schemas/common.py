"""Common schemas used across multiple endpoints."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Response model for errors."""
    status: bool = False
    message: str
    code: str


class MessageResponse(BaseModel):
    """Response model for operations that only report an outcome."""
    status: bool = True
    message: str

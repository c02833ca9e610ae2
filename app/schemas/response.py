from pydantic import BaseModel, Field
from typing import Optional, Any

from utils.time_utils import format_timestamp, utcnow


def _timestamp() -> str:
    return format_timestamp(utcnow())


class ErrorResponse(BaseModel):
    """
    Standard error response structure.
    """
    success: bool = False
    error: str
    code: str
    details: Optional[Any] = None
    timestamp: str = Field(default_factory=_timestamp)


class ApiResponse(BaseModel):
    """
    Standard success envelope.
    """
    success: bool = True
    message: str
    data: Optional[Any] = None
    timestamp: str = Field(default_factory=_timestamp)


def format_api_response(message: str, data: Optional[Any] = None) -> dict:
    """
    Builds the success envelope, dropping an empty data section.
    """
    return ApiResponse(message=message, data=data).model_dump(exclude_none=True)

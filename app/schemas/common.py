"""
Response envelope shared by every endpoint:
{"success", "message", "data", "errors"}
"""
from typing import Any, List, Optional
from pydantic import BaseModel


class ApiResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None
    errors: Optional[List[str]] = None


def envelope(message: str, data: Any = None) -> dict:
    """Successful response body"""
    return ApiResponse(success=True, message=message, data=data, errors=None).model_dump()


def error_envelope(message: str, errors: Optional[List[str]] = None) -> dict:
    """Failed response body; `errors` is never an empty list"""
    return ApiResponse(
        success=False,
        message=message,
        data=None,
        errors=list(errors) if errors else [message],
    ).model_dump()

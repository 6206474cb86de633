"""Standard response envelope shared by every endpoint.

Every body carries ``success``, ``error``, ``message`` and ``data`` so clients
never have to infer partial success from the payload shape.
"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    error: bool = False
    message: str = "Success"
    data: Optional[T] = None


def success_response(message: str = "Success", data: Any = None) -> dict[str, Any]:
    return {"success": True, "error": False, "message": message, "data": data}


def fail_response(
    message: str = "Request failed", data: Any = None, code: Optional[str] = None
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": False,
        "error": False,
        "message": message,
        "data": data,
    }
    if code:
        body["code"] = code
    return body


def error_response(message: str = "Internal Server Error") -> dict[str, Any]:
    return {
        "success": False,
        "error": True,
        "code": "INTERNAL_ERROR",
        "message": message,
        "data": None,
    }

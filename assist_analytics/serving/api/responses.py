"""
Response envelope shared by the dashboard and report endpoints.
"""

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel


def format_response(success: bool, data: Any = None, message: str = "", errors: Optional[Any] = None) -> dict:
    """``{success, data, message, errors}`` with models dumped by alias."""
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    elif isinstance(data, list):
        data = [item.model_dump(by_alias=True) if isinstance(item, BaseModel) else item for item in data]
    return {
        "success": success,
        "data": jsonable_encoder(data),
        "message": message,
        "errors": errors,
    }


def error_response(status_code: int, message: str, errors: Optional[Any] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=format_response(False, None, message, errors))

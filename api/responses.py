"""
api/responses.py -- Builders for the uniform {success, error?, data?} envelope.

Route handlers and exception handlers both go through these two functions so
every response, success or failure, has the same top-level shape.
"""

from __future__ import annotations

from typing import Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api.models import ApiResponse


def success(
    data: Optional[BaseModel] = None,
    status_code: int = 200,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    payload = data.model_dump(by_alias=True) if data is not None else None
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(success=True, data=payload).model_dump(exclude_none=True),
        headers=headers,
    )


def failure(message: str, status_code: int, headers: Optional[dict[str, str]] = None) -> JSONResponse:
    """Error envelope. message must be short and safe to show -- never an exception string."""
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(success=False, error=message).model_dump(exclude_none=True),
        headers=headers,
    )

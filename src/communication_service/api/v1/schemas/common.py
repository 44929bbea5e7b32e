from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope shared by every REST endpoint."""

    success: bool = True
    data: T


class PageResponse(BaseModel, Generic[T]):
    items: list[T]  # type: ignore[type-var]
    total: int
    page: int
    total_pages: int


class CountResponse(BaseModel):
    count: int


class ErrorBody(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorBody

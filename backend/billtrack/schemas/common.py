"""Common schemas used across the application."""

from typing import Generic, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated response wrapper.

    Usage:
        response_model=PaginatedResponse[ClientOut]

    Returns:
        {
            "items": [...],
            "total": 150,
            "page_index": 1,
            "page_size": 10
        }
    """
    items: list[T]
    total: int
    page_index: int
    page_size: int

"""Common Pydantic schemas shared across the API."""

from pydantic import BaseModel, Field

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 100


class PaginationParams(BaseModel):
    """Pagination query parameters."""

    page: int = Field(default=1, ge=1, description="Page number (1-indexed)")
    limit: int = Field(
        default=DEFAULT_PAGE_SIZE,
        ge=1,
        le=MAX_PAGE_SIZE,
        description="Items per page",
    )


class PaginationMeta(BaseModel):
    """Pagination envelope returned with every list."""

    page: int = Field(ge=1, description="Current page number")
    limit: int = Field(ge=1, description="Items per page")
    total: int = Field(ge=0, description="Total number of items across all pages")
    total_pages: int = Field(ge=0, description="Total number of pages")
    has_next: bool
    has_prev: bool


class MessageResponse(BaseModel):
    message: str

"""Common schema utilities and base classes."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


T = TypeVar("T")


class PaginatedResponse(BaseSchema, Generic[T]):
    """Paginated response wrapper."""

    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int


class MessageResponse(BaseSchema):
    """Simple message response."""

    message: str


class BulkItemResult(BaseSchema):
    """Outcome of one item in a bulk operation."""

    id: str
    success: bool
    error: str | None = None


class BulkOperationResponse(BaseSchema):
    """Per-item results of a bulk operation."""

    total: int
    successful: int
    failed: int
    results: list[BulkItemResult]

    @classmethod
    def from_results(cls, results: list[BulkItemResult]) -> "BulkOperationResponse":
        successful = sum(1 for r in results if r.success)
        return cls(
            total=len(results),
            successful=successful,
            failed=len(results) - successful,
            results=results,
        )

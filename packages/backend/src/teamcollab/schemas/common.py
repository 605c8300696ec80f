"""Shared schema pieces: UTC datetimes and pagination blocks."""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel

from teamcollab.db.models import as_utc

# SQLite returns naive datetimes; every timestamp leaves the API as UTC.
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class OffsetPagination(BaseModel):
    """limit/offset lists (todos, tasks)."""
    total: int
    limit: int
    offset: int
    has_more: bool


class PagePagination(BaseModel):
    """page/limit lists (chat history and search)."""
    current_page: int
    total_pages: int
    total_count: int
    has_next: bool
    has_prev: bool


class BulkStatusResult(BaseModel):
    message: str
    updated_count: int

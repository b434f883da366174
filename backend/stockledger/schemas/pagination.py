"""Pagination schemas."""

import math

from pydantic import BaseModel, Field


def page_count(total: int, limit: int) -> int:
    """Number of pages needed to show ``total`` items ``limit`` at a time."""
    if limit <= 0:
        return 0
    return math.ceil(total / limit)


class PageMeta(BaseModel):
    """Page-numbered listing metadata shared by every list envelope.

    List responses subclass this and add their own keyed item list, e.g.
    ``{"stock_levels": [...], "total": 42, "page": 1, "limit": 10, "pages": 5}``.
    """

    total: int = Field(description="Total number of items matching the query")
    page: int = Field(description="1-based page number")
    limit: int = Field(description="Maximum items per page")
    pages: int = Field(description="ceil(total / limit)")

    @staticmethod
    def fields_for(total: int, page: int, limit: int) -> dict:
        return {"total": total, "page": page, "limit": limit, "pages": page_count(total, limit)}

"""Query Gateway - normalizes caller-supplied listing parameters.

Turns raw page/limit/sort/filter values from the HTTP layer into the
query objects the ledger store understands. Out-of-range pagination is
corrected rather than rejected:

- page below 1 becomes 1
- limit outside [1, max_page_limit] falls back to default_page_limit
- unknown sort fields fall back to the listing's default field
- sort order other than "asc" becomes "desc"

Filters that cannot be satisfied (unknown movement type, inverted date
range) are rejected with an InvalidInputError subclass.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Sequence

from stockledger.core.config import settings
from stockledger.core.exceptions import InvalidInputError
from stockledger.models.stock import MovementType
from stockledger.services.stock_validator import parse_movement_type

LEVEL_SORT_FIELDS = (
    "product_name",
    "product_sku",
    "warehouse_name",
    "quantity",
    "available_quantity",
    "last_updated",
)
DEFAULT_LEVEL_SORT = "last_updated"

MOVEMENT_SORT_FIELDS = ("created_at", "processed_date", "quantity", "movement_type")
DEFAULT_MOVEMENT_SORT = "created_at"


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class SortSpec:
    field: str
    descending: bool = True


@dataclass(frozen=True)
class StockLevelQuery:
    product_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    product_name: Optional[str] = None
    product_sku: Optional[str] = None
    page: PageRequest = field(default_factory=PageRequest)
    sort: SortSpec = field(default_factory=lambda: SortSpec(DEFAULT_LEVEL_SORT))


@dataclass(frozen=True)
class StockMovementQuery:
    product_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    movement_type: Optional[MovementType] = None
    search: Optional[str] = None
    date_from: Optional[datetime] = None  # inclusive
    date_to: Optional[datetime] = None  # exclusive
    page: PageRequest = field(default_factory=PageRequest)
    sort: SortSpec = field(default_factory=lambda: SortSpec(DEFAULT_MOVEMENT_SORT))


def normalize_page(page: Optional[int]) -> int:
    if page is None or page < 1:
        return 1
    return page


def normalize_limit(limit: Optional[int]) -> int:
    if limit is None or limit < 1 or limit > settings.max_page_limit:
        return settings.default_page_limit
    return limit


def normalize_page_request(page: Optional[int], limit: Optional[int]) -> PageRequest:
    return PageRequest(page=normalize_page(page), limit=normalize_limit(limit))


def normalize_sort(
    sort_by: Optional[str],
    sort_order: Optional[str],
    allowed: Sequence[str],
    default: str,
) -> SortSpec:
    sort_field = sort_by if sort_by in allowed else default
    descending = (sort_order or "").lower() != "asc"
    return SortSpec(field=sort_field, descending=descending)


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _positive_id(value: Optional[int], name: str) -> Optional[int]:
    if value is None:
        return None
    if value <= 0:
        raise InvalidInputError(f"{name} must be a positive integer")
    return value


def build_level_query(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    product_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    product_name: Optional[str] = None,
    product_sku: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> StockLevelQuery:
    """Normalize stock level listing parameters."""
    return StockLevelQuery(
        product_id=_positive_id(product_id, "product_id"),
        warehouse_id=_positive_id(warehouse_id, "warehouse_id"),
        product_name=_clean_text(product_name),
        product_sku=_clean_text(product_sku),
        page=normalize_page_request(page, limit),
        sort=normalize_sort(sort_by, sort_order, LEVEL_SORT_FIELDS, DEFAULT_LEVEL_SORT),
    )


def build_movement_query(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    product_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    movement_type: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
) -> StockMovementQuery:
    """Normalize stock movement listing parameters.

    ``date_from``/``date_to`` are calendar days in UTC applied to
    ``processed_date``; ``date_to`` covers the whole day.
    """
    if date_from and date_to and date_from > date_to:
        raise InvalidInputError("date_from must be on or before date_to")

    movement_type = _clean_text(movement_type)
    return StockMovementQuery(
        product_id=_positive_id(product_id, "product_id"),
        warehouse_id=_positive_id(warehouse_id, "warehouse_id"),
        movement_type=parse_movement_type(movement_type) if movement_type else None,
        search=_clean_text(search),
        date_from=datetime.combine(date_from, time.min, tzinfo=timezone.utc) if date_from else None,
        date_to=(
            datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=timezone.utc)
            if date_to else None
        ),
        page=normalize_page_request(page, limit),
        sort=normalize_sort(sort_by, sort_order, MOVEMENT_SORT_FIELDS, DEFAULT_MOVEMENT_SORT),
    )

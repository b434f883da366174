"""Stock movement and stock level routes."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Query, Request, status

from stockledger.core.config import settings
from stockledger.core.rate_limit import limiter, user_limiter
from stockledger.core.rbac import RequireStaff
from stockledger.db.session import DbSession
from stockledger.models.stock import SUPPLIER_REFERENCE_TYPE
from stockledger.schemas.pagination import PageMeta
from stockledger.schemas.stock import (
    BulkStockMovementCreate,
    BulkStockMovementResponse,
    StockLevelListResponse,
    StockLevelResponse,
    StockMovementCreate,
    StockMovementListResponse,
    StockMovementResponse,
)
from stockledger.services.ledger_store import LedgerStore
from stockledger.services.query_gateway import build_level_query, build_movement_query
from stockledger.services.stock_service import get_stock_service

router = APIRouter()


def _movement_responses(store: LedgerStore, movements) -> list:
    supplier_names = store.supplier_names_for(movements)
    return [
        StockMovementResponse.from_movement(
            m,
            supplier_name=(
                supplier_names.get(m.reference_id)
                if m.reference_type == SUPPLIER_REFERENCE_TYPE else None
            ),
        )
        for m in movements
    ]


# ==================== MOVEMENTS ====================

@router.post("/stock-movements", response_model=StockMovementResponse, status_code=status.HTTP_201_CREATED)
@user_limiter.limit(settings.rate_limit_write)
def create_stock_movement(
    request: Request,
    data: StockMovementCreate,
    db: DbSession,
    current_user: RequireStaff,
):
    """Record one stock movement and update the stock level."""
    service = get_stock_service(db)
    movement = service.create_movement(data, user_id=current_user.user_id)
    return _movement_responses(service.store, [movement])[0]


@router.post(
    "/stock-movements/bulk",
    response_model=BulkStockMovementResponse,
    status_code=status.HTTP_201_CREATED,
)
@user_limiter.limit(settings.rate_limit_bulk)
def create_bulk_stock_movements(
    request: Request,
    data: BulkStockMovementCreate,
    db: DbSession,
    current_user: RequireStaff,
):
    """Receive a supplier delivery as one all-or-nothing batch of inbound movements."""
    service = get_stock_service(db)
    movements = service.create_bulk_movements(data, user_id=current_user.user_id)
    return BulkStockMovementResponse(stock_movements=_movement_responses(service.store, movements))


@router.get("/stock-movements", response_model=StockMovementListResponse)
@limiter.limit(settings.rate_limit_read)
def list_stock_movements(
    request: Request,
    db: DbSession,
    current_user: RequireStaff,
    page: int = Query(1),
    limit: int = Query(10),
    product_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    movement_type: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
):
    """List the movement ledger with filters, sorting and pagination."""
    query = build_movement_query(
        page=page,
        limit=limit,
        product_id=product_id,
        warehouse_id=warehouse_id,
        movement_type=movement_type,
        search=search,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    store = LedgerStore(db)
    movements, total = store.list_movements(query)
    return StockMovementListResponse(
        stock_movements=_movement_responses(store, movements),
        **PageMeta.fields_for(total, query.page.page, query.page.limit),
    )


# ==================== LEVELS ====================

@router.get("/stock-levels", response_model=StockLevelListResponse)
@limiter.limit(settings.rate_limit_read)
def list_stock_levels(
    request: Request,
    db: DbSession,
    current_user: RequireStaff,
    page: int = Query(1),
    limit: int = Query(10),
    product_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    product_name: Optional[str] = None,
    product_sku: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
):
    """List current stock levels per product and warehouse."""
    query = build_level_query(
        page=page,
        limit=limit,
        product_id=product_id,
        warehouse_id=warehouse_id,
        product_name=product_name,
        product_sku=product_sku,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    levels, total = LedgerStore(db).list_levels(query)
    return StockLevelListResponse(
        stock_levels=[StockLevelResponse.from_level(level) for level in levels],
        **PageMeta.fields_for(total, query.page.page, query.page.limit),
    )


@router.get("/stock-levels/{product_id}/{warehouse_id}", response_model=StockLevelResponse)
@limiter.limit(settings.rate_limit_read)
def get_stock_level(
    request: Request,
    product_id: int,
    warehouse_id: int,
    db: DbSession,
    current_user: RequireStaff,
):
    """Current stock level for one product in one warehouse."""
    level = get_stock_service(db).get_level(product_id, warehouse_id)
    return StockLevelResponse.from_level(level)

"""Stock reporting routes."""

from typing import Optional

from fastapi import APIRouter, Query, Request

from stockledger.core.config import settings
from stockledger.core.rate_limit import limiter
from stockledger.core.rbac import RequireStaff
from stockledger.db.session import DbSession
from stockledger.schemas.pagination import PageMeta
from stockledger.schemas.stock import SOHReportResponse, StockInTransactionListResponse
from stockledger.services.query_gateway import normalize_page_request
from stockledger.services.stock_report_service import get_stock_report_service

router = APIRouter()


@router.get("/soh", response_model=SOHReportResponse)
@limiter.limit(settings.rate_limit_read)
def stock_on_hand_report(
    request: Request,
    db: DbSession,
    current_user: RequireStaff,
    product_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
    search: Optional[str] = None,
):
    """Stock on hand across all products and warehouses."""
    rows = get_stock_report_service(db).stock_on_hand(
        product_id=product_id,
        warehouse_id=warehouse_id,
        search=search,
    )
    return {"data": rows}


@router.get("/stock-in", response_model=StockInTransactionListResponse)
@limiter.limit(settings.rate_limit_read)
def stock_in_transactions(
    request: Request,
    db: DbSession,
    current_user: RequireStaff,
    page: int = Query(1),
    limit: int = Query(10),
    supplier_id: Optional[int] = None,
):
    """Bulk supplier deliveries, newest first."""
    page_request = normalize_page_request(page, limit)
    transactions, total = get_stock_report_service(db).stock_in_transactions(
        page_request, supplier_id=supplier_id
    )
    return StockInTransactionListResponse(
        transactions=transactions,
        **PageMeta.fields_for(total, page_request.page, page_request.limit),
    )

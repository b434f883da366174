"""Product lookup routes used by the stock-in form."""

from fastapi import APIRouter, Request

from stockledger.core.config import settings
from stockledger.core.rate_limit import limiter
from stockledger.core.rbac import RequireStaff
from stockledger.db.session import DbSession
from stockledger.schemas.product import ProductResponse, SupplierProductsResponse
from stockledger.services.stock_service import get_stock_service

router = APIRouter()


@router.get("/supplier/{supplier_id}", response_model=SupplierProductsResponse)
@limiter.limit(settings.rate_limit_read)
def get_products_by_supplier(
    request: Request,
    supplier_id: int,
    db: DbSession,
    current_user: RequireStaff,
):
    """Active products supplied by one supplier."""
    products = get_stock_service(db).get_products_by_supplier(supplier_id)
    return SupplierProductsResponse(
        products=[ProductResponse.model_validate(p) for p in products]
    )

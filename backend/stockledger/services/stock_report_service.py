"""Reporting Projector - read-only stock views joined with product and warehouse data."""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.models.product import Product
from stockledger.models.stock import SUPPLIER_REFERENCE_TYPE, StockLevel, StockMovement
from stockledger.models.supplier import Supplier
from stockledger.models.user import User
from stockledger.models.warehouse import Warehouse
from stockledger.services.query_gateway import PageRequest


class StockReportService:
    """Stock on hand and stock-in summaries."""

    def __init__(self, db: Session):
        self.db = db

    def stock_on_hand(
        self,
        product_id: Optional[int] = None,
        warehouse_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """One row per product/warehouse pair, capped at ``soh_report_row_cap``."""
        query = (
            self.db.query(
                StockLevel.product_id,
                Product.name.label("product_name"),
                Product.sku.label("product_sku"),
                StockLevel.warehouse_id,
                Warehouse.name.label("warehouse_name"),
                StockLevel.quantity,
                StockLevel.reserved_quantity,
                StockLevel.available_quantity,
                StockLevel.min_stock_level,
                StockLevel.max_stock_level,
                StockLevel.last_updated,
            )
            .join(Product, Product.id == StockLevel.product_id)
            .join(Warehouse, Warehouse.id == StockLevel.warehouse_id)
        )
        if product_id:
            query = query.filter(StockLevel.product_id == product_id)
        if warehouse_id:
            query = query.filter(StockLevel.warehouse_id == warehouse_id)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))

        rows = (
            query.order_by(Product.name, Warehouse.name, StockLevel.id)
            .limit(settings.soh_report_row_cap)
            .all()
        )
        return [dict(row._mapping) for row in rows]

    def stock_in_transactions(
        self,
        page: PageRequest,
        supplier_id: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Bulk supplier deliveries, newest first.

        Lines are grouped by supplier, processed date and processor; each
        group is one delivery.
        """
        first_created = func.min(StockMovement.created_at)
        query = (
            self.db.query(
                StockMovement.reference_id,
                StockMovement.processed_date,
                StockMovement.processed_by,
                func.max(StockMovement.reference_number).label("reference_number"),
                func.count(StockMovement.id).label("item_count"),
                func.sum(StockMovement.quantity).label("total_quantity"),
                func.sum(StockMovement.total_amount).label("total_amount"),
                first_created.label("created_at"),
            )
            .filter(StockMovement.reference_type == SUPPLIER_REFERENCE_TYPE)
            .group_by(
                StockMovement.reference_id,
                StockMovement.processed_date,
                StockMovement.processed_by,
            )
        )
        if supplier_id:
            query = query.filter(StockMovement.reference_id == supplier_id)

        total = query.count()
        rows = (
            query.order_by(StockMovement.processed_date.desc(), first_created.desc())
            .offset(page.offset)
            .limit(page.limit)
            .all()
        )

        supplier_ids = {row.reference_id for row in rows if row.reference_id is not None}
        user_ids = {row.processed_by for row in rows if row.processed_by is not None}
        suppliers = {}
        if supplier_ids:
            suppliers = dict(
                self.db.query(Supplier.id, Supplier.name).filter(Supplier.id.in_(supplier_ids)).all()
            )
        users = {}
        if user_ids:
            users = {
                u.id: u
                for u in self.db.query(User.id, User.first_name, User.last_name).filter(User.id.in_(user_ids))
            }

        transactions = []
        for row in rows:
            processor = users.get(row.processed_by)
            transactions.append({
                "reference_id": row.reference_id,
                "supplier_name": suppliers.get(row.reference_id),
                "reference_number": row.reference_number,
                "processed_date": row.processed_date,
                "processed_by": row.processed_by,
                "processed_by_first_name": processor.first_name if processor else None,
                "processed_by_last_name": processor.last_name if processor else None,
                "item_count": row.item_count,
                "total_quantity": int(row.total_quantity or 0),
                "total_amount": float(row.total_amount) if row.total_amount is not None else None,
                "created_at": row.created_at,
            })
        return transactions, total


def get_stock_report_service(db: Session) -> StockReportService:
    return StockReportService(db)

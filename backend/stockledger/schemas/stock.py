"""Stock schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from stockledger.schemas.pagination import PageMeta


# ==================== REQUESTS ====================

class StockMovementCreate(BaseModel):
    """Single movement submission.

    ``movement_type`` and ``quantity`` are checked by the movement validator
    so that bad values surface as ledger errors rather than schema errors.
    """

    product_id: int = Field(..., gt=0)
    warehouse_id: int = Field(..., gt=0)
    movement_type: str
    quantity: int
    cost_price: Optional[Decimal] = Field(None, ge=0)
    reference_type: Optional[str] = Field(None, max_length=50)
    reference_id: Optional[int] = None
    reason: Optional[str] = Field(None, max_length=500)


class BulkStockMovementItem(BaseModel):
    """One line of a bulk supplier delivery."""

    product_id: int = Field(..., gt=0)
    warehouse_id: int = Field(..., gt=0)
    quantity: int
    cost_price: Optional[Decimal] = Field(None, ge=0)
    reason: Optional[str] = Field(None, max_length=500)


class BulkStockMovementCreate(BaseModel):
    """Bulk inbound submission sharing one supplier and one processing context."""

    supplier_id: int = Field(..., gt=0)
    reference_number: Optional[str] = Field(None, max_length=100)
    processed_by: Optional[int] = Field(None, gt=0)
    processed_date: Optional[datetime] = None
    items: List[BulkStockMovementItem] = Field(..., min_length=1)


# ==================== RESPONSES ====================

class StockMovementResponse(BaseModel):
    """Stock movement with joined display fields."""

    id: str
    product_id: int
    warehouse_id: int
    movement_type: str
    quantity: int
    cost_price: Optional[float] = None
    total_amount: Optional[float] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    reference_number: Optional[str] = None
    reason: Optional[str] = None
    user_id: Optional[int] = None
    processed_by: Optional[int] = None
    processed_date: Optional[datetime] = None
    created_at: datetime

    # Joined fields
    product_name: Optional[str] = None
    product_sku: Optional[str] = None
    warehouse_name: Optional[str] = None
    user_first_name: Optional[str] = None
    user_last_name: Optional[str] = None
    processed_by_first_name: Optional[str] = None
    processed_by_last_name: Optional[str] = None
    supplier_name: Optional[str] = None

    @classmethod
    def from_movement(cls, movement, supplier_name: Optional[str] = None) -> "StockMovementResponse":
        user = movement.user
        processor = movement.processor
        return cls(
            id=movement.id,
            product_id=movement.product_id,
            warehouse_id=movement.warehouse_id,
            movement_type=movement.movement_type.value,
            quantity=movement.quantity,
            cost_price=float(movement.cost_price) if movement.cost_price is not None else None,
            total_amount=float(movement.total_amount) if movement.total_amount is not None else None,
            reference_type=movement.reference_type,
            reference_id=movement.reference_id,
            reference_number=movement.reference_number,
            reason=movement.reason,
            user_id=movement.user_id,
            processed_by=movement.processed_by,
            processed_date=movement.processed_date,
            created_at=movement.created_at,
            product_name=movement.product.name if movement.product else None,
            product_sku=movement.product.sku if movement.product else None,
            warehouse_name=movement.warehouse.name if movement.warehouse else None,
            user_first_name=user.first_name if user else None,
            user_last_name=user.last_name if user else None,
            processed_by_first_name=processor.first_name if processor else None,
            processed_by_last_name=processor.last_name if processor else None,
            supplier_name=supplier_name,
        )


class StockLevelResponse(BaseModel):
    """Stock level with joined display fields."""

    id: int
    product_id: int
    warehouse_id: int
    quantity: int
    reserved_quantity: int
    available_quantity: int
    min_stock_level: int
    max_stock_level: Optional[int] = None
    last_updated: datetime
    created_at: datetime
    updated_at: datetime

    # Joined fields
    product_name: Optional[str] = None
    product_sku: Optional[str] = None
    warehouse_name: Optional[str] = None

    @classmethod
    def from_level(cls, level) -> "StockLevelResponse":
        return cls(
            id=level.id,
            product_id=level.product_id,
            warehouse_id=level.warehouse_id,
            quantity=level.quantity,
            reserved_quantity=level.reserved_quantity,
            available_quantity=level.available_quantity,
            min_stock_level=level.min_stock_level,
            max_stock_level=level.max_stock_level,
            last_updated=level.last_updated,
            created_at=level.created_at,
            updated_at=level.updated_at,
            product_name=level.product.name if level.product else None,
            product_sku=level.product.sku if level.product else None,
            warehouse_name=level.warehouse.name if level.warehouse else None,
        )


class StockLevelListResponse(PageMeta):
    stock_levels: List[StockLevelResponse]


class StockMovementListResponse(PageMeta):
    stock_movements: List[StockMovementResponse]


class BulkStockMovementResponse(BaseModel):
    stock_movements: List[StockMovementResponse]


# ==================== REPORTS ====================

class SOHReportRow(BaseModel):
    """One product/warehouse line of the stock-on-hand report."""

    product_id: int
    product_name: str
    product_sku: str
    warehouse_id: int
    warehouse_name: str
    quantity: int
    reserved_quantity: int
    available_quantity: int
    min_stock_level: int
    max_stock_level: Optional[int] = None
    last_updated: datetime


class SOHReportResponse(BaseModel):
    data: List[SOHReportRow]


class StockInTransaction(BaseModel):
    """Summary of one bulk supplier delivery."""

    reference_id: Optional[int] = None
    supplier_name: Optional[str] = None
    reference_number: Optional[str] = None
    processed_date: Optional[datetime] = None
    processed_by: Optional[int] = None
    processed_by_first_name: Optional[str] = None
    processed_by_last_name: Optional[str] = None
    item_count: int
    total_quantity: int
    total_amount: Optional[float] = None
    created_at: datetime


class StockInTransactionListResponse(PageMeta):
    transactions: List[StockInTransaction]

"""Stock models: the StockMovement ledger and the StockLevel projection."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Computed,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    event,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.core.exceptions import LedgerImmutableError
from stockledger.db.base import Base, TimestampMixin


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MovementType(str, Enum):
    """Kinds of stock movement."""

    IN = "in"  # Goods received
    OUT = "out"  # Goods shipped or consumed
    TRANSFER = "transfer"  # Reserved, no single-ledger effect
    ADJUSTMENT = "adjustment"  # Upward correction


# Reference type stamped on every line of a bulk supplier delivery
SUPPLIER_REFERENCE_TYPE = "supplier"


class StockLevel(Base, TimestampMixin):
    """Current stock level per product per warehouse.

    A projection of the movement ledger: ``quantity`` always equals the
    signed sum of the pair's movements.
    """

    __tablename__ = "stock_levels"
    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", name="uq_stock_level_product_warehouse"),
        CheckConstraint("quantity >= 0", name="ck_stock_level_quantity_non_negative"),
        CheckConstraint("reserved_quantity >= 0", name="ck_stock_level_reserved_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    warehouse_id: Mapped[int] = mapped_column(
        ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reserved_quantity: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    available_quantity: Mapped[int] = mapped_column(
        Integer, Computed("quantity - reserved_quantity", persisted=True)
    )
    min_stock_level: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    max_stock_level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="stock_levels")
    warehouse: Mapped["Warehouse"] = relationship("Warehouse", back_populates="stock_levels")


class StockMovement(Base):
    """Append-only ledger of stock changes (single source of truth)."""

    __tablename__ = "stock_movements"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movement_quantity_positive"),
        CheckConstraint("cost_price IS NULL OR cost_price >= 0", name="ck_stock_movement_cost_non_negative"),
        # Supplier delivery summaries group on these columns
        Index("ix_stock_movements_stock_in", "reference_type", "reference_id", "processed_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    warehouse_id: Mapped[int] = mapped_column(
        ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    movement_type: Mapped[MovementType] = mapped_column(
        SAEnum(
            MovementType,
            name="movement_type",
            native_enum=False,
            create_constraint=True,
            length=20,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        index=True,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)  # always positive, sign comes from type
    cost_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    total_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    reference_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # supplier, purchase_order
    reference_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    reference_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    processed_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    processed_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="stock_movements")
    warehouse: Mapped["Warehouse"] = relationship("Warehouse", back_populates="stock_movements")
    user: Mapped[Optional["User"]] = relationship("User", foreign_keys=[user_id])
    processor: Mapped[Optional["User"]] = relationship("User", foreign_keys=[processed_by])


@event.listens_for(StockMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise LedgerImmutableError(f"Stock movement {target.id} is append-only and cannot be updated")


@event.listens_for(StockMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise LedgerImmutableError(f"Stock movement {target.id} is append-only and cannot be deleted")


# Forward references
from stockledger.models.product import Product
from stockledger.models.warehouse import Warehouse
from stockledger.models.user import User

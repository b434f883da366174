"""Ledger Store - persistence for the movement ledger and the level projection.

Only the processors write through this class; they own the transaction.
Store methods flush but never commit.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, contains_eager, joinedload

from stockledger.core.exceptions import (
    AlreadyExistsError,
    InvalidInputError,
    NotFoundError,
    StockConflictError,
)
from stockledger.models.product import Product
from stockledger.models.stock import (
    SUPPLIER_REFERENCE_TYPE,
    StockLevel,
    StockMovement,
    utcnow,
)
from stockledger.models.supplier import Supplier
from stockledger.models.warehouse import Warehouse
from stockledger.services.query_gateway import StockLevelQuery, StockMovementQuery

logger = logging.getLogger(__name__)

LEVEL_SORT_COLUMNS = {
    "product_name": Product.name,
    "product_sku": Product.sku,
    "warehouse_name": Warehouse.name,
    "quantity": StockLevel.quantity,
    "available_quantity": StockLevel.available_quantity,
    "last_updated": StockLevel.last_updated,
}

MOVEMENT_SORT_COLUMNS = {
    "created_at": StockMovement.created_at,
    "processed_date": StockMovement.processed_date,
    "quantity": StockMovement.quantity,
    "movement_type": StockMovement.movement_type,
}


class LedgerStore:
    """Reads and writes stock levels and stock movements."""

    def __init__(self, db: Session):
        self.db = db

    # ===== LEVELS =====

    def get_level(self, product_id: int, warehouse_id: int, for_update: bool = False) -> Optional[StockLevel]:
        """Current level for a pair, or None.

        ``for_update`` takes a row lock where the backend supports it and
        always refreshes the instance from the database.
        """
        query = self.db.query(StockLevel).filter(
            StockLevel.product_id == product_id,
            StockLevel.warehouse_id == warehouse_id,
        )
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def require_level(self, product_id: int, warehouse_id: int) -> StockLevel:
        level = (
            self.db.query(StockLevel)
            .options(joinedload(StockLevel.product), joinedload(StockLevel.warehouse))
            .filter(
                StockLevel.product_id == product_id,
                StockLevel.warehouse_id == warehouse_id,
            )
            .first()
        )
        if not level:
            raise NotFoundError(
                f"No stock level for product {product_id} in warehouse {warehouse_id}"
            )
        return level

    def create_level(
        self,
        product_id: int,
        warehouse_id: int,
        initial_quantity: int,
        min_stock_level: int = 0,
        max_stock_level: Optional[int] = None,
    ) -> StockLevel:
        """Insert the level row for a pair inside a savepoint.

        Raises AlreadyExistsError when a row for the pair is already present,
        including one committed concurrently by another writer.
        """
        if initial_quantity < 0:
            raise InvalidInputError("Stock level quantity cannot be negative")

        level = StockLevel(
            product_id=product_id,
            warehouse_id=warehouse_id,
            quantity=initial_quantity,
            reserved_quantity=0,
            min_stock_level=min_stock_level,
            max_stock_level=max_stock_level,
            last_updated=utcnow(),
        )
        try:
            with self.db.begin_nested():
                self.db.add(level)
                self.db.flush()
        except IntegrityError:
            raise AlreadyExistsError(
                f"Stock level for product {product_id} in warehouse {warehouse_id} already exists"
            )
        return level

    def set_level_quantity(self, product_id: int, warehouse_id: int, new_quantity: int) -> StockLevel:
        """Unconditionally overwrite the quantity of an existing level."""
        if new_quantity < 0:
            raise InvalidInputError("Stock level quantity cannot be negative")
        level = self.get_level(product_id, warehouse_id, for_update=True)
        if not level:
            raise NotFoundError(
                f"No stock level for product {product_id} in warehouse {warehouse_id}"
            )
        level.quantity = new_quantity
        level.last_updated = utcnow()
        self.db.flush()
        return level

    def apply_quantity_delta(self, product_id: int, warehouse_id: int, delta: int) -> None:
        """Atomically add ``delta`` to a level, refusing to go below zero.

        Raises StockConflictError when no row matched: the level vanished or
        a concurrent writer moved the quantity since it was read.
        """
        matched = (
            self.db.query(StockLevel)
            .filter(
                StockLevel.product_id == product_id,
                StockLevel.warehouse_id == warehouse_id,
                StockLevel.quantity + delta >= 0,
            )
            .update(
                {
                    StockLevel.quantity: StockLevel.quantity + delta,
                    StockLevel.last_updated: utcnow(),
                },
                synchronize_session=False,
            )
        )
        if matched != 1:
            raise StockConflictError(
                f"Stock level for product {product_id} in warehouse {warehouse_id} "
                f"changed concurrently"
            )

    def list_levels(self, query: StockLevelQuery) -> Tuple[List[StockLevel], int]:
        q = (
            self.db.query(StockLevel)
            .join(StockLevel.product)
            .join(StockLevel.warehouse)
            .options(contains_eager(StockLevel.product), contains_eager(StockLevel.warehouse))
        )
        if query.product_id:
            q = q.filter(StockLevel.product_id == query.product_id)
        if query.warehouse_id:
            q = q.filter(StockLevel.warehouse_id == query.warehouse_id)
        if query.product_name:
            q = q.filter(Product.name.ilike(f"%{query.product_name}%"))
        if query.product_sku:
            q = q.filter(Product.sku.ilike(f"%{query.product_sku}%"))

        total = q.count()

        column = LEVEL_SORT_COLUMNS[query.sort.field]
        order = column.desc() if query.sort.descending else column.asc()
        levels = (
            q.order_by(order, StockLevel.id.asc())
            .offset(query.page.offset)
            .limit(query.page.limit)
            .all()
        )
        return levels, total

    # ===== MOVEMENTS =====

    def append_movement(self, movement: StockMovement) -> StockMovement:
        """Add a movement row to the ledger and flush it."""
        if movement.cost_price is not None and movement.total_amount is None:
            movement.total_amount = (Decimal(movement.quantity) * movement.cost_price).quantize(Decimal("0.01"))
        self.db.add(movement)
        self.db.flush()
        return movement

    def list_movements(self, query: StockMovementQuery) -> Tuple[List[StockMovement], int]:
        q = (
            self.db.query(StockMovement)
            .join(StockMovement.product)
            .options(
                contains_eager(StockMovement.product),
                joinedload(StockMovement.warehouse),
                joinedload(StockMovement.user),
                joinedload(StockMovement.processor),
            )
        )
        if query.product_id:
            q = q.filter(StockMovement.product_id == query.product_id)
        if query.warehouse_id:
            q = q.filter(StockMovement.warehouse_id == query.warehouse_id)
        if query.movement_type:
            q = q.filter(StockMovement.movement_type == query.movement_type)
        if query.search:
            pattern = f"%{query.search}%"
            q = q.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
        if query.date_from:
            q = q.filter(StockMovement.processed_date >= query.date_from)
        if query.date_to:
            q = q.filter(StockMovement.processed_date < query.date_to)

        total = q.count()

        column = MOVEMENT_SORT_COLUMNS[query.sort.field]
        order = column.desc() if query.sort.descending else column.asc()
        movements = (
            q.order_by(order, StockMovement.id.asc())
            .offset(query.page.offset)
            .limit(query.page.limit)
            .all()
        )
        return movements, total

    def supplier_names_for(self, movements: Iterable[StockMovement]) -> Dict[int, str]:
        """Supplier names keyed by id for supplier-referenced movements."""
        supplier_ids = {
            m.reference_id
            for m in movements
            if m.reference_type == SUPPLIER_REFERENCE_TYPE and m.reference_id is not None
        }
        if not supplier_ids:
            return {}
        rows = self.db.query(Supplier.id, Supplier.name).filter(Supplier.id.in_(supplier_ids)).all()
        return {row.id: row.name for row in rows}

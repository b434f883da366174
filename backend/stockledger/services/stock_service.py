"""Stock Movement Service - single and bulk movement processors.

Every movement runs as one unit of work:

1. Read the current level for the pair (row-locked where supported)
2. Validate the movement against it
3. Append the movement to the ledger
4. Project it onto the level: create the row on first inbound movement,
   otherwise apply an atomic guarded ``quantity + delta`` update
5. Commit

A guarded update that matches no row, or a level insert that collides with
a concurrent one, raises StockConflictError. The whole unit of work is then
rolled back and replayed from a fresh read, up to
``settings.stock_conflict_retries`` times. Any other failure rolls back and
propagates; SQLAlchemy errors surface as StorageFailureError.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.core.exceptions import (
    AlreadyExistsError,
    InvalidInputError,
    NotFoundError,
    StockConflictError,
    StockLedgerError,
    StorageFailureError,
)
from stockledger.models.product import Product
from stockledger.models.stock import (
    SUPPLIER_REFERENCE_TYPE,
    MovementType,
    StockLevel,
    StockMovement,
    utcnow,
)
from stockledger.models.supplier import Supplier
from stockledger.models.user import User
from stockledger.models.warehouse import Warehouse
from stockledger.schemas.stock import BulkStockMovementCreate, StockMovementCreate
from stockledger.services.ledger_store import LedgerStore
from stockledger.services.stock_validator import (
    LevelAction,
    MovementDecision,
    parse_movement_type,
    signed_effect,
    validate_cost_price,
    validate_movement,
    validate_quantity,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def as_utc(value: Optional[datetime]) -> datetime:
    """Normalize a timestamp to UTC; naive values are taken as UTC."""
    if value is None:
        return utcnow()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class StockMovementService:
    """Records stock movements and keeps stock levels in step with them."""

    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    # ===== SINGLE MOVEMENT =====

    def create_movement(self, data: StockMovementCreate, user_id: Optional[int] = None) -> StockMovement:
        """Validate, record and project one movement atomically.

        Raises:
            InvalidMovementTypeError, InvalidQuantityError, InvalidInputError
            NotFoundError: product or warehouse does not exist
            InsufficientStockError: outbound quantity exceeds stock on hand
            StockConflictError: concurrent writers outlasted the retry budget
            StorageFailureError: the database failed; nothing was written
        """
        movement_type = parse_movement_type(data.movement_type)
        signed_effect(movement_type, validate_quantity(data.quantity))
        cost_price = validate_cost_price(data.cost_price)

        def work() -> StockMovement:
            self._require_product_and_warehouse({data.product_id}, {data.warehouse_id})
            level = self.store.get_level(data.product_id, data.warehouse_id, for_update=True)
            decision = validate_movement(
                movement_type,
                data.quantity,
                level,
                product_id=data.product_id,
                warehouse_id=data.warehouse_id,
            )
            movement = self.store.append_movement(
                StockMovement(
                    product_id=data.product_id,
                    warehouse_id=data.warehouse_id,
                    movement_type=decision.movement_type,
                    quantity=decision.quantity,
                    cost_price=cost_price,
                    reference_type=data.reference_type,
                    reference_id=data.reference_id,
                    reason=data.reason,
                    user_id=user_id,
                    processed_by=user_id,
                    processed_date=utcnow(),
                )
            )
            self._project(decision, data.product_id, data.warehouse_id)
            return movement

        movement = self._run_atomic("stock movement", work)
        logger.info(
            f"Stock movement {movement.id}: {movement.movement_type.value} {movement.quantity} "
            f"product={movement.product_id} warehouse={movement.warehouse_id} user={user_id}"
        )
        return movement

    # ===== BULK MOVEMENT =====

    def create_bulk_movements(
        self, data: BulkStockMovementCreate, user_id: Optional[int] = None
    ) -> List[StockMovement]:
        """Receive a supplier delivery: every line is an inbound movement.

        All lines commit together or none do. ``processed_by`` defaults to
        the acting user and ``processed_date`` to now.
        """
        if not data.items:
            raise InvalidInputError("Bulk stock movement needs at least one line")

        lines = [
            (item, validate_quantity(item.quantity), validate_cost_price(item.cost_price))
            for item in data.items
        ]
        processed_by = data.processed_by if data.processed_by is not None else user_id
        processed_date = as_utc(data.processed_date)

        def work() -> List[StockMovement]:
            if not self.db.get(Supplier, data.supplier_id):
                raise NotFoundError(f"Supplier {data.supplier_id} not found")
            if processed_by is not None and not self.db.get(User, processed_by):
                raise NotFoundError(f"User {processed_by} not found")
            self._require_product_and_warehouse(
                {item.product_id for item in data.items},
                {item.warehouse_id for item in data.items},
            )

            movements = []
            for item, quantity, cost_price in lines:
                level = self.store.get_level(item.product_id, item.warehouse_id, for_update=True)
                decision = validate_movement(
                    MovementType.IN,
                    quantity,
                    level,
                    product_id=item.product_id,
                    warehouse_id=item.warehouse_id,
                )
                movements.append(
                    self.store.append_movement(
                        StockMovement(
                            product_id=item.product_id,
                            warehouse_id=item.warehouse_id,
                            movement_type=MovementType.IN,
                            quantity=quantity,
                            cost_price=cost_price,
                            reference_type=SUPPLIER_REFERENCE_TYPE,
                            reference_id=data.supplier_id,
                            reference_number=data.reference_number,
                            reason=item.reason,
                            user_id=user_id,
                            processed_by=processed_by,
                            processed_date=processed_date,
                        )
                    )
                )
                self._project(decision, item.product_id, item.warehouse_id)
            return movements

        movements = self._run_atomic("bulk stock movement", work)
        logger.info(
            f"Bulk stock-in from supplier {data.supplier_id}: {len(movements)} lines, "
            f"{sum(m.quantity for m in movements)} units, processed_by={processed_by}"
        )
        return movements

    # ===== LOOKUPS =====

    def get_level(self, product_id: int, warehouse_id: int) -> StockLevel:
        return self.store.require_level(product_id, warehouse_id)

    def get_products_by_supplier(self, supplier_id: int) -> List[Product]:
        if not self.db.get(Supplier, supplier_id):
            raise NotFoundError(f"Supplier {supplier_id} not found")
        return (
            self.db.query(Product)
            .filter(Product.supplier_id == supplier_id, Product.is_active == True)  # noqa: E712
            .order_by(Product.name)
            .all()
        )

    # ===== INTERNALS =====

    def _require_product_and_warehouse(self, product_ids, warehouse_ids) -> None:
        found = {row.id for row in self.db.query(Product.id).filter(Product.id.in_(product_ids))}
        missing = sorted(set(product_ids) - found)
        if missing:
            raise NotFoundError(f"Product {missing[0]} not found", details={"product_ids": missing})

        found = {row.id for row in self.db.query(Warehouse.id).filter(Warehouse.id.in_(warehouse_ids))}
        missing = sorted(set(warehouse_ids) - found)
        if missing:
            raise NotFoundError(f"Warehouse {missing[0]} not found", details={"warehouse_ids": missing})

    def _project(self, decision: MovementDecision, product_id: int, warehouse_id: int) -> None:
        """Apply a validated movement's effect to the level projection."""
        if decision.action is LevelAction.CREATE:
            try:
                self.store.create_level(product_id, warehouse_id, decision.delta)
            except AlreadyExistsError as e:
                raise StockConflictError(e.message)
        else:
            self.store.apply_quantity_delta(product_id, warehouse_id, decision.delta)

    def _run_atomic(self, operation: str, work: Callable[[], T]) -> T:
        """Run ``work`` and commit, rolling back on any failure."""
        attempts = settings.stock_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                result = work()
                self.db.commit()
                return result
            except StockConflictError as e:
                self.db.rollback()
                if attempt == attempts:
                    logger.warning(f"{operation} abandoned after {attempts} attempts: {e.message}")
                    raise
                logger.warning(f"{operation} conflict, retrying ({attempt}/{attempts - 1}): {e.message}")
            except StockLedgerError:
                self.db.rollback()
                raise
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"{operation} failed, rolled back: {e}", exc_info=True)
                raise StorageFailureError(f"{operation} failed due to a storage error") from e
            except BaseException:
                self.db.rollback()
                raise


def get_stock_service(db: Session) -> StockMovementService:
    """Factory function to create stock movement service."""
    return StockMovementService(db)

"""Movement Validator - decides whether a proposed movement may proceed.

Pure logic: no database access. The caller supplies the stock level it has
just read (or None when the product/warehouse pair has no level yet) and
gets back a decision telling it how to update the projection.

Sign convention:
    in          +quantity
    adjustment  +quantity (upward corrections only)
    out         -quantity (requires quantity on hand >= requested)
    transfer    rejected, it has no single-warehouse effect
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional, Protocol

from stockledger.core.exceptions import (
    InsufficientStockError,
    InvalidInputError,
    InvalidMovementTypeError,
    InvalidQuantityError,
)
from stockledger.models.stock import MovementType

# Upper bound of the INTEGER quantity columns
MAX_QUANTITY = 2_147_483_647

CENT = Decimal("0.01")


class LevelSnapshot(Protocol):
    quantity: int


class LevelAction(str, Enum):
    """What the processor must do to the stock level."""

    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class MovementDecision:
    movement_type: MovementType
    quantity: int
    delta: int
    action: LevelAction


def parse_movement_type(value) -> MovementType:
    """Coerce a caller-supplied value into a MovementType."""
    if isinstance(value, MovementType):
        return value
    if isinstance(value, str):
        try:
            return MovementType(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(t.value for t in MovementType)
    raise InvalidMovementTypeError(f"Invalid movement type '{value}'. Allowed: {allowed}")


def validate_quantity(quantity) -> int:
    """Quantity must be a positive integer."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError(f"Quantity must be an integer, got {quantity!r}")
    if quantity <= 0:
        raise InvalidQuantityError(f"Quantity must be positive, got {quantity}")
    if quantity > MAX_QUANTITY:
        raise InvalidQuantityError(f"Quantity cannot exceed {MAX_QUANTITY}, got {quantity}")
    return quantity


def validate_cost_price(cost_price) -> Optional[Decimal]:
    if cost_price is None:
        return None
    try:
        value = Decimal(str(cost_price))
    except ArithmeticError:
        raise InvalidInputError(f"Invalid cost price {cost_price!r}")
    if not value.is_finite() or value < 0:
        raise InvalidInputError(f"Cost price cannot be negative, got {cost_price}")
    # Stored with two decimals; totals are computed from the stored value
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except ArithmeticError:
        raise InvalidInputError(f"Invalid cost price {cost_price!r}")


def signed_effect(movement_type: MovementType, quantity: int) -> int:
    """Effect of a movement on the projected quantity."""
    if movement_type in (MovementType.IN, MovementType.ADJUSTMENT):
        return quantity
    if movement_type is MovementType.OUT:
        return -quantity
    raise InvalidMovementTypeError("transfer movements are not supported")


def validate_movement(
    movement_type,
    quantity,
    level: Optional[LevelSnapshot],
    product_id: Optional[int] = None,
    warehouse_id: Optional[int] = None,
) -> MovementDecision:
    """Check a movement against the current level and decide the projection update.

    Raises:
        InvalidMovementTypeError: unknown type, or ``transfer``.
        InvalidQuantityError: quantity is not a positive integer, or the level would overflow.
        InsufficientStockError: ``out`` exceeds the quantity on hand, or no level exists.
    """
    movement_type = parse_movement_type(movement_type)
    quantity = validate_quantity(quantity)
    delta = signed_effect(movement_type, quantity)

    if movement_type is MovementType.OUT:
        available = level.quantity if level is not None else 0
        if level is None or available < quantity:
            raise InsufficientStockError(
                product_id=product_id,
                warehouse_id=warehouse_id,
                available=available,
                requested=quantity,
            )
    elif level is not None and level.quantity + delta > MAX_QUANTITY:
        raise InvalidQuantityError(
            f"Stock level cannot exceed {MAX_QUANTITY}, has {level.quantity}, adding {delta}"
        )

    action = LevelAction.CREATE if level is None else LevelAction.UPDATE
    return MovementDecision(
        movement_type=movement_type,
        quantity=quantity,
        delta=delta,
        action=action,
    )

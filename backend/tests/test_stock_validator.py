"""Tests for the movement validator (pure, no database)."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from stockledger.core.exceptions import (
    InsufficientStockError,
    InvalidInputError,
    InvalidMovementTypeError,
    InvalidQuantityError,
)
from stockledger.models.stock import MovementType
from stockledger.services.stock_validator import (
    MAX_QUANTITY,
    LevelAction,
    parse_movement_type,
    signed_effect,
    validate_cost_price,
    validate_movement,
    validate_quantity,
)


def level(quantity):
    return SimpleNamespace(quantity=quantity)


class TestMovementType:
    def test_parses_known_values(self):
        assert parse_movement_type("in") is MovementType.IN
        assert parse_movement_type(" OUT ") is MovementType.OUT
        assert parse_movement_type(MovementType.ADJUSTMENT) is MovementType.ADJUSTMENT

    @pytest.mark.parametrize("value", ["", "receive", "IN_", None, 3])
    def test_rejects_unknown_values(self, value):
        with pytest.raises(InvalidMovementTypeError) as exc:
            parse_movement_type(value)
        assert "Allowed" in exc.value.message

    def test_unknown_type_is_invalid_input(self):
        assert issubclass(InvalidMovementTypeError, InvalidInputError)
        assert InvalidMovementTypeError("x").status_code == 400


class TestQuantity:
    def test_positive_integer_accepted(self):
        assert validate_quantity(1) == 1
        assert validate_quantity(500) == 500

    @pytest.mark.parametrize("value", [0, -1, -100])
    def test_non_positive_rejected(self, value):
        with pytest.raises(InvalidQuantityError):
            validate_quantity(value)

    @pytest.mark.parametrize("value", [1.5, "3", None, True])
    def test_non_integer_rejected(self, value):
        with pytest.raises(InvalidQuantityError):
            validate_quantity(value)

    def test_column_range_upper_bound(self):
        assert validate_quantity(MAX_QUANTITY) == MAX_QUANTITY
        with pytest.raises(InvalidQuantityError):
            validate_quantity(MAX_QUANTITY + 1)
        with pytest.raises(InvalidQuantityError):
            validate_quantity(2 ** 63)


class TestCostPrice:
    def test_none_passes_through(self):
        assert validate_cost_price(None) is None

    def test_converted_to_decimal(self):
        assert validate_cost_price(2.5) == Decimal("2.5")
        assert validate_cost_price("0") == Decimal("0")

    @pytest.mark.parametrize("value", [-1, "-0.01", "abc", "NaN", "Infinity"])
    def test_invalid_rejected(self, value):
        with pytest.raises(InvalidInputError):
            validate_cost_price(value)

    @pytest.mark.parametrize("value, expected", [("0.333", "0.33"), ("2.675", "2.68"), (0.1, "0.10"), ("5", "5.00")])
    def test_rounded_to_cents(self, value, expected):
        assert str(validate_cost_price(value)) == expected

    def test_too_many_digits_rejected(self):
        with pytest.raises(InvalidInputError):
            validate_cost_price("1e40")


class TestSignedEffect:
    def test_sign_convention(self):
        assert signed_effect(MovementType.IN, 5) == 5
        assert signed_effect(MovementType.ADJUSTMENT, 5) == 5
        assert signed_effect(MovementType.OUT, 5) == -5

    def test_transfer_not_supported(self):
        with pytest.raises(InvalidMovementTypeError, match="transfer"):
            signed_effect(MovementType.TRANSFER, 5)


class TestValidateMovement:
    def test_inbound_without_level_creates(self):
        decision = validate_movement("in", 50, None)
        assert decision.action is LevelAction.CREATE
        assert decision.delta == 50

    def test_adjustment_without_level_creates(self):
        decision = validate_movement("adjustment", 3, None)
        assert decision.action is LevelAction.CREATE
        assert decision.delta == 3

    def test_inbound_with_level_updates(self):
        decision = validate_movement("in", 5, level(0))
        assert decision.action is LevelAction.UPDATE
        assert decision.delta == 5

    def test_outbound_within_stock(self):
        decision = validate_movement("out", 10, level(10))
        assert decision.action is LevelAction.UPDATE
        assert decision.delta == -10

    def test_outbound_exceeding_stock(self):
        with pytest.raises(InsufficientStockError) as exc:
            validate_movement("out", 11, level(10), product_id=1, warehouse_id=2)
        assert exc.value.available == 10
        assert exc.value.requested == 11
        assert exc.value.to_dict()["details"] == {"available": 10, "requested": 11}

    def test_outbound_without_level_is_insufficient_not_missing(self):
        with pytest.raises(InsufficientStockError) as exc:
            validate_movement("out", 1, None)
        assert exc.value.available == 0

    def test_type_checked_before_quantity(self):
        with pytest.raises(InvalidMovementTypeError):
            validate_movement("bogus", -1, None)

    def test_zero_quantity_rejected_for_every_type(self):
        for movement_type in ("in", "out", "adjustment"):
            with pytest.raises(InvalidQuantityError):
                validate_movement(movement_type, 0, level(10))

    def test_transfer_rejected(self):
        with pytest.raises(InvalidMovementTypeError):
            validate_movement("transfer", 1, level(10))

    def test_inbound_overflowing_level_rejected(self):
        with pytest.raises(InvalidQuantityError):
            validate_movement("in", 2, level(MAX_QUANTITY - 1))
        assert validate_movement("adjustment", 1, level(MAX_QUANTITY - 1)).delta == 1

    def test_outbound_from_full_level(self):
        assert validate_movement("out", MAX_QUANTITY, level(MAX_QUANTITY)).delta == -MAX_QUANTITY

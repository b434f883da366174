"""SQLAlchemy models."""

from stockledger.models.user import User
from stockledger.models.supplier import Supplier
from stockledger.models.product import Product
from stockledger.models.warehouse import Warehouse
from stockledger.models.stock import (
    MovementType,
    StockLevel,
    StockMovement,
    SUPPLIER_REFERENCE_TYPE,
)

__all__ = [
    "User",
    "Supplier",
    "Product",
    "Warehouse",
    "MovementType",
    "StockLevel",
    "StockMovement",
    "SUPPLIER_REFERENCE_TYPE",
]

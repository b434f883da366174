"""Stock ledger services."""

from stockledger.services.ledger_store import LedgerStore
from stockledger.services.stock_report_service import StockReportService, get_stock_report_service
from stockledger.services.stock_service import StockMovementService, get_stock_service

__all__ = [
    "LedgerStore",
    "StockMovementService",
    "StockReportService",
    "get_stock_report_service",
    "get_stock_service",
]

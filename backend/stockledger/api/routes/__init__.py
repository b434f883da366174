"""API routes."""

from fastapi import APIRouter

from stockledger.api.routes import auth, products, reports, stock

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(stock.router, tags=["stock"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
api_router.include_router(products.router, prefix="/products", tags=["products"])

"""Pytest configuration and fixtures."""

import os

# Keep the application engine off the developer database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "")

import pytest
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stockledger.core.rbac import UserRole
from stockledger.core.security import get_password_hash, create_access_token
from stockledger.db.base import Base
from stockledger.db.session import enable_sqlite_foreign_keys, get_db
from stockledger.main import app
# Import all models to ensure they're registered with Base.metadata
from stockledger.models import *
from stockledger.models.user import User
from stockledger.models.supplier import Supplier
from stockledger.models.product import Product
from stockledger.models.warehouse import Warehouse
from stockledger.services.stock_service import StockMovementService

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", enable_sqlite_foreign_keys)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiters during tests to avoid flaky failures
    from stockledger.core.rate_limit import limiter, user_limiter
    limiter.enabled = False
    user_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    limiter.enabled = True
    user_limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def service(db_session: Session) -> StockMovementService:
    return StockMovementService(db_session)


@pytest.fixture
def test_user(db_session: Session) -> User:
    """Create a test user."""
    user = User(
        email="test@example.com",
        password_hash=get_password_hash("testpass123"),
        role=UserRole.OWNER,
        first_name="Test",
        last_name="User",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def receiver(db_session: Session) -> User:
    """Warehouse staff member who signs for deliveries."""
    user = User(
        email="receiver@example.com",
        password_hash=get_password_hash("receiverpass1"),
        role=UserRole.STAFF,
        first_name="Rita",
        last_name="Receiver",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def auth_token(test_user: User) -> str:
    """Get an authentication token for the test user."""
    return create_access_token(
        data={"sub": str(test_user.id), "email": test_user.email, "role": test_user.role.value}
    )


@pytest.fixture
def auth_headers(auth_token: str) -> dict:
    """Get authentication headers."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def test_supplier(db_session: Session) -> Supplier:
    """Create a test supplier."""
    supplier = Supplier(
        name="Test Supplier",
        contact_person="Sam Supplier",
        email="supplier@example.com",
        phone="+1234567890",
    )
    db_session.add(supplier)
    db_session.commit()
    db_session.refresh(supplier)
    return supplier


@pytest.fixture
def test_products(db_session: Session, test_supplier: Supplier) -> list:
    """Create two products from the test supplier."""
    products = [
        Product(sku="WID-001", name="Blue Widget", supplier_id=test_supplier.id, unit_price=2.50),
        Product(sku="GAD-002", name="Red Gadget", supplier_id=test_supplier.id, unit_price=7.00),
    ]
    db_session.add_all(products)
    db_session.commit()
    for product in products:
        db_session.refresh(product)
    return products


@pytest.fixture
def test_product(test_products: list) -> Product:
    return test_products[0]


@pytest.fixture
def test_warehouses(db_session: Session) -> list:
    """Create two warehouses."""
    warehouses = [
        Warehouse(name="Central", location="Sofia"),
        Warehouse(name="North", location="Pleven"),
    ]
    db_session.add_all(warehouses)
    db_session.commit()
    for warehouse in warehouses:
        db_session.refresh(warehouse)
    return warehouses


@pytest.fixture
def test_warehouse(test_warehouses: list) -> Warehouse:
    return test_warehouses[0]

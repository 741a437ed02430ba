"""
Test configuration and fixtures
Shared SQLite in-memory database, catalog and API client
"""

from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stockledger.core.security import create_access_token, hash_password
from stockledger.db.database import Base, build_engine, get_db, init_schema
from stockledger.main import app
from stockledger.models.user import User, UserRole
from stockledger.services.catalog import InventoryCatalog
from stockledger.services.ledger import AdjustmentLedger
from stockledger.services.locking import SkuLockRegistry

engine = build_engine("sqlite://", poolclass=StaticPool)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Fresh schema per test"""
    init_schema(engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def catalog(db_session: Session) -> InventoryCatalog:
    return InventoryCatalog(db_session)


@pytest.fixture
def products(db_session: Session, catalog: InventoryCatalog):
    """SKU-100 plus two cheap lines for multi-item adjustments"""
    created = {
        "SKU-100": catalog.create_product(sku="SKU-100", name="Widget", quantity=50, unit_cost=Decimal("20")),
        "A": catalog.create_product(sku="A", name="Bolt", quantity=40, unit_cost=Decimal("10")),
        "B": catalog.create_product(sku="B", name="Bracket", quantity=6, unit_cost=Decimal("50")),
    }
    db_session.commit()
    return created


@pytest.fixture
def ledger(db_session: Session, catalog: InventoryCatalog) -> AdjustmentLedger:
    return AdjustmentLedger(
        db_session,
        catalog=catalog,
        auto_approve=False,
        strict_approval=True,
        locks=SkuLockRegistry(),
    )


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Test client with the database dependency pointed at the test session"""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        app.dependency_overrides.clear()


def _make_user(db_session: Session, username: str, role: UserRole) -> User:
    user = User(
        email=f"{username}@stockledger.test",
        username=username,
        full_name=username.replace("_", " ").title(),
        password_hash=hash_password("correct-horse-battery"),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def manager(db_session: Session) -> User:
    return _make_user(db_session, "stock_manager", UserRole.STOCK_MANAGER)


@pytest.fixture
def storekeeper(db_session: Session) -> User:
    return _make_user(db_session, "storekeeper", UserRole.STOREKEEPER)


@pytest.fixture
def manager_headers(manager: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(manager.id), manager.role.value)}"}


@pytest.fixture
def storekeeper_headers(storekeeper: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(storekeeper.id), storekeeper.role.value)}"}

"""
Shared pytest fixtures for the BullionPOS test suite.

Uses FastAPI TestClient with an isolated temporary database so tests
never touch the production database.
"""

import os
import tempfile
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from bullionpos.database import Base, get_db
from bullionpos.main import app
from bullionpos.models.store import KeyValue  # noqa: F401
from bullionpos.schemas.pricing import SpotPrices
from bullionpos.schemas.settings import Settings
from bullionpos.schemas.transaction import Transaction

BASE_SETTINGS = {
    "shopName": "Test Bullion Shop",
    "sellPremCoins": 7, "sellPremBars": 5, "sellPremScrap": 3, "sellPremJunk": 7,
    "buyDiscCoins": 3, "buyDiscBars": 5, "buyDiscScrap": 8, "buyDiscJunk": 3,
    "whDiscCoins": 1, "whDiscBars": 2, "whDiscScrap": 3, "whDiscJunk": 1,
    "tradeInDiscCoins": 4, "tradeInDiscBars": 4, "tradeInDiscScrap": 10, "tradeInDiscJunk": 4,
    "tradeOutPremCoins": 6, "tradeOutPremBars": 6, "tradeOutPremScrap": 4, "tradeOutPremJunk": 6,
    "coinAdjustments": {
        "eagles": 0, "maples": 0, "krugerrands": 0,
        "britannias": 0, "philharmonics": 0, "pre33": 0,
    },
    "junkMultiplier": 0.715,
    "threshGold": 10,
    "threshSilver": 500,
}


@pytest.fixture
def settings():
    return Settings.model_validate(BASE_SETTINGS)


@pytest.fixture
def spot():
    return SpotPrices(gold=Decimal("2500"), silver=Decimal("32"))


@pytest.fixture
def make_tx():
    """
    Factory for stored-shape transactions (legacy flat shape by default).
    Usage: make_tx("t1", qty=20, customer_id="C", date="2025-01-15T12:00:00Z")
    """
    def _make(tx_id, **overrides):
        record = {
            "id": tx_id,
            "date": datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc),
            "type": "buy",
            "metal": "gold",
            "form": "bars",
            "qty": 1,
            "spot": 2500,
            "price": 2375,
            "payment": "wire",
        }
        record.update(overrides)
        if "total" not in overrides and record.get("qty") is not None and record.get("price") is not None:
            record["total"] = Decimal(str(record["qty"])) * Decimal(str(record["price"]))
        return Transaction.model_validate(record)
    return _make


@pytest.fixture(scope="session")
def test_engine():
    """Create a temporary SQLite database for the entire test session."""
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    engine = create_engine(
        f"sqlite:///{tmp.name}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()
    os.unlink(tmp.name)


@pytest.fixture
def db_session(test_engine):
    """Fresh session per test; the key/value table is emptied afterwards."""
    Session = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)
    db = Session()
    try:
        yield db
    finally:
        db.query(KeyValue).delete()
        db.commit()
        db.close()


@pytest.fixture
def client(test_engine, db_session):
    """
    TestClient whose get_db yields sessions on the temporary database.
    Not entered as a context manager, so startup never touches the real DB.
    """
    Session = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)

    def override_get_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()

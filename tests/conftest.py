"""Pytest fixtures for agrimart tests."""

import os
import threading
from collections import defaultdict
from contextlib import contextmanager
from decimal import Decimal

# point the module-level engine away from postgres before agrimart is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SELLER_HOME_STATE", "Maharashtra")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from agrimart.data.database import Base
from agrimart.data.models import ProductModel, ProductTierModel
from agrimart.domain.errors import NotFound
from agrimart.repos.product_repo import ProductRepo


class InMemoryLockService:
    """Per-order lock with the same context-manager surface as LockService."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = defaultdict(threading.Lock)
        self.acquired = []

    @contextmanager
    def order_lock(self, order_id: int):
        with self._guard:
            lock = self._locks[order_id]
        with lock:
            self.acquired.append(order_id)
            yield


class PassThroughLockService:
    """Takes no lock at all, leaving only the version guard on the order row."""

    @contextmanager
    def order_lock(self, order_id: int):
        yield


class StubProfileClient:
    def __init__(self, profiles=None):
        self.profiles = profiles or {}
        self.calls = []

    def fetch_profile(self, buyer_id: int) -> dict:
        self.calls.append(buyer_id)
        if buyer_id in self.profiles:
            profile = self.profiles[buyer_id]
            if profile is None:
                raise NotFound("buyer", buyer_id)
            return profile
        return {
            "name": f"Buyer {buyer_id}",
            "email": f"buyer{buyer_id}@example.com",
            "phone": "9800000000",
            "business_name": "Green Fields Agro Centre",
            "gstin": "27ABCDE1234F1Z5",
        }


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def order_placed(self, buyer_id, order_id, order_number):
        self.events.append(("order_placed", order_id))

    def order_status_changed(self, buyer_id, order_id, status):
        self.events.append(("status_changed", order_id, status))

    def payment_submitted(self, order_id, order_number):
        self.events.append(("payment_submitted", order_id))


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so several sessions (and threads) share one database."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'agrimart.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def lock_service():
    return InMemoryLockService()


@pytest.fixture
def passthrough_lock():
    return PassThroughLockService()


@pytest.fixture
def profile_client():
    return StubProfileClient()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_product(db):
    """Create a product; tiers are (min_qty, max_qty, unit_price, discount_pct) tuples."""

    def _make(
        name="Chlorpyrifos 20% EC (1 L)",
        unit="bottle",
        unit_price="100.00",
        gst_rate=18,
        stock_total=100,
        stock_reserved=0,
        min_order_qty=1,
        max_order_qty=None,
        tiers=(),
        low_stock_threshold=10,
        is_active=True,
        hsn_code="38089199",
    ):
        product = ProductModel(
            name=name,
            unit=unit,
            hsn_code=hsn_code,
            unit_price=Decimal(unit_price),
            gst_rate=gst_rate,
            min_order_qty=min_order_qty,
            max_order_qty=max_order_qty,
            stock_total=stock_total,
            stock_reserved=stock_reserved,
            low_stock_threshold=low_stock_threshold,
            is_active=is_active,
        )
        product.tiers = [
            ProductTierModel(min_qty=lo, max_qty=hi, unit_price=Decimal(price), discount_pct=Decimal(pct))
            for lo, hi, price, pct in tiers
        ]
        return ProductRepo(db).create_product(product)

    return _make


@pytest.fixture
def address():
    return {
        "name": "Ramesh Patil",
        "phone": "9822012345",
        "street": "Plot 14, Market Yard",
        "city": "Nashik",
        "district": "Nashik",
        "state": "Maharashtra",
        "pincode": "422003",
    }


@pytest.fixture
def interstate_address(address):
    return {**address, "city": "Belagavi", "district": "Belagavi", "state": "Karnataka", "pincode": "590001"}

"""Pytest configuration and fixtures"""
import asyncio
import json
import os
from decimal import Decimal
from typing import Dict, Optional, Tuple

import pytest

# Keep config deterministic regardless of the developer's .env
os.environ.setdefault("STOREFRONT_TAX_RATE_PERCENT", "8.25")

from storefront.cart import (  # noqa: E402
    Availability,
    Cart,
    CartEngine,
    CartStores,
    IdentityRef,
    MergeCoordinator,
    TransitionLocks,
)
from storefront.checkout import CheckoutCalculator  # noqa: E402
from storefront.errors import CatalogUnavailableError, StorePersistenceFailure  # noqa: E402


class FakeCatalog:
    """In-memory catalog keyed by (product_id, variant_id)."""

    def __init__(self):
        self.items: Dict[Tuple[str, Optional[str]], Availability] = {}
        self.unreachable = False
        self.calls = 0
        self.gates: Dict[Tuple[str, Optional[str]], asyncio.Event] = {}
        self.parked = set()

    def stock(
        self,
        product_id: str,
        variant_id: Optional[str] = None,
        *,
        price: str = "20.00",
        quantity: int = 10,
        active: bool = True,
        name: str = "Test Product",
    ) -> None:
        self.items[(product_id, variant_id)] = Availability(
            active=active,
            unit_price=Decimal(price),
            available_quantity=quantity,
            name=name,
            image_url=f"https://cdn.example.com/{product_id}.jpg",
        )

    def remove(self, product_id: str, variant_id: Optional[str] = None) -> None:
        self.items.pop((product_id, variant_id), None)

    def gate(self, product_id: str, variant_id: Optional[str] = None) -> asyncio.Event:
        """Park lookups of this item until the returned event is set."""
        event = asyncio.Event()
        self.gates[(product_id, variant_id)] = event
        return event

    async def get_availability(self, product_id, variant_id=None):
        self.calls += 1
        if self.unreachable:
            raise CatalogUnavailableError()
        gate = self.gates.get((product_id, variant_id))
        if gate is not None:
            self.parked.add((product_id, variant_id))
            await gate.wait()
        return self.items.get((product_id, variant_id))


class MemoryCartStore:
    """Cart store keeping serialized JSON per identity, like a key-value backend."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.fail_saves = False
        self.fail_clears = False
        self.writes = 0

    async def load(self, identity: IdentityRef) -> Cart:
        raw = self.data.get(identity.key)
        if raw is None:
            return Cart(identity=identity)
        return Cart.from_dict(identity, json.loads(raw))

    async def save(self, identity: IdentityRef, cart: Cart) -> None:
        if self.fail_saves:
            raise StorePersistenceFailure()
        self.writes += 1
        self.data[identity.key] = json.dumps(cart.to_dict())

    async def clear(self, identity: IdentityRef) -> None:
        if self.fail_clears:
            raise StorePersistenceFailure()
        self.writes += 1
        self.data.pop(identity.key, None)


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def device_store():
    return MemoryCartStore()


@pytest.fixture
def user_store():
    return MemoryCartStore()


@pytest.fixture
def stores(device_store, user_store):
    return CartStores(device=device_store, authenticated=user_store)


@pytest.fixture
def locks():
    return TransitionLocks()


@pytest.fixture
def engine(catalog, stores, locks):
    return CartEngine(catalog, stores, locks)


@pytest.fixture
def coordinator(catalog, stores, locks):
    return MergeCoordinator(catalog, stores, locks)


@pytest.fixture
def calculator():
    return CheckoutCalculator(tax_rate_percent="8.25")


@pytest.fixture
def anonymous():
    return IdentityRef.anonymous("device-abc")


@pytest.fixture
def user():
    return IdentityRef.user("user-123")

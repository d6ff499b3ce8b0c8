"""Cart package: models, stores, engine and sign-in merge."""
from .catalog import Availability, CatalogLookup
from .locks import TransitionLocks
from .merge import MergeCoordinator, MergeResult, get_merge_coordinator
from .models import (
    Cart,
    CartLine,
    CartMutation,
    CartSnapshot,
    CheckoutValidation,
    ClampNotice,
    DropReason,
    IdentityRef,
    LineCheck,
    LineStatus,
    PricedLine,
)
from .service import CartEngine, get_cart_engine
from .storage import CartStore, CartStores, DeviceCartStore, RedisCartStore

__all__ = [
    "Availability",
    "CatalogLookup",
    "TransitionLocks",
    "MergeCoordinator",
    "MergeResult",
    "get_merge_coordinator",
    "Cart",
    "CartLine",
    "CartMutation",
    "CartSnapshot",
    "CheckoutValidation",
    "ClampNotice",
    "DropReason",
    "IdentityRef",
    "LineCheck",
    "LineStatus",
    "PricedLine",
    "CartEngine",
    "get_cart_engine",
    "CartStore",
    "CartStores",
    "DeviceCartStore",
    "RedisCartStore",
]

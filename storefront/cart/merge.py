"""Merge coordinator: folds the anonymous cart into the user's cart on sign-in."""
import asyncio
from dataclasses import dataclass
from typing import List, Optional, Tuple

from storefront.logging import describe_owner, get_logger
from .catalog import Availability, CatalogLookup
from .locks import TransitionLocks
from .models import CartSnapshot, ClampNotice, IdentityRef
from .storage import CartStores

logger = get_logger(__name__)


@dataclass(frozen=True)
class MergeResult:
    merged_cart: CartSnapshot
    clamped_lines: Tuple[ClampNotice, ...] = ()

    def to_dict(self) -> dict:
        return {
            "cart": self.merged_cart.to_dict(),
            "clamped_lines": [notice.to_dict() for notice in self.clamped_lines],
        }


def _mergeable_quantity(availability: Optional[Availability]) -> int:
    """Stock a merged line may hold; missing or inactive products hold none."""
    if availability is None or not availability.active:
        return 0
    return max(0, availability.available_quantity)


class MergeCoordinator:
    """
    Runs once per sign-in transition.

    Steps:
    1. Hold both identities' locks; cart calls already in flight finish first
    2. Load the anonymous cart; if it is empty there is nothing to do
    3. Add each anonymous line into the user's cart, clamped to stock
    4. Save the user's cart
    5. Clear the anonymous cart

    The merge never fails because of stock: clamping is the only lossy step
    and every clamp is reported. If step 4 fails the anonymous cart is kept,
    so the next sign-in retries the same merge. Once step 5 has run,
    re-running is a no-op.
    """

    def __init__(self, catalog: CatalogLookup, stores: CartStores, locks: TransitionLocks):
        self.catalog = catalog
        self.stores = stores
        self.locks = locks

    async def merge_on_sign_in(
        self,
        anonymous_ref: IdentityRef,
        authenticated_ref: IdentityRef,
    ) -> MergeResult:
        if anonymous_ref.is_authenticated:
            raise ValueError("anonymous_ref must be an anonymous identity")
        if not authenticated_ref.is_authenticated:
            raise ValueError("authenticated_ref must be a user identity")

        anonymous_store = self.stores.for_identity(anonymous_ref)
        user_store = self.stores.for_identity(authenticated_ref)
        who = describe_owner(authenticated_ref)

        # User lock first, then the device: engine calls only ever hold one
        async with self.locks.hold(authenticated_ref), self.locks.hold(anonymous_ref):
            anonymous_cart = await anonymous_store.load(anonymous_ref)
            user_cart = await user_store.load(authenticated_ref)

            if anonymous_cart.is_empty:
                return MergeResult(merged_cart=user_cart.snapshot())

            availabilities = await asyncio.gather(
                *[
                    self.catalog.get_availability(line.product_id, line.variant_id)
                    for line in anonymous_cart.lines
                ]
            )

            clamped: List[ClampNotice] = []

            for line, availability in zip(anonymous_cart.lines, availabilities):
                limit = _mergeable_quantity(availability)
                existing = user_cart.find(*line.key)
                wanted = line.quantity + (existing.quantity if existing else 0)
                applied = min(wanted, limit)

                if applied < wanted:
                    clamped.append(
                        ClampNotice(line.product_id, line.variant_id, requested=wanted, applied=applied)
                    )

                if applied <= 0:
                    if existing:
                        user_cart.remove(*line.key)
                    continue

                user_cart.put((existing or line).with_quantity(applied))

            # Persist first: a failure here leaves the anonymous cart for a retry
            await user_store.save(authenticated_ref, user_cart)
            await anonymous_store.clear(anonymous_ref)

        if clamped:
            logger.warning(f"Merged cart for {who} with {len(clamped)} clamped line(s)")
        logger.info(
            f"Merged {len(anonymous_cart.lines)} anonymous line(s) into cart of {who}"
        )

        return MergeResult(merged_cart=user_cart.snapshot(), clamped_lines=tuple(clamped))


# Singleton instance
_merge_coordinator: Optional[MergeCoordinator] = None


def get_merge_coordinator() -> MergeCoordinator:
    """Get MergeCoordinator singleton sharing the engine's catalog, stores and locks."""
    global _merge_coordinator
    if _merge_coordinator is None:
        from .service import get_cart_engine

        engine = get_cart_engine()
        _merge_coordinator = MergeCoordinator(engine.catalog, engine.stores, engine.locks)
    return _merge_coordinator

"""Cart engine: validated cart mutations persisted through the identity's store."""
import asyncio
from typing import Optional

from storefront.errors import (
    ERROR_PRODUCT_INACTIVE,
    InsufficientInventoryError,
    NotFoundError,
)
from storefront.logging import describe_owner, get_logger
from .catalog import Availability, CatalogLookup
from .locks import TransitionLocks
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
)
from .storage import CartStore, CartStores

logger = get_logger(__name__)


def _check_line(line: CartLine, availability: Optional[Availability]) -> LineCheck:
    """Classify one line against live availability."""
    if availability is None:
        return LineCheck(line=line, status=LineStatus.DROPPED, quantity=0, reason=DropReason.NOT_FOUND)
    if not availability.active:
        return LineCheck(line=line, status=LineStatus.DROPPED, quantity=0, reason=DropReason.INACTIVE)
    available = availability.available_quantity
    if available <= 0:
        return LineCheck(line=line, status=LineStatus.DROPPED, quantity=0, reason=DropReason.OUT_OF_STOCK)
    if line.quantity > available:
        return LineCheck(
            line=line,
            status=LineStatus.REDUCED,
            quantity=available,
            unit_price=availability.unit_price,
        )
    return LineCheck(
        line=line,
        status=LineStatus.VALID,
        quantity=line.quantity,
        unit_price=availability.unit_price,
    )


class CartEngine:
    """
    Owns cart mutations for every identity.

    Every mutation holds the identity's transition lock while it loads the
    persisted cart, re-validates against the catalog, applies the change and
    writes the whole cart back, so it never interleaves with a sign-in merge
    touching the same cart. Across processes (two tabs hitting different
    workers) carts resolve as last-write-wins at the line-collection level;
    no field-level merge is attempted.

    Usage:
        engine = CartEngine(catalog, CartStores(device_store, redis_store))
        result = await engine.add_line(identity, product_id, variant_id, 2)
        validation = await engine.validate_for_checkout(identity)
    """

    def __init__(
        self,
        catalog: CatalogLookup,
        stores: CartStores,
        locks: Optional[TransitionLocks] = None,
    ):
        self.catalog = catalog
        self.stores = stores
        self.locks = locks or TransitionLocks()

    # ==================== INTERNALS ====================

    def _store(self, identity: IdentityRef) -> CartStore:
        return self.stores.for_identity(identity)

    async def _load(self, identity: IdentityRef) -> Cart:
        return await self._store(identity).load(identity)

    async def _save(self, identity: IdentityRef, cart: Cart) -> None:
        await self._store(identity).save(identity, cart)

    async def _require_available(self, product_id: str, variant_id: Optional[str]) -> Availability:
        availability = await self.catalog.get_availability(product_id, variant_id)
        if availability is None:
            raise NotFoundError(product_id, variant_id)
        if not availability.active:
            raise NotFoundError(product_id, variant_id, ERROR_PRODUCT_INACTIVE)
        return availability

    @staticmethod
    def _check_quantity(quantity) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValueError("quantity must be an integer")

    # ==================== COMMANDS ====================

    async def add_line(
        self,
        identity: IdentityRef,
        product_id: str,
        variant_id: Optional[str] = None,
        quantity: int = 1,
    ) -> CartMutation:
        """
        Add a product/variant to the cart.

        Raises:
            ValueError: quantity is not a positive integer
            NotFoundError: product/variant missing or inactive
            InsufficientInventoryError: quantity alone exceeds stock

        An existing line grows by `quantity` and is clamped to stock; the
        clamp is reported as a notice rather than an error.
        """
        self._check_quantity(quantity)
        if quantity < 1:
            raise ValueError("quantity must be a positive integer")

        async with self.locks.hold(identity):
            cart = await self._load(identity)
            availability = await self._require_available(product_id, variant_id)
            available = availability.available_quantity

            if quantity > available:
                raise InsufficientInventoryError(product_id, variant_id, quantity, available)

            notices = []
            existing = cart.find(product_id, variant_id)

            if existing:
                wanted = existing.quantity + quantity
                applied = min(wanted, available)
                if applied < wanted:
                    notices.append(ClampNotice(product_id, variant_id, requested=wanted, applied=applied))
                    logger.warning(
                        f"Clamped {product_id} for {describe_owner(identity)} from {wanted} to {applied}"
                    )
                cart.put(
                    CartLine(
                        line_id=existing.line_id,
                        product_id=product_id,
                        variant_id=variant_id,
                        quantity=applied,
                        product_name=availability.name or existing.product_name,
                        unit_price=availability.unit_price,
                        image_url=availability.image_url or existing.image_url,
                        added_at=existing.added_at,
                    )
                )
            else:
                cart.put(
                    CartLine.create(
                        product_id=product_id,
                        variant_id=variant_id,
                        quantity=quantity,
                        product_name=availability.name,
                        unit_price=availability.unit_price,
                        image_url=availability.image_url,
                    )
                )

            await self._save(identity, cart)

        logger.info(f"Added {quantity} x {product_id} to cart of {describe_owner(identity)}")
        return CartMutation(cart=cart.snapshot(), notices=tuple(notices))

    async def remove_line(
        self,
        identity: IdentityRef,
        product_id: str,
        variant_id: Optional[str] = None,
    ) -> CartMutation:
        """Remove a line. Removing an absent line writes nothing."""
        async with self.locks.hold(identity):
            cart = await self._load(identity)
            removed = cart.remove(product_id, variant_id)
            if removed:
                await self._save(identity, cart)

        if removed:
            logger.info(f"Removed {product_id} from cart of {describe_owner(identity)}")
        return CartMutation(cart=cart.snapshot())

    async def set_quantity(
        self,
        identity: IdentityRef,
        product_id: str,
        variant_id: Optional[str] = None,
        quantity: int = 0,
    ) -> CartMutation:
        """
        Set a line to an exact quantity typed by the user.

        quantity <= 0 removes the line. Unlike add_line, exceeding stock is
        an error (InsufficientInventoryError) and never clamps. A missing
        line is created at the requested quantity.
        """
        self._check_quantity(quantity)
        if quantity <= 0:
            return await self.remove_line(identity, product_id, variant_id)

        async with self.locks.hold(identity):
            cart = await self._load(identity)
            availability = await self._require_available(product_id, variant_id)

            if quantity > availability.available_quantity:
                raise InsufficientInventoryError(
                    product_id, variant_id, quantity, availability.available_quantity
                )

            existing = cart.find(product_id, variant_id)
            if existing:
                cart.put(existing.with_quantity(quantity))
            else:
                cart.put(
                    CartLine.create(
                        product_id=product_id,
                        variant_id=variant_id,
                        quantity=quantity,
                        product_name=availability.name,
                        unit_price=availability.unit_price,
                        image_url=availability.image_url,
                    )
                )

            await self._save(identity, cart)

        logger.info(f"Set {product_id} to {quantity} in cart of {describe_owner(identity)}")
        return CartMutation(cart=cart.snapshot())

    async def clear(self, identity: IdentityRef) -> CartSnapshot:
        """Empty the cart (explicit clear or completed checkout)."""
        async with self.locks.hold(identity):
            await self._store(identity).clear(identity)
        logger.info(f"Cleared cart of {describe_owner(identity)}")
        return CartSnapshot(identity=identity)

    async def apply_validation(
        self,
        identity: IdentityRef,
        validation: CheckoutValidation,
    ) -> CartSnapshot:
        """
        Apply the reductions and drops of a validation and persist.

        Lines are matched by key against the current stored cart, so a line
        changed by another session in the meantime is only ever lowered.
        """
        async with self.locks.hold(identity):
            cart = await self._load(identity)
            changed = False

            for check in validation.dropped:
                changed = cart.remove(*check.line.key) or changed

            for check in validation.reduced:
                current = cart.find(*check.line.key)
                if current and current.quantity > check.quantity:
                    cart.put(current.with_quantity(check.quantity))
                    changed = True

            if changed:
                await self._save(identity, cart)

        if changed:
            logger.info(
                f"Applied checkout adjustments for {describe_owner(identity)}: "
                f"{len(validation.reduced)} reduced, {len(validation.dropped)} dropped"
            )
        return cart.snapshot()

    # ==================== QUERIES ====================

    async def snapshot(self, identity: IdentityRef) -> CartSnapshot:
        """Immutable copy of the stored cart. Does not re-validate."""
        await self.locks.wait_idle(identity)
        cart = await self._load(identity)
        return cart.snapshot()

    async def validate_for_checkout(self, identity: IdentityRef) -> CheckoutValidation:
        """
        Re-validate every line against the catalog.

        Never raises for individual lines; they are classified as valid,
        reduced or dropped. Only an unreachable catalog raises
        (CatalogUnavailableError). The stored cart is not modified.
        """
        await self.locks.wait_idle(identity)
        cart = await self._load(identity)

        availabilities = await asyncio.gather(
            *[self.catalog.get_availability(line.product_id, line.variant_id) for line in cart.lines]
        )

        checks = tuple(_check_line(line, availability) for line, availability in zip(cart.lines, availabilities))
        validation = CheckoutValidation(identity=identity, checks=checks)

        if validation.has_changes:
            logger.info(
                f"Checkout validation for {describe_owner(identity)}: "
                f"{len(validation.reduced)} reduced, {len(validation.dropped)} dropped"
            )

        return validation


# Singleton instance
_cart_engine: Optional[CartEngine] = None


def get_cart_engine() -> CartEngine:
    """Get CartEngine singleton wired to Supabase, Redis and the device file."""
    global _cart_engine
    if _cart_engine is None:
        from storefront.config import DEVICE_CART_PATH
        from storefront.services.domains import SupabaseCatalog
        from .storage import DeviceCartStore, RedisCartStore

        _cart_engine = CartEngine(
            catalog=SupabaseCatalog(),
            stores=CartStores(
                device=DeviceCartStore(DEVICE_CART_PATH),
                authenticated=RedisCartStore(),
            ),
        )
    return _cart_engine

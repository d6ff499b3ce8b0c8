"""
Cart stores.

Two interchangeable implementations of one contract:
- DeviceCartStore: JSON file on the local device, synchronous I/O
- RedisCartStore: Upstash Redis, network-backed, keyed by user id

Stores raise StorePersistenceFailure when they cannot do their job; they
never retry writes.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol, Union

from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from storefront.db import get_redis, RedisKeys
from storefront.errors import StorePersistenceFailure
from storefront.logging import describe_owner, get_logger
from .models import Cart, IdentityRef

logger = get_logger(__name__)


class CartStore(Protocol):
    """Persistence contract shared by the device-local and authenticated stores."""

    async def load(self, identity: IdentityRef) -> Cart:
        """Return the stored cart, or an empty cart if none is stored."""
        ...

    async def save(self, identity: IdentityRef, cart: Cart) -> None:
        """Durably write the whole cart (last write wins)."""
        ...

    async def clear(self, identity: IdentityRef) -> None:
        """Delete the stored cart."""
        ...


def _decode_cart(identity: IdentityRef, raw) -> Cart:
    """Parse stored JSON; corrupted data reads as an empty cart."""
    if not raw:
        return Cart(identity=identity)
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        return Cart.from_dict(identity, data)
    except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning(
            f"Corrupted cart data for {describe_owner(identity)}: {e}"
        )
        return Cart(identity=identity)


class DeviceCartStore:
    """
    Device-local cart store.

    Keeps one JSON document on disk mapping identity keys to carts. The only
    failures are filesystem errors (disk full, permissions), which surface
    as StorePersistenceFailure.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read_all(self) -> dict:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.error(f"Failed to read device cart file {self.path}: {e}")
            raise StorePersistenceFailure() from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupted device cart file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write-then-rename so a crash never leaves half a file behind
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".cart-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, sort_keys=True)
            os.replace(tmp_name, self.path)
        except OSError as e:
            logger.error(f"Failed to write device cart file {self.path}: {e}")
            raise StorePersistenceFailure() from e

    async def load(self, identity: IdentityRef) -> Cart:
        return _decode_cart(identity, self._read_all().get(identity.key))

    async def save(self, identity: IdentityRef, cart: Cart) -> None:
        data = self._read_all()
        data[identity.key] = cart.to_dict()
        self._write_all(data)

    async def clear(self, identity: IdentityRef) -> None:
        data = self._read_all()
        if identity.key in data:
            del data[identity.key]
            self._write_all(data)


class RedisCartStore:
    """
    Authenticated cart store in Upstash Redis.

    Carts are stored as one JSON value per user without a TTL. Reads are
    retried; writes are not.
    """

    def __init__(self, redis=None):
        self._redis = redis  # Lazy initialization

    @property
    def redis(self):
        """Get Redis client (lazy initialization)."""
        if self._redis is None:
            try:
                self._redis = get_redis()
            except ValueError as e:
                raise StorePersistenceFailure(f"Redis not available: {e}") from e
        return self._redis

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_not_exception_type(StorePersistenceFailure),
    )
    async def _fetch(self, key: str) -> Optional[str]:
        return await self.redis.get(key)

    async def load(self, identity: IdentityRef) -> Cart:
        key = RedisKeys.cart_key(identity.key)
        try:
            raw = await self._fetch(key)
        except StorePersistenceFailure:
            raise
        except Exception as e:
            logger.error(f"Failed to get cart from Redis: {e}")
            raise StorePersistenceFailure() from e
        return _decode_cart(identity, raw)

    async def save(self, identity: IdentityRef, cart: Cart) -> None:
        key = RedisKeys.cart_key(identity.key)
        try:
            await self.redis.set(key, json.dumps(cart.to_dict()))
        except StorePersistenceFailure:
            raise
        except Exception as e:
            logger.error(f"Failed to save cart to Redis: {e}")
            raise StorePersistenceFailure() from e

    async def clear(self, identity: IdentityRef) -> None:
        key = RedisKeys.cart_key(identity.key)
        try:
            await self.redis.delete(key)
        except StorePersistenceFailure:
            raise
        except Exception as e:
            logger.error(f"Failed to clear cart from Redis: {e}")
            raise StorePersistenceFailure() from e


class CartStores:
    """Picks the store that owns a given identity's cart."""

    def __init__(self, device: CartStore, authenticated: CartStore):
        self.device = device
        self.authenticated = authenticated

    def for_identity(self, identity: IdentityRef) -> CartStore:
        return self.authenticated if identity.is_authenticated else self.device

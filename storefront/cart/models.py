"""Cart models: identities, lines, carts and the values derived from them."""
import enum
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Tuple

from storefront.services.money import to_decimal, multiply

ANONYMOUS = "anonymous"
USER = "user"

LineKey = Tuple[str, Optional[str]]  # (product_id, variant_id)


@dataclass(frozen=True)
class IdentityRef:
    """Who owns a cart: an anonymous device or a signed-in user."""
    kind: str
    id: str

    def __post_init__(self):
        if self.kind not in (ANONYMOUS, USER):
            raise ValueError(f"Unknown identity kind: {self.kind}")
        if not self.id:
            raise ValueError("identity id must be a non-empty string")

    @classmethod
    def anonymous(cls, device_id: str) -> "IdentityRef":
        return cls(kind=ANONYMOUS, id=str(device_id))

    @classmethod
    def user(cls, user_id: str) -> "IdentityRef":
        return cls(kind=USER, id=str(user_id))

    @property
    def is_authenticated(self) -> bool:
        return self.kind == USER

    @property
    def key(self) -> str:
        """Storage key, e.g. "anon:<device>" or "user:<id>"."""
        prefix = "user" if self.is_authenticated else "anon"
        return f"{prefix}:{self.id}"


@dataclass(frozen=True)
class CartLine:
    """
    One product/variant row of a cart.

    product_name, unit_price and image_url are a display snapshot taken when
    the line was added. Totals are never computed from them.
    """
    line_id: str
    product_id: str
    variant_id: Optional[str]
    quantity: int
    product_name: str = ""
    unit_price: Decimal = Decimal("0")
    image_url: Optional[str] = None
    added_at: str = ""

    @classmethod
    def create(
        cls,
        product_id: str,
        variant_id: Optional[str],
        quantity: int,
        product_name: str = "",
        unit_price: Decimal = Decimal("0"),
        image_url: Optional[str] = None,
    ) -> "CartLine":
        return cls(
            line_id=uuid.uuid4().hex,
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            product_name=product_name,
            unit_price=to_decimal(unit_price),
            image_url=image_url,
            added_at=datetime.now(timezone.utc).isoformat(),
        )

    @property
    def key(self) -> LineKey:
        return (self.product_id, self.variant_id)

    def with_quantity(self, quantity: int) -> "CartLine":
        return replace(self, quantity=quantity)

    def to_dict(self) -> dict:
        return {
            "line_id": self.line_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "product_name": self.product_name,
            "unit_price": str(self.unit_price),
            "image_url": self.image_url,
            "added_at": self.added_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartLine":
        return cls(
            line_id=data["line_id"],
            product_id=data["product_id"],
            variant_id=data.get("variant_id"),
            quantity=int(data["quantity"]),
            product_name=data.get("product_name", ""),
            unit_price=to_decimal(data.get("unit_price")),
            image_url=data.get("image_url"),
            added_at=data.get("added_at", ""),
        )


@dataclass(frozen=True)
class CartSnapshot:
    """Immutable copy of a cart for display or pricing."""
    identity: IdentityRef
    lines: Tuple[CartLine, ...] = ()

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def find(self, product_id: str, variant_id: Optional[str] = None) -> Optional[CartLine]:
        return next((line for line in self.lines if line.key == (product_id, variant_id)), None)

    def to_dict(self) -> dict:
        return {
            "owner": self.identity.key,
            "lines": [line.to_dict() for line in self.lines],
            "total_items": self.total_items,
        }


@dataclass
class Cart:
    """Ordered cart lines owned by exactly one identity."""
    identity: IdentityRef
    lines: List[CartLine] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def find(self, product_id: str, variant_id: Optional[str] = None) -> Optional[CartLine]:
        return next((line for line in self.lines if line.key == (product_id, variant_id)), None)

    def put(self, line: CartLine) -> None:
        """Replace the line with the same key in place, or append it."""
        for index, existing in enumerate(self.lines):
            if existing.key == line.key:
                self.lines[index] = line
                return
        self.lines.append(line)

    def remove(self, product_id: str, variant_id: Optional[str] = None) -> bool:
        """Remove a line; returns False when there was nothing to remove."""
        before = len(self.lines)
        self.lines = [line for line in self.lines if line.key != (product_id, variant_id)]
        return len(self.lines) != before

    def snapshot(self) -> CartSnapshot:
        return CartSnapshot(identity=self.identity, lines=tuple(self.lines))

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "owner": self.identity.key,
            "lines": [line.to_dict() for line in self.lines],
        }

    @classmethod
    def from_dict(cls, identity: IdentityRef, data: dict) -> "Cart":
        """Rebuild a stored cart. Duplicate keys collapse into the first line."""
        cart = cls(identity=identity)
        for raw in data.get("lines", []):
            line = CartLine.from_dict(raw)
            if line.quantity < 1:
                continue
            existing = cart.find(*line.key)
            if existing:
                cart.put(existing.with_quantity(existing.quantity + line.quantity))
            else:
                cart.lines.append(line)
        return cart


@dataclass(frozen=True)
class ClampNotice:
    """Informational notice: a quantity was silently reduced to what is in stock."""
    product_id: str
    variant_id: Optional[str]
    requested: int
    applied: int

    @property
    def message(self) -> str:
        if self.applied <= 0:
            return "This item is no longer available and was removed from your cart"
        return f"Only {self.applied} available; quantity adjusted from {self.requested}"

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "requested": self.requested,
            "applied": self.applied,
            "message": self.message,
        }


@dataclass(frozen=True)
class CartMutation:
    """Result of a cart mutation: the new cart plus any clamp notices."""
    cart: CartSnapshot
    notices: Tuple[ClampNotice, ...] = ()


class LineStatus(str, enum.Enum):
    """Transient classification of a line against live inventory."""
    UNVALIDATED = "unvalidated"
    VALID = "valid"
    REDUCED = "reduced"
    DROPPED = "dropped"


class DropReason(str, enum.Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out_of_stock"


@dataclass(frozen=True)
class PricedLine:
    """A line priced from the catalog, ready for the checkout calculator."""
    product_id: str
    variant_id: Optional[str]
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return multiply(self.unit_price, self.quantity)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "line_total": str(self.line_total),
        }


@dataclass(frozen=True)
class LineCheck:
    """Validation outcome for a single cart line."""
    line: CartLine
    status: LineStatus
    quantity: int  # quantity that can be fulfilled; 0 when dropped
    unit_price: Optional[Decimal] = None
    reason: Optional[DropReason] = None

    def priced(self) -> PricedLine:
        return PricedLine(
            product_id=self.line.product_id,
            variant_id=self.line.variant_id,
            quantity=self.quantity,
            unit_price=self.unit_price if self.unit_price is not None else Decimal("0"),
        )

    def to_dict(self) -> dict:
        return {
            "line_id": self.line.line_id,
            "product_id": self.line.product_id,
            "variant_id": self.line.variant_id,
            "status": self.status.value,
            "requested": self.line.quantity,
            "quantity": self.quantity,
            "unit_price": None if self.unit_price is None else str(self.unit_price),
            "reason": None if self.reason is None else self.reason.value,
        }


@dataclass(frozen=True)
class CheckoutValidation:
    """
    Partitioned result of re-validating a cart before checkout.

    Never applied automatically: the caller either applies it through the
    engine or halts checkout and shows the diff.
    """
    identity: IdentityRef
    checks: Tuple[LineCheck, ...] = ()

    def _with_status(self, status: LineStatus) -> List[LineCheck]:
        return [check for check in self.checks if check.status == status]

    @property
    def valid(self) -> List[LineCheck]:
        return self._with_status(LineStatus.VALID)

    @property
    def reduced(self) -> List[LineCheck]:
        return self._with_status(LineStatus.REDUCED)

    @property
    def dropped(self) -> List[LineCheck]:
        return self._with_status(LineStatus.DROPPED)

    @property
    def has_changes(self) -> bool:
        return bool(self.reduced or self.dropped)

    def priced_lines(self) -> List[PricedLine]:
        """Valid lines at their quantity and reduced lines at the reduced quantity."""
        return [
            check.priced()
            for check in self.checks
            if check.status in (LineStatus.VALID, LineStatus.REDUCED)
        ]

    def to_dict(self) -> dict:
        return {
            "owner": self.identity.key,
            "has_changes": self.has_changes,
            "valid": [check.to_dict() for check in self.valid],
            "reduced": [check.to_dict() for check in self.reduced],
            "dropped": [check.to_dict() for check in self.dropped],
        }

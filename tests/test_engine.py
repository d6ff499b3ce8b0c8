"""Tests for the cart engine"""
import asyncio
from decimal import Decimal

import pytest

from storefront.cart import DropReason, IdentityRef, LineStatus
from storefront.errors import (
    ERROR_PRODUCT_INACTIVE,
    CatalogUnavailableError,
    InsufficientInventoryError,
    NotFoundError,
    StorePersistenceFailure,
)


# ==================== add_line ====================

@pytest.mark.asyncio
async def test_add_line_creates_line_with_display_snapshot(engine, catalog, anonymous):
    catalog.stock("tee", price="19.99", quantity=5, name="Logo Tee")

    result = await engine.add_line(anonymous, "tee", None, 2)

    line = result.cart.find("tee")
    assert line.quantity == 2
    assert line.product_name == "Logo Tee"
    assert line.unit_price == Decimal("19.99")
    assert result.notices == ()


@pytest.mark.asyncio
async def test_add_line_persists_through_identity_store(engine, catalog, anonymous, user, device_store, user_store):
    catalog.stock("tee")

    await engine.add_line(anonymous, "tee", None, 1)
    assert anonymous.key in device_store.data
    assert user_store.data == {}

    await engine.add_line(user, "tee", None, 1)
    assert user.key in user_store.data


@pytest.mark.asyncio
async def test_add_same_pair_keeps_single_line(engine, catalog, anonymous):
    """Repeated adds of one pair end as one line with summed quantity."""
    catalog.stock("hoodie", "m-black", quantity=10)

    for _ in range(3):
        await engine.add_line(anonymous, "hoodie", "m-black", 2)

    snapshot = await engine.snapshot(anonymous)
    assert len(snapshot.lines) == 1
    assert snapshot.lines[0].quantity == 6


@pytest.mark.asyncio
async def test_add_line_clamps_sum_and_reports_notice(engine, catalog, anonymous):
    catalog.stock("hoodie", "s-red", quantity=3)

    await engine.add_line(anonymous, "hoodie", "s-red", 2)
    result = await engine.add_line(anonymous, "hoodie", "s-red", 2)

    assert result.cart.find("hoodie", "s-red").quantity == 3
    assert len(result.notices) == 1
    notice = result.notices[0]
    assert (notice.requested, notice.applied) == (4, 3)


@pytest.mark.asyncio
async def test_add_line_keeps_line_id_when_growing(engine, catalog, anonymous):
    catalog.stock("tee")

    first = await engine.add_line(anonymous, "tee", None, 1)
    second = await engine.add_line(anonymous, "tee", None, 1)

    assert first.cart.lines[0].line_id == second.cart.lines[0].line_id


@pytest.mark.asyncio
async def test_add_line_rejects_quantity_over_stock(engine, catalog, anonymous, device_store):
    catalog.stock("tee", quantity=3)

    with pytest.raises(InsufficientInventoryError) as exc:
        await engine.add_line(anonymous, "tee", None, 4)

    assert exc.value.available == 3
    assert str(exc.value) == "Only 3 available"
    assert device_store.writes == 0


@pytest.mark.asyncio
async def test_add_line_unknown_product(engine, anonymous):
    with pytest.raises(NotFoundError):
        await engine.add_line(anonymous, "ghost", None, 1)


@pytest.mark.asyncio
async def test_add_line_unknown_variant(engine, catalog, anonymous):
    catalog.stock("hoodie", "s-red")

    with pytest.raises(NotFoundError):
        await engine.add_line(anonymous, "hoodie", "xl-blue", 1)


@pytest.mark.asyncio
async def test_add_line_inactive_product(engine, catalog, anonymous):
    catalog.stock("retired", active=False)

    with pytest.raises(NotFoundError) as exc:
        await engine.add_line(anonymous, "retired", None, 1)

    assert str(exc.value) == ERROR_PRODUCT_INACTIVE


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
async def test_add_line_rejects_bad_quantity(engine, catalog, anonymous, quantity):
    catalog.stock("tee")

    with pytest.raises(ValueError):
        await engine.add_line(anonymous, "tee", None, quantity)


@pytest.mark.asyncio
async def test_add_line_surfaces_store_failure(engine, catalog, user, user_store):
    catalog.stock("tee")
    user_store.fail_saves = True

    with pytest.raises(StorePersistenceFailure):
        await engine.add_line(user, "tee", None, 1)


# ==================== remove_line ====================

@pytest.mark.asyncio
async def test_remove_line(engine, catalog, anonymous):
    catalog.stock("a")
    catalog.stock("b")
    await engine.add_line(anonymous, "a", None, 1)
    await engine.add_line(anonymous, "b", None, 1)

    result = await engine.remove_line(anonymous, "a")

    assert [line.product_id for line in result.cart.lines] == ["b"]


@pytest.mark.asyncio
async def test_remove_absent_line_leaves_store_untouched(engine, catalog, anonymous, device_store):
    catalog.stock("a")
    await engine.add_line(anonymous, "a", None, 1)
    stored_before = device_store.data[anonymous.key]
    writes_before = device_store.writes

    await engine.remove_line(anonymous, "missing")
    await engine.remove_line(anonymous, "a", "some-variant")

    assert device_store.data[anonymous.key] == stored_before
    assert device_store.writes == writes_before


# ==================== set_quantity ====================

@pytest.mark.asyncio
async def test_set_quantity_updates_line(engine, catalog, anonymous):
    catalog.stock("tee", quantity=10)
    await engine.add_line(anonymous, "tee", None, 1)

    result = await engine.set_quantity(anonymous, "tee", None, 7)

    assert result.cart.find("tee").quantity == 7


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -3])
async def test_set_quantity_floor_matches_remove(engine, catalog, quantity):
    catalog.stock("a")
    catalog.stock("b")
    first = IdentityRef.anonymous("device-1")
    second = IdentityRef.anonymous("device-2")
    for identity in (first, second):
        await engine.add_line(identity, "a", None, 2)
        await engine.add_line(identity, "b", None, 1)

    via_set = await engine.set_quantity(first, "a", None, quantity)
    via_remove = await engine.remove_line(second, "a")

    assert [(line.key, line.quantity) for line in via_set.cart.lines] == [
        (line.key, line.quantity) for line in via_remove.cart.lines
    ]
    assert via_set.cart.find("a") is None


@pytest.mark.asyncio
async def test_set_quantity_zero_on_absent_line_is_noop(engine, anonymous, device_store):
    result = await engine.set_quantity(anonymous, "missing", None, 0)

    assert result.cart.is_empty
    assert device_store.writes == 0


@pytest.mark.asyncio
async def test_set_quantity_over_stock_raises_without_clamping(engine, catalog, anonymous):
    catalog.stock("tee", quantity=4)
    await engine.add_line(anonymous, "tee", None, 2)

    with pytest.raises(InsufficientInventoryError) as exc:
        await engine.set_quantity(anonymous, "tee", None, 5)

    assert str(exc.value) == "Only 4 available"
    snapshot = await engine.snapshot(anonymous)
    assert snapshot.find("tee").quantity == 2


@pytest.mark.asyncio
async def test_set_quantity_creates_missing_line(engine, catalog, anonymous):
    catalog.stock("tee", quantity=4)

    result = await engine.set_quantity(anonymous, "tee", None, 3)

    assert result.cart.find("tee").quantity == 3


@pytest.mark.asyncio
async def test_set_quantity_inactive_product(engine, catalog, anonymous):
    catalog.stock("tee", quantity=4)
    await engine.add_line(anonymous, "tee", None, 1)
    catalog.stock("tee", quantity=4, active=False)

    with pytest.raises(NotFoundError):
        await engine.set_quantity(anonymous, "tee", None, 2)


# ==================== clear / snapshot ====================

@pytest.mark.asyncio
async def test_clear_empties_cart(engine, catalog, user, user_store):
    catalog.stock("tee")
    await engine.add_line(user, "tee", None, 1)

    snapshot = await engine.clear(user)

    assert snapshot.is_empty
    assert user.key not in user_store.data
    assert (await engine.snapshot(user)).is_empty


@pytest.mark.asyncio
async def test_snapshot_does_not_hit_catalog(engine, catalog, anonymous):
    catalog.stock("tee")
    await engine.add_line(anonymous, "tee", None, 1)
    calls = catalog.calls

    await engine.snapshot(anonymous)

    assert catalog.calls == calls


@pytest.mark.asyncio
async def test_identities_do_not_share_carts(engine, catalog):
    catalog.stock("tee")
    await engine.add_line(IdentityRef.user("alice"), "tee", None, 1)

    assert (await engine.snapshot(IdentityRef.user("bob"))).is_empty


# ==================== validate_for_checkout ====================

@pytest.mark.asyncio
async def test_validate_partitions_lines(engine, catalog, user, user_store):
    catalog.stock("ok", price="10.00", quantity=5)
    catalog.stock("short", price="12.00", quantity=5)
    catalog.stock("gone", quantity=5)
    catalog.stock("off", quantity=5)
    catalog.stock("empty", quantity=5)
    for product_id in ("ok", "short", "gone", "off", "empty"):
        await engine.add_line(user, product_id, None, 3)
    stored_before = user_store.data[user.key]

    catalog.stock("short", price="12.00", quantity=2)
    catalog.remove("gone")
    catalog.stock("off", quantity=5, active=False)
    catalog.stock("empty", quantity=0)

    validation = await engine.validate_for_checkout(user)

    assert [c.line.product_id for c in validation.valid] == ["ok"]
    assert [(c.line.product_id, c.quantity) for c in validation.reduced] == [("short", 2)]
    reasons = {c.line.product_id: c.reason for c in validation.dropped}
    assert reasons == {
        "gone": DropReason.NOT_FOUND,
        "off": DropReason.INACTIVE,
        "empty": DropReason.OUT_OF_STOCK,
    }
    assert validation.has_changes
    assert user_store.data[user.key] == stored_before


@pytest.mark.asyncio
async def test_validate_uses_catalog_price_not_snapshot(engine, catalog, anonymous):
    catalog.stock("tee", price="20.00")
    await engine.add_line(anonymous, "tee", None, 2)
    catalog.stock("tee", price="25.00")

    validation = await engine.validate_for_checkout(anonymous)

    priced = validation.priced_lines()
    assert priced[0].unit_price == Decimal("25.00")
    assert priced[0].line_total == Decimal("50.00")
    assert validation.valid[0].status == LineStatus.VALID


@pytest.mark.asyncio
async def test_validate_raises_when_catalog_unreachable(engine, catalog, anonymous):
    catalog.stock("tee")
    await engine.add_line(anonymous, "tee", None, 1)
    catalog.unreachable = True

    with pytest.raises(CatalogUnavailableError):
        await engine.validate_for_checkout(anonymous)


@pytest.mark.asyncio
async def test_apply_validation_reduces_and_drops(engine, catalog, user):
    catalog.stock("short", quantity=5)
    catalog.stock("gone", quantity=5)
    await engine.add_line(user, "short", None, 4)
    await engine.add_line(user, "gone", None, 1)
    catalog.stock("short", quantity=1)
    catalog.remove("gone")

    validation = await engine.validate_for_checkout(user)
    snapshot = await engine.apply_validation(user, validation)

    assert [(line.product_id, line.quantity) for line in snapshot.lines] == [("short", 1)]
    assert not (await engine.validate_for_checkout(user)).has_changes


# ==================== merge ordering ====================

@pytest.mark.asyncio
async def test_engine_waits_for_running_merge(engine, catalog, user, locks):
    catalog.stock("tee")
    order = []

    async def merge_like():
        async with locks.hold(user):
            order.append("merge-start")
            await asyncio.sleep(0.01)
            order.append("merge-end")

    async def add():
        await asyncio.sleep(0)
        await engine.add_line(user, "tee", None, 1)
        order.append("add")

    await asyncio.gather(merge_like(), add())

    assert order == ["merge-start", "merge-end", "add"]

"""
Cart Router

Thin HTTP layer over the cart engine, merge coordinator and checkout
calculator. The caller's identity comes from headers: X-User-Id for a
signed-in user, otherwise X-Device-Id for an anonymous device.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from storefront.cart import (
    CartEngine,
    IdentityRef,
    MergeCoordinator,
    get_cart_engine,
    get_merge_coordinator,
)
from storefront.checkout import CheckoutCalculator, get_checkout_calculator
from storefront.errors import (
    CatalogUnavailableError,
    InsufficientInventoryError,
    NotFoundError,
    StorePersistenceFailure,
)
from storefront.logging import get_logger
from .models import AddLineRequest, MergeRequest, QuoteRequest, SetQuantityRequest

logger = get_logger(__name__)

router = APIRouter(prefix="/cart", tags=["cart"])


def get_identity(
    x_user_id: Optional[str] = Header(None),
    x_device_id: Optional[str] = Header(None),
) -> IdentityRef:
    if x_user_id:
        return IdentityRef.user(x_user_id)
    if x_device_id:
        return IdentityRef.anonymous(x_device_id)
    raise HTTPException(status_code=401, detail="X-User-Id or X-Device-Id header required")


def _raise_http(error: Exception):
    """Translate cart errors to HTTP errors."""
    if isinstance(error, NotFoundError):
        raise HTTPException(status_code=404, detail=str(error))
    if isinstance(error, InsufficientInventoryError):
        raise HTTPException(
            status_code=409,
            detail={"message": str(error), "available": error.available},
        )
    if isinstance(error, ValueError):
        raise HTTPException(status_code=400, detail=str(error))
    if isinstance(error, (StorePersistenceFailure, CatalogUnavailableError)):
        logger.error(f"Cart backend failure: {error}")
        raise HTTPException(status_code=503, detail=str(error))
    raise error


def _mutation_response(mutation) -> dict:
    return {
        "cart": mutation.cart.to_dict(),
        "notices": [notice.to_dict() for notice in mutation.notices],
    }


@router.get("")
async def get_cart(
    identity: IdentityRef = Depends(get_identity),
    engine: CartEngine = Depends(get_cart_engine),
):
    try:
        snapshot = await engine.snapshot(identity)
    except Exception as e:
        _raise_http(e)
    return {"cart": snapshot.to_dict()}


@router.post("/lines")
async def add_line(
    request: AddLineRequest,
    identity: IdentityRef = Depends(get_identity),
    engine: CartEngine = Depends(get_cart_engine),
):
    try:
        mutation = await engine.add_line(
            identity, request.product_id, request.variant_id, request.quantity
        )
    except Exception as e:
        _raise_http(e)
    return _mutation_response(mutation)


@router.patch("/lines")
async def set_quantity(
    request: SetQuantityRequest,
    identity: IdentityRef = Depends(get_identity),
    engine: CartEngine = Depends(get_cart_engine),
):
    try:
        mutation = await engine.set_quantity(
            identity, request.product_id, request.variant_id, request.quantity
        )
    except Exception as e:
        _raise_http(e)
    return _mutation_response(mutation)


@router.delete("/lines")
async def remove_line(
    product_id: str = Query(...),
    variant_id: Optional[str] = Query(None),
    identity: IdentityRef = Depends(get_identity),
    engine: CartEngine = Depends(get_cart_engine),
):
    try:
        mutation = await engine.remove_line(identity, product_id, variant_id)
    except Exception as e:
        _raise_http(e)
    return _mutation_response(mutation)


@router.delete("")
async def clear_cart(
    identity: IdentityRef = Depends(get_identity),
    engine: CartEngine = Depends(get_cart_engine),
):
    try:
        snapshot = await engine.clear(identity)
    except Exception as e:
        _raise_http(e)
    return {"cart": snapshot.to_dict()}


@router.post("/validate")
async def validate_cart(
    identity: IdentityRef = Depends(get_identity),
    engine: CartEngine = Depends(get_cart_engine),
):
    try:
        validation = await engine.validate_for_checkout(identity)
    except Exception as e:
        _raise_http(e)
    return validation.to_dict()


@router.post("/quote")
async def quote_cart(
    request: QuoteRequest,
    identity: IdentityRef = Depends(get_identity),
    engine: CartEngine = Depends(get_cart_engine),
    calculator: CheckoutCalculator = Depends(get_checkout_calculator),
):
    """Validate, then quote what can actually be fulfilled."""
    try:
        validation = await engine.validate_for_checkout(identity)
        quote = calculator.quote_validation(validation, request.shipping_method)
    except Exception as e:
        _raise_http(e)
    return {"validation": validation.to_dict(), "quote": quote.to_dict()}


@router.post("/merge")
async def merge_cart(
    request: MergeRequest,
    identity: IdentityRef = Depends(get_identity),
    coordinator: MergeCoordinator = Depends(get_merge_coordinator),
):
    """Fold the device's anonymous cart into the signed-in user's cart."""
    if not identity.is_authenticated:
        raise HTTPException(status_code=401, detail="Sign in before merging carts")
    try:
        result = await coordinator.merge_on_sign_in(IdentityRef.anonymous(request.device_id), identity)
    except Exception as e:
        _raise_http(e)
    return result.to_dict()

"""
Storefront cart API - FastAPI application.

Run locally:
    uvicorn storefront.app:app --reload
"""
from fastapi import FastAPI

from storefront import __version__
from storefront.routers import cart_router


def create_app() -> FastAPI:
    app = FastAPI(title="Storefront Cart", version=__version__)

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok"}

    app.include_router(cart_router, prefix="/api")
    return app


app = create_app()

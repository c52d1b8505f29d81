"""
GymShop - Backend API
Tienda de suplementos y equipamiento deportivo
"""
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

from app.api import addresses, auth, orders, products, users, variants
from app.core.config import Settings, get_settings
from app.core.context import AppContext
from app.core.errors import register_exception_handlers

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the FastAPI application

    When `context` is given (tests) it is used as is; otherwise the lifespan
    builds one from the settings and closes its pool on shutdown.
    """
    settings = settings or (context.settings if context else get_settings())

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.context is None
        if owned:
            app.state.context = AppContext.from_settings(settings)
        logger.info(f"{settings.API_TITLE} {settings.API_VERSION} started")
        yield
        if owned:
            app.state.context.close()

    app = FastAPI(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        description=settings.API_DESCRIPTION,
        lifespan=lifespan
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, include_trace=not settings.is_production)

    # Include API routers
    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
    app.include_router(products.router, prefix="/api/products", tags=["Products"])
    app.include_router(variants.router, prefix="/api/products/{product_id}/variants", tags=["Variants"])
    app.include_router(users.router, prefix="/api/users", tags=["Users"])
    app.include_router(addresses.router, prefix="/api/users/{user_id}/addresses", tags=["Addresses"])
    app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])

    @app.get("/api/health")
    def health():
        """Health check endpoint para monitoreo - tests database connectivity"""
        start_time = time.time()

        db_status = "connected"
        db_latency_ms = None
        db_error = None

        try:
            db_latency_ms = app.state.context.db.ping()
        except psycopg2.Error as e:
            db_status = "disconnected"
            db_error = str(e)
            logger.warning(f"Health check: database unreachable: {e}")

        return {
            "success": True,
            "status": "healthy" if db_status == "connected" else "degraded",
            "service": "gymshop-api",
            "version": settings.API_VERSION,
            "environment": settings.ENVIRONMENT,
            "database": {
                "status": db_status,
                "latency_ms": db_latency_ms,
                "error": db_error
            },
            "total_latency_ms": round((time.time() - start_time) * 1000, 2)
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("app.main:app", host=settings.API_HOST, port=settings.API_PORT)

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from app.api.error_handlers import register_exception_handlers
from app.api.middleware import RequestLoggingMiddleware
from app.api.routes import products
from app.config import Settings, settings
from app.database import MongoConnection, log_connection_event
from app.errors import NotFound
from app.models.product import COLLECTION_NAME
from app.services.product_service import ProductService
import asyncio
import logging

logger = logging.getLogger(__name__)

CATCH_ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def log_unhandled_async_error(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Event loop exception handler: report, keep serving."""
    exc = context.get("exception")
    logger.error(
        "Unhandled async error: %s",
        context.get("message", "unknown"),
        exc_info=(type(exc), exc, exc.__traceback__) if exc else None
    )


def create_app(
    app_settings: Optional[Settings] = None,
    connection: Optional[MongoConnection] = None
) -> FastAPI:
    app_settings = app_settings or settings
    if connection is None:
        connection = MongoConnection(app_settings.mongodb_url, app_settings.mongodb_db)
    connection.add_listener(log_connection_event)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Connect before serving; close the connection on shutdown."""
        asyncio.get_running_loop().set_exception_handler(log_unhandled_async_error)
        # a failure here aborts startup
        await connection.connect()
        app.state.product_service = ProductService(connection.collection(COLLECTION_NAME))

        yield

        logger.info("Shutting down: closing MongoDB connection")
        try:
            connection.close()
        except Exception:
            logger.exception("Error during shutdown")
            app.state.shutdown_failed = True

    app = FastAPI(
        title="Products API",
        description="CRUD API for products stored in MongoDB",
        version=app_settings.version,
        lifespan=lifespan
    )
    app.state.settings = app_settings
    app.state.connection = connection
    app.state.shutdown_failed = False

    app.add_middleware(RequestLoggingMiddleware, production=app_settings.is_production)
    register_exception_handlers(app, production=app_settings.is_production)

    @app.get("/")
    async def root():
        """Liveness endpoint."""
        return {
            "message": "Server is running!",
            "version": app_settings.version,
            "endpoints": {"products": "/products"}
        }

    app.include_router(products.router)

    # Must stay the last route registered
    @app.api_route("/{path:path}", methods=CATCH_ALL_METHODS, include_in_schema=False)
    async def route_not_found(path: str):
        raise NotFound("Route not found")

    return app


app = create_app()

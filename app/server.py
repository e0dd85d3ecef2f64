from app.config import settings
from app.logging_config import configure_logging
from app.main import create_app
import logging
import sys
import uvicorn

logger = logging.getLogger(__name__)

ROUTES = (
    ("GET", "/products", "Get all products"),
    ("GET", "/products/:id", "Get product by ID"),
    ("POST", "/products", "Create product"),
    ("PATCH", "/products/:id", "Update product"),
    ("DELETE", "/products/:id", "Delete product"),
)


def log_uncaught_exception(exc_type, exc, tb):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    logger.critical("Uncaught exception: %s", exc, exc_info=(exc_type, exc, tb))


class ProductsServer(uvicorn.Server):
    """uvicorn server that reports readiness once the socket is bound."""

    async def startup(self, sockets=None) -> None:
        await super().startup(sockets=sockets)
        if not self.started:
            return
        log_readiness(self.config.host, self.config.port)


def log_readiness(host: str, port: int) -> None:
    logger.info("Server is running on http://%s:%d", host, port)
    for method, path, description in ROUTES:
        logger.info("  %-6s %-14s - %s", method, path, description)
    logger.info("Press CTRL+C to stop server")


def exit_code(server: uvicorn.Server, application) -> int:
    if not server.started:
        logger.critical("Failed to start server")
        return 1
    if application.state.shutdown_failed:
        return 1
    return 0


def main() -> None:
    configure_logging(settings.log_level)
    sys.excepthook = log_uncaught_exception

    application = create_app(settings)
    config = uvicorn.Config(
        application,
        host=settings.host,
        port=settings.port,
        log_config=None
    )
    server = ProductsServer(config)
    try:
        server.run()
    except KeyboardInterrupt:
        # uvicorn re-raises the captured SIGINT once shutdown has finished
        pass

    sys.exit(exit_code(server, application))


if __name__ == "__main__":
    main()

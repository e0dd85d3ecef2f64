import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Root logging setup for the server process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # uvicorn's access log duplicates RequestLoggingMiddleware
    logging.getLogger("uvicorn.access").disabled = True

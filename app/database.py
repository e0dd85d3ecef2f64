from enum import Enum
from typing import Any, Callable, List, Optional
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import monitoring
from app.errors import ConfigurationError
import logging
import re
import threading

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionEvent(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RECONNECTED = "reconnected"
    ERROR = "error"
    CLOSED = "closed"


Listener = Callable[[ConnectionEvent, "MongoConnection"], None]


def mask_url(url: str) -> str:
    """Hide the password part of a connection string."""
    return re.sub(r":[^:@/]+@", ":****@", url)


class _TopologyWatcher(monitoring.TopologyListener):
    """Forwards driver topology changes to the owning connection.

    pymongo calls these from its monitor threads.
    """

    def __init__(self, connection: "MongoConnection"):
        self._connection = connection

    def opened(self, event):
        pass

    def description_changed(self, event):
        self._connection._on_topology_change(event.new_description.has_writable_server())

    def closed(self, event):
        pass


class MongoConnection:
    def __init__(
        self,
        url: Optional[str],
        db_name: Optional[str],
        client_factory: Callable[..., Any] = AsyncIOMotorClient,
        **client_options: Any,
    ):
        self.url = url
        self.db_name = db_name
        self.state = ConnectionState.DISCONNECTED
        self._client_factory = client_factory
        self._client_options = client_options
        self._client = None
        self._has_connected = False
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    @property
    def client(self):
        if self._client is None:
            raise RuntimeError("MongoDB connection is not open")
        return self._client

    @property
    def database(self):
        return self.client[self.db_name]

    def collection(self, name: str):
        return self.database[name]

    async def connect(self) -> None:
        if not self.url or not self.db_name:
            raise ConfigurationError(
                "MONGODB_URL or MONGODB_DB is not defined in environment variables. "
                "Please check your .env file."
            )

        logger.info("Connecting to MongoDB at %s (database: %s)", mask_url(self.url), self.db_name)
        self._transition(ConnectionState.CONNECTING)
        self._client = self._client_factory(
            self.url,
            event_listeners=[_TopologyWatcher(self)],
            **self._client_options
        )
        try:
            await self._client.admin.command("ping")
        except Exception as e:
            logger.error("MongoDB connection error: %s", e)
            self._client.close()
            self._client = None
            self._transition(ConnectionState.DISCONNECTED, ConnectionEvent.ERROR)
            raise

        self._has_connected = True
        self._transition(ConnectionState.CONNECTED, ConnectionEvent.CONNECTED)

    def close(self) -> None:
        """Close the client. Calling it again is a no-op."""
        if self._client is None:
            return
        client, self._client = self._client, None
        client.close()
        self._transition(ConnectionState.DISCONNECTED, ConnectionEvent.CLOSED)

    def _on_topology_change(self, writable: bool) -> None:
        event = None
        with self._lock:
            if self._client is None or not self._has_connected:
                return
            if self.state == ConnectionState.CONNECTED and not writable:
                self.state = ConnectionState.DISCONNECTED
                event = ConnectionEvent.DISCONNECTED
            elif self.state == ConnectionState.DISCONNECTED and writable:
                self.state = ConnectionState.CONNECTED
                event = ConnectionEvent.RECONNECTED
        if event is not None:
            self._notify(event)

    def _transition(self, state: ConnectionState, event: Optional[ConnectionEvent] = None) -> None:
        with self._lock:
            self.state = state
        if event is not None:
            self._notify(event)

    def _notify(self, event: ConnectionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self)
            except Exception:
                logger.exception("Connection listener failed on %s", event.value)


def log_connection_event(event: ConnectionEvent, connection: MongoConnection) -> None:
    """Listener registered at startup that reports state changes."""
    if event == ConnectionEvent.CONNECTED:
        logger.info("MongoDB connected (database: %s)", connection.db_name)
    elif event == ConnectionEvent.DISCONNECTED:
        logger.warning("MongoDB disconnected; the driver will keep trying to reconnect")
    elif event == ConnectionEvent.RECONNECTED:
        logger.info("MongoDB reconnected")
    elif event == ConnectionEvent.ERROR:
        logger.error("MongoDB connection failed")
    elif event == ConnectionEvent.CLOSED:
        logger.info("MongoDB connection closed")

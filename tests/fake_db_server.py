# Runs app.server.main against the in-memory MongoDB fake.
# usage: fake_db_server.py [ok|unreachable|close-fails]
from functools import partial
from conftest import FakeMotorClient
from app.database import MongoConnection
import app.main
import sys


def broken_close(self):
    raise RuntimeError("close failed")


if __name__ == "__main__":
    scenario = sys.argv[1] if len(sys.argv) > 1 else "ok"
    if scenario == "unreachable":
        FakeMotorClient.ping_error = ConnectionError("unreachable")
    elif scenario == "close-fails":
        FakeMotorClient.close = broken_close

    app.main.MongoConnection = partial(MongoConnection, client_factory=FakeMotorClient)

    from app.server import main
    main()

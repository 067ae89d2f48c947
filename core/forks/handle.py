import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session

from core.exceptions import ForkConnectionException

logger = logging.getLogger(__name__)


class ForkHandle:
    """
    The single connection a harness owns for the lifetime of one fork.

    When the fork runs on a cloned database the handle also owns the
    one-connection engine created for it and disposes it on close.
    """

    def __init__(self, fork_id: str, connection: Connection, engine: Optional[Engine] = None):
        self.fork_id = fork_id
        self.connection = connection
        self._engine = engine
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def ping(self) -> None:
        """Round-trip check; raises ForkConnectionException if the connection is unusable."""
        if self._closed:
            raise ForkConnectionException(f"Handle for fork {self.fork_id} is closed")
        try:
            value = self.connection.execute(text("SELECT 1")).scalar()
        except Exception as e:
            raise ForkConnectionException(f"Connection check failed for fork {self.fork_id}: {e}") from e
        if value != 1:
            raise ForkConnectionException(f"Unexpected ping response for fork {self.fork_id}: {value!r}")

    def session(self) -> Session:
        return Session(bind=self.connection, autoflush=False)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.connection.close()
        except Exception as e:
            logger.warning(f"Error closing connection for fork {self.fork_id}: {e}")
        if self._engine is not None:
            self._engine.dispose()

    def __enter__(self) -> "ForkHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

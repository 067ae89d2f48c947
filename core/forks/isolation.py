import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine

from core.exceptions import ForkIsolationException
from core.forks.models import IsolationMode

logger = logging.getLogger(__name__)


class ForkIsolator:
    """
    Provisions the data location a fork runs against.

    Modes are tried in order. zero_copy and template create a dedicated
    database cloned from the template database; logical reuses the primary
    database and relies on each fork getting its own connection.
    """

    def __init__(
        self,
        engine: Engine,
        modes: Sequence[str] = IsolationMode.ALL,
        template_database: Optional[str] = None,
    ):
        unknown = [mode for mode in modes if mode not in IsolationMode.ALL]
        if unknown:
            raise ValueError(f"Unknown isolation modes: {unknown}")
        if not modes:
            raise ValueError("At least one isolation mode is required")

        self.engine = engine
        self.modes: List[str] = list(modes)
        self.template_database = template_database or engine.url.database

    @property
    def supports_clones(self) -> bool:
        return self.engine.dialect.name == 'postgresql'

    def provision(self, fork_id: str) -> Tuple[str, str]:
        """
        Return (data_location, isolation_mode) for a new fork.

        Raises:
            ForkIsolationException: If every configured mode failed.
        """
        errors = []
        for mode in self.modes:
            try:
                if mode == IsolationMode.LOGICAL:
                    location = self._logical_fork()
                else:
                    location = self._clone_database(fork_id, mode)
                logger.info(f"Fork {fork_id} isolated via {mode}")
                return location, mode
            except Exception as e:
                errors.append(f"{mode}: {e}")
                logger.warning(f"Isolation mode {mode} failed for fork {fork_id}: {e}")

        raise ForkIsolationException(
            f"All isolation modes failed for fork {fork_id}: {'; '.join(errors)}"
        )

    def release(self, fork_id: str, isolation_mode: Optional[str]) -> bool:
        """Drop the cloned database of a fork. Logical forks have nothing to drop."""
        if isolation_mode in (None, IsolationMode.LOGICAL):
            return False

        statement = f"DROP DATABASE IF EXISTS {self._quote(fork_id)}"
        try:
            with self.engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
                conn.execute(text(statement))
            logger.info(f"Dropped database for fork {fork_id}")
            return True
        except Exception as e:
            logger.warning(f"Failed to drop database for fork {fork_id}: {e}")
            return False

    def _clone_database(self, fork_id: str, mode: str) -> str:
        if not self.supports_clones:
            raise ForkIsolationException(
                f"{self.engine.dialect.name} does not support database clones"
            )

        name = self._quote(fork_id)
        template = self._quote(self.template_database)
        if mode == IsolationMode.ZERO_COPY:
            statement = f"CREATE DATABASE {name} AS TEMPLATE {template} WITH (strategy = 'zero_copy')"
        else:
            statement = f"CREATE DATABASE {name} TEMPLATE {template}"

        # CREATE DATABASE cannot run inside a transaction block
        with self.engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
            conn.execute(text(statement))

        return self.engine.url.set(database=fork_id).render_as_string(hide_password=False)

    def _logical_fork(self) -> str:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return self.engine.url.render_as_string(hide_password=False)

    def _quote(self, identifier: str) -> str:
        return self.engine.dialect.identifier_preparer.quote(identifier)

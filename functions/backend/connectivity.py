"""
Cheap checks of whether the remote document store is reachable right now.

These are heuristics: a wrong answer only means we try a query that fails
or serve cached data a little early.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from concurrent.futures import Executor
from typing import Callable, Optional, Protocol

from backend.db import DocumentStore
from backend.errors import ErrorKind, TimeBankError
from backend.timeouts import new_executor, run_with_timeout
from shared.firebase_constants import (
    PING_COLLECTION,
    PING_DOC,
    SERVICES_COLLECTION,
    SYSTEM_COLLECTION,
    SYSTEM_STATUS_DOC,
)

logger = logging.getLogger(__name__)


class NetworkState(Protocol):
    """The runtime's own idea of whether the network is up."""

    def is_online(self) -> bool:
        ...


@dataclass
class StaticNetworkState:
    """Network state driven by configuration (or flipped by tests)."""

    online: bool = True

    def is_online(self) -> bool:
        return self.online


class ConnectivityProbe:
    def __init__(
        self,
        store: DocumentStore,
        network: NetworkState,
        *,
        probe_timeout: float = 2.0,
        ping_timeout: float = 3.0,
        executor: Optional[Executor] = None,
    ):
        self.store = store
        self.network = network
        self.executor = executor or new_executor()
        self.probe_timeout = probe_timeout
        self.ping_timeout = ping_timeout

    def _attempts(self) -> list[tuple[str, Callable[[float], object]]]:
        return [
            (
                "system document",
                lambda deadline: self.store.get(
                    SYSTEM_COLLECTION, SYSTEM_STATUS_DOC, timeout=deadline
                ),
            ),
            (
                "minimal query",
                lambda deadline: self.store.query(
                    SERVICES_COLLECTION, limit=1, timeout=deadline
                ),
            ),
        ]

    def probe(self) -> bool:
        """
        Returns True on the first lightweight read that succeeds in time,
        False if the network is reported down or every attempt fails.
        """
        if not self.network.is_online():
            logger.info("Network reports offline, skipping connectivity test")
            return False

        for name, attempt in self._attempts():
            try:
                run_with_timeout(
                    self.executor,
                    attempt,
                    self.probe_timeout,
                    f"Connectivity check via {name} timed out",
                )
            except Exception as e:
                logger.info("Connectivity check via %s failed: %s", name, e)
                continue
            logger.debug("Database connectivity confirmed via %s", name)
            return True

        logger.warning("All database connectivity tests failed")
        return False

    def ping(self) -> None:
        """
        Fails fast before an expensive write.

        Raises:
            TimeBankError: kind OFFLINE when the network is down, NETWORK when
                the ping read fails or times out.
        """
        if not self.network.is_online():
            raise TimeBankError(
                ErrorKind.OFFLINE, "Unable to connect to the database. Using offline mode."
            )
        try:
            run_with_timeout(
                self.executor,
                lambda deadline: self.store.get(PING_COLLECTION, PING_DOC, timeout=deadline),
                self.ping_timeout,
                "Cannot connect to database. Please check your internet connection.",
            )
        except TimeBankError as e:
            if not e.is_connectivity:
                raise
            logger.info("Database ping failed: %s", e.message)
            raise TimeBankError(
                ErrorKind.NETWORK, "Unable to connect to the database. Using offline mode."
            ) from e

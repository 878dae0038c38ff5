"""Subscription database: the aggregate root over all subscriptions.

The database is loaded wholesale from its store when constructed, mutated in
memory and written back wholesale by ``save``. Downloads are dispatched to
download agents on background threads, one per call.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Iterator, List, Optional, Tuple

from . import __version__
from .agents import create_download_agent, DispatchOptions, DownloadAgent, is_supported_client
from .config import Config
from .config_constants import SUPPORTED_CLIENTS
from .exceptions import InvalidArgumentError, UnsupportedClientError
from .models import format_episode, Thread
from .schemas import StoreRecord, SubscriptionRecord
from .store import Store
from .subscription import Subscription

logger = logging.getLogger(__name__)

_MISSING = object()

AgentFactory = Callable[[str], DownloadAgent]


def _require_subscription(value: Any) -> Subscription:
    if not isinstance(value, Subscription):
        raise InvalidArgumentError(value)
    return value


class Database:
    """All subscriptions plus the settings used to download their threads.

    Args:
        cfg: Settings; download defaults and the store location come from here
        store: Backing store (default: ``Store(cfg.effective_db_path)``)
        agent_factory: Builds the download agent for a client name

    Example:
        >>> db = Database(Config(db_path="/tmp/fakedb.json"))
        >>> db.add(Subscription.from_subscribable("Show,1080P"))
        >>> db.save()
    """

    def __init__(
        self,
        cfg: Optional[Config] = None,
        store: Optional[Store] = None,
        *,
        agent_factory: AgentFactory = create_download_agent,
    ) -> None:
        self.config = cfg or Config()
        self.store = store or Store(self.config.effective_db_path)
        self._agent_factory = agent_factory
        self._dispatches: List[threading.Thread] = []
        self._dispatch_lock = threading.Lock()

        record = self.store.load()
        self.version = __version__
        self.subscriptions: List[Subscription] = [
            Subscription.from_dict(sub.model_dump()) for sub in record.subscriptions
        ]
        self._assign_missing_sids()

    def _assign_missing_sids(self) -> None:
        for subscription in self.subscriptions:
            if not subscription.sid:
                subscription.generate_sid(self.sids())
                logger.debug("Assigned sid %s to [%s]", subscription.sid, subscription.name)

    def __iter__(self) -> Iterator[Subscription]:
        return iter(list(self.subscriptions))

    def __len__(self) -> int:
        return len(self.subscriptions)

    def sids(self) -> List[Optional[str]]:
        return [s.sid for s in self.subscriptions]

    def add(self, subscription: Subscription) -> None:
        """Give ``subscription`` a unique sid and append it.

        Raises:
            InvalidArgumentError: If ``subscription`` is not a Subscription
        """
        subscription = _require_subscription(subscription)
        subscription.generate_sid(self.sids())
        self.subscriptions.append(subscription)
        logger.info("Add subscription{%s} successfully.", subscription.name)

    def remove(self, subscription: Subscription) -> bool:
        """Remove the subscription with the same sid.

        Returns:
            True if a subscription was removed, False if none matched

        Raises:
            InvalidArgumentError: If ``subscription`` is not a Subscription
        """
        subscription = _require_subscription(subscription)
        for idx, existing in enumerate(self.subscriptions):
            if existing.sid == subscription.sid:
                del self.subscriptions[idx]
                logger.info("Remove subscription{%s} successfully.", subscription.name)
                return True
        return False

    def to_record(self) -> StoreRecord:
        return StoreRecord(
            version=self.version,
            subscriptions=[
                SubscriptionRecord.model_validate(s.to_dict()) for s in self.subscriptions
            ],
        )

    def save(self) -> None:
        """Overwrite the store with the current state."""
        self.store.save(self.to_record())

    def has(self, key: str, value: Any) -> bool:
        return self.query(key, value) is not None

    def query(self, key: str, value: Any) -> Optional[Subscription]:
        """Return the first subscription whose ``key`` attribute equals ``value``."""
        for subscription in self.subscriptions:
            if getattr(subscription, key, _MISSING) == value:
                return subscription
        return None

    def sort(self) -> None:
        """Sort every subscription's threads, then subscriptions by latest episode."""
        for subscription in self.subscriptions:
            subscription.sort()
        self.subscriptions.sort(key=lambda s: s.latest, reverse=True)

    def list_rows(self) -> List[Tuple[str, str, str]]:
        """Return ``(sid, latest, name)`` rows for listings."""
        rows = []
        for s in self.subscriptions:
            latest = format_episode(s.latest) if s.latest > 0 else "--"
            rows.append((s.sid or "", latest, s.name))
        return rows

    @staticmethod
    def is_supported_client(client: Any) -> bool:
        return is_supported_client(client)

    def resolve_download_options(
        self,
        client: Optional[str] = None,
        destination: Optional[str] = None,
        jsonrpc: Optional[str] = None,
    ) -> Tuple[str, DispatchOptions]:
        """Apply explicit options over the configured defaults.

        Raises:
            UnsupportedClientError: If the effective client is not supported
        """
        effective_client = client or self.config.get("client")
        if not self.is_supported_client(effective_client):
            raise UnsupportedClientError(effective_client, SUPPORTED_CLIENTS)
        options = DispatchOptions(
            destination=destination or self.config.get("destination"),
            jsonrpc=jsonrpc or self.config.get("jsonrpc"),
        )
        return effective_client, options

    def download(
        self,
        thread: Thread,
        client: Optional[str] = None,
        destination: Optional[str] = None,
        jsonrpc: Optional[str] = None,
    ) -> "Future[int]":
        """Hand ``thread`` to a download agent in the background.

        The client is checked before anything is launched. The returned
        future resolves to ``0`` when the agent exits cleanly and fails with
        ``DispatchError`` otherwise.

        Raises:
            UnsupportedClientError: If the effective client is not supported
        """
        effective_client, options = self.resolve_download_options(client, destination, jsonrpc)
        agent = self._agent_factory(effective_client)
        future: "Future[int]" = Future()

        def _run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(agent.dispatch(thread, options))
            except Exception as exc:
                future.set_exception(exc)

        worker = threading.Thread(target=_run, name=f"dmhy-{effective_client}", daemon=False)
        with self._dispatch_lock:
            self._dispatches = [t for t in self._dispatches if t.is_alive()]
            self._dispatches.append(worker)
        worker.start()
        return future

    def close(self) -> None:
        """Wait for every dispatched download agent to finish."""
        with self._dispatch_lock:
            pending = list(self._dispatches)
            self._dispatches.clear()
        for worker in pending:
            worker.join()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

"""Update and download workflows over a subscription database."""

from __future__ import annotations

import logging
import os
from concurrent.futures import as_completed, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .database import Database
from .exceptions import DispatchError, SelectorError
from .fetcher import FeedFetcher
from .models import Thread
from .subscription import Subscription

logger = logging.getLogger(__name__)

TARGET_SEPARATOR = "-"

FetchCallback = Callable[[Subscription, int], None]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _attach(root: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)


def _has_file_handler(root: logging.Logger, log_file: str) -> bool:
    target = os.path.abspath(log_file)
    return any(
        isinstance(h, logging.FileHandler) and h.baseFilename == target for h in root.handlers
    )


def apply_log_level(level: str, log_file: Optional[str] = None) -> None:
    """Set the root logger level for a CLI run.

    A console handler is attached when the root logger has none; existing
    handlers are moved to the new level. With ``log_file``, records are also
    appended to that file, whose directory is created on demand. Repeated
    calls never attach a second handler for the same file.

    Raises:
        ValueError: If ``level`` is not a logging level name
        OSError: If the log file cannot be opened
    """
    numeric_level = logging.getLevelName(str(level).upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in root.handlers:
        handler.setLevel(numeric_level)
    if not root.handlers:
        _attach(root, logging.StreamHandler(), numeric_level)

    if log_file and not _has_file_handler(root, log_file):
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        _attach(root, logging.FileHandler(log_file, mode="a", encoding="utf-8"), numeric_level)
        logger.info("Writing log records to %s", log_file)


@dataclass
class DownloadSummary:
    """Outcome of a batch of dispatches.

    Attributes:
        succeeded: Threads whose agent exited with code 0
        failed: Threads whose agent failed, with the error
        missing: Download targets naming an unknown sid
    """

    succeeded: List[Thread] = field(default_factory=list)
    failed: List[Tuple[Thread, DispatchError]] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.missing


@dataclass
class UpdateSummary:
    """Outcome of one feed update over all subscriptions."""

    checked: int = 0
    new_threads: Dict[str, List[Thread]] = field(default_factory=dict)
    failed_feeds: List[str] = field(default_factory=list)
    downloads: DownloadSummary = field(default_factory=DownloadSummary)

    @property
    def new_count(self) -> int:
        return sum(len(threads) for threads in self.new_threads.values())

    def describe(self) -> str:
        parts = [f"checked {self.checked} subscriptions", f"found {self.new_count} new threads"]
        if self.failed_feeds:
            parts.append(f"{len(self.failed_feeds)} feeds failed")
        if self.downloads.succeeded or self.downloads.failed:
            parts.append(
                f"dispatched {len(self.downloads.succeeded) + len(self.downloads.failed)} "
                f"downloads ({len(self.downloads.failed)} failed)"
            )
        return "Update done: " + ", ".join(parts)


def wait_for_downloads(
    pending: Sequence[Tuple[Thread, "Future[int]"]],
    summary: Optional[DownloadSummary] = None,
) -> DownloadSummary:
    """Block until every dispatched agent has finished and record the outcome."""
    summary = summary if summary is not None else DownloadSummary()
    for thread, future in pending:
        try:
            future.result()
        except DispatchError as exc:
            logger.error(f"Fail to add {thread.title}: {exc}")
            summary.failed.append((thread, exc))
        else:
            summary.succeeded.append(thread)
    return summary


def parse_target(target: str) -> Tuple[str, str]:
    """Split ``<sid>-<selector>`` into its parts; a bare sid selects all threads."""
    sid, _, selector = target.strip().partition(TARGET_SEPARATOR)
    return sid.strip().upper(), selector.strip()


def resolve_targets(db: Database, targets: Sequence[str]) -> Tuple[List[Thread], List[str]]:
    """Resolve every ``<sid>-<selector>`` target before anything is dispatched.

    Returns:
        Tuple of (threads to download in order, targets whose sid is unknown)

    Raises:
        SelectorError: If a selector is malformed or names a missing range boundary
    """
    threads: List[Thread] = []
    missing: List[str] = []
    for target in targets:
        sid, selector = parse_target(target)
        subscription = db.query("sid", sid)
        if subscription is None:
            logger.error(f"Not found sid: {sid}.")
            missing.append(target)
            continue
        try:
            threads.extend(subscription.get_threads(selector))
        except SelectorError:
            logger.error(f"Cannot resolve {target!r} for [{subscription.name}]")
            raise
    return threads, missing


def dispatch_downloads(
    db: Database,
    targets: Sequence[str],
    *,
    client: Optional[str] = None,
    destination: Optional[str] = None,
    jsonrpc: Optional[str] = None,
) -> DownloadSummary:
    """Download the threads named by ``targets`` and wait for every agent.

    Raises:
        SelectorError: If a target's selector cannot be resolved
        UnsupportedClientError: If the client is not supported (nothing is launched)
    """
    threads, missing = resolve_targets(db, targets)
    db.resolve_download_options(client, destination, jsonrpc)

    pending = [
        (thread, db.download(thread, client=client, destination=destination, jsonrpc=jsonrpc))
        for thread in threads
    ]
    summary = wait_for_downloads(pending, DownloadSummary(missing=missing))
    logger.info(
        "Dispatched %d threads: %d succeeded, %d failed",
        len(pending),
        len(summary.succeeded),
        len(summary.failed),
    )
    return summary


def update_subscriptions(
    db: Database,
    fetcher: Optional[FeedFetcher] = None,
    *,
    download_new: bool = False,
    workers: Optional[int] = None,
    on_fetched: Optional[FetchCallback] = None,
) -> UpdateSummary:
    """Fetch every subscription's feed, file new threads and save the database.

    Feeds are fetched concurrently; threads are added on the calling thread
    as each fetch completes. Threads already stored are skipped; invalid ones
    are rejected by ``Subscription.add``.

    Args:
        db: Database to update
        fetcher: Feed source (default: ``FeedFetcher(db.config)``)
        download_new: Hand every new thread to the configured download client
        workers: Concurrent fetches (default: ``db.config.workers``)
        on_fetched: Called with each subscription and its new thread count

    Returns:
        UpdateSummary of the run
    """
    fetcher = fetcher or FeedFetcher(db.config)
    subscriptions = list(db)
    summary = UpdateSummary(checked=len(subscriptions))
    if not subscriptions:
        logger.info("No subscriptions to update")
        return summary

    max_workers = max(1, min(workers or db.config.workers, len(subscriptions)))
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_map = {executor.submit(fetcher.fetch, s): s for s in subscriptions}
        for future in as_completed(future_map):
            subscription = future_map[future]
            try:
                candidates = future.result()
            except Exception as exc:
                logger.error(f"Fetching [{subscription.name}] failed: {exc}", exc_info=True)
                summary.failed_feeds.append(subscription.name)
                continue

            added = []
            for candidate in candidates:
                if subscription.has_thread(candidate):
                    continue
                if subscription.add(candidate):
                    added.append(candidate)
            if added:
                summary.new_threads[subscription.sid or subscription.name] = added
                logger.info(f"[{subscription.name}] {len(added)} new threads")
            if on_fetched is not None:
                on_fetched(subscription, len(added))

    db.sort()
    db.save()

    if download_new:
        db.resolve_download_options()
        pending = [
            (thread, db.download(thread))
            for threads in summary.new_threads.values()
            for thread in threads
        ]
        wait_for_downloads(pending, summary.downloads)

    logger.info(summary.describe())
    return summary

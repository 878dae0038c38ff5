"""Command-line interface for dmhy_subscribe."""

from __future__ import annotations

import argparse
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

from pydantic import ValidationError
from tqdm import tqdm

from . import __version__, config, workflow
from .database import Database
from .exceptions import DmhyError
from .subscription import Subscription

_LOGGER = logging.getLogger(__name__)

TQDM_NCOLS = 80
COMMENT_PREFIX = "#"

CommandFn = Callable[[argparse.Namespace, Database, logging.Logger], int]


@contextmanager
def _tqdm_progress(total: int, description: str) -> Iterator[Callable[[Subscription, int], None]]:
    """Yield an ``on_fetched`` callback that advances a tqdm bar per feed."""
    with tqdm(total=total, desc=description, unit="feed", leave=False, ncols=TQDM_NCOLS) as bar:

        def _advance(subscription: Subscription, added: int) -> None:
            bar.set_postfix_str(f"{subscription.name} +{added}", refresh=False)
            bar.update(1)

        yield _advance


def _add_subcommands(subparsers: argparse._SubParsersAction) -> None:
    add = subparsers.add_parser("add", help="Subscribe to 'name,keyword,...' searches")
    add.add_argument("subscribables", nargs="*", metavar="SUBSCRIBABLE")
    add.add_argument("-f", "--file", help="Read one subscribable per line from FILE")
    add.set_defaults(command="add")

    remove = subparsers.add_parser("remove", aliases=["rm"], help="Remove subscriptions by sid")
    remove.add_argument("sids", nargs="*", metavar="SID")
    remove.add_argument("-a", "--all", action="store_true", help="Remove every subscription")
    remove.set_defaults(command="remove")

    listing = subparsers.add_parser("list", aliases=["ls"], help="List subscriptions or threads")
    listing.add_argument("sid", nargs="?", help="Show the threads of one subscription")
    listing.add_argument(
        "--addable",
        action="store_true",
        help="Print subscriptions in a form 'dmhy add' accepts",
    )
    listing.set_defaults(command="list")

    download = subparsers.add_parser(
        "download", aliases=["dl"], help="Download threads, e.g. 'A1B-1,3,5..7'"
    )
    download.add_argument("targets", nargs="+", metavar="SID[-SELECTOR]")
    download.add_argument("-c", "--client", help="Download client (aria2 or deluge)")
    download.add_argument("-d", "--destination", help="Directory to save into")
    download.add_argument("-j", "--jsonrpc", help="aria2 JSON-RPC endpoint")
    download.set_defaults(command="download")

    update = subparsers.add_parser("update", help="Fetch feeds and store new threads")
    update.add_argument(
        "--download", action="store_true", help="Download every new thread after updating"
    )
    update.set_defaults(command="update")

    cfg = subparsers.add_parser("config", help="Show or change settings")
    cfg.add_argument("key", nargs="?")
    cfg.add_argument("value", nargs="?")
    cfg.set_defaults(command="config")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dmhy", description="Subscribe to dmhy searches and download new episodes."
    )
    parser.add_argument("--version", action="store_true", help="Show program version and exit")
    parser.add_argument("--config", default=None, help="Path to configuration file (JSON or YAML)")
    parser.add_argument("--db", default=None, help="Path to the subscription store")
    parser.add_argument("--log-level", default=None, help="Logging level (e.g., DEBUG, INFO)")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    _add_subcommands(subparsers)
    return parser


def parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    """Parse CLI arguments; ``--version`` exits immediately."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.version:
        print(f"dmhy_subscribe {__version__}")
        raise SystemExit(0)
    if not args.command:
        parser.print_help()
        raise SystemExit(2)
    return args


def _runtime_config(args: argparse.Namespace, file_cfg: config.Config) -> config.Config:
    overrides = {
        key: value
        for key, value in (
            ("db_path", args.db),
            ("log_level", args.log_level),
            ("log_file", args.log_file),
        )
        if value
    }
    return file_cfg.with_updates(**overrides) if overrides else file_cfg


def _read_subscribables(path: str) -> List[str]:
    try:
        lines = Path(path).expanduser().read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise ValueError(f"Failed to read {path}: {exc}") from exc
    return [ln.strip() for ln in lines if ln.strip() and not ln.lstrip().startswith(COMMENT_PREFIX)]


def _cmd_add(args: argparse.Namespace, db: Database, log: logging.Logger) -> int:
    subscribables = list(args.subscribables)
    if args.file:
        subscribables.extend(_read_subscribables(args.file))
    if not subscribables:
        log.error("Nothing to add. Pass 'name,keyword,...' or -f FILE.")
        return 1

    status = 0
    for subscribable in subscribables:
        try:
            subscription = Subscription.from_subscribable(subscribable)
        except ValueError as exc:
            log.error(f"Skipping {subscribable!r}: {exc}")
            status = 1
            continue
        if db.has("subscribable", subscription.subscribable):
            log.warning(f"[{subscription.name}] is already subscribed")
            continue
        db.add(subscription)
        print(f"{subscription.sid}  {subscription.subscribable}")
    db.save()
    return status


def _cmd_remove(args: argparse.Namespace, db: Database, log: logging.Logger) -> int:
    if args.all:
        for subscription in db:
            db.remove(subscription)
        db.save()
        return 0
    if not args.sids:
        log.error("Pass the sids to remove, or -a to remove everything.")
        return 1

    status = 0
    for sid in args.sids:
        subscription = db.query("sid", sid.strip().upper())
        if subscription is None:
            log.error(f"Not found sid: {sid}.")
            status = 1
            continue
        db.remove(subscription)
    db.save()
    return status


def _cmd_list(args: argparse.Namespace, db: Database, log: logging.Logger) -> int:
    if args.addable:
        for subscription in db:
            print(subscription.subscribable)
        return 0

    if args.sid:
        subscription = db.query("sid", args.sid.strip().upper())
        if subscription is None:
            log.error(f"Not found sid: {args.sid}.")
            return 1
        print(f"{subscription.sid}  {subscription.subscribable}")
        for episodes, title in subscription.thread_rows():
            print(f"  {episodes:>7}  {title}")
        return 0

    rows = db.list_rows()
    if not rows:
        print("No subscriptions.")
        return 0
    print(f"{'SID':<4} {'EP':>5}  NAME")
    for sid, latest, name in rows:
        print(f"{sid:<4} {latest:>5}  {name}")
    return 0


def _cmd_download(args: argparse.Namespace, db: Database, log: logging.Logger) -> int:
    summary = workflow.dispatch_downloads(
        db,
        args.targets,
        client=args.client,
        destination=args.destination,
        jsonrpc=args.jsonrpc,
    )
    if not summary.succeeded and not summary.failed and not summary.missing:
        log.warning("No threads matched.")
    return 0 if summary.ok else 1


def _cmd_update(args: argparse.Namespace, db: Database, log: logging.Logger) -> int:
    with _tqdm_progress(len(db), "Updating") as on_fetched:
        summary = workflow.update_subscriptions(
            db, download_new=args.download, on_fetched=on_fetched
        )
    for sid, threads in summary.new_threads.items():
        for thread in threads:
            print(f"{sid}  {thread.format_episodes():>7}  {thread.title}")
    log.info(summary.describe())
    return 0 if not summary.failed_feeds and summary.downloads.ok else 1


COMMANDS = {
    "add": _cmd_add,
    "remove": _cmd_remove,
    "list": _cmd_list,
    "download": _cmd_download,
    "update": _cmd_update,
}


def _run_config_command(
    args: argparse.Namespace, file_cfg: config.Config, log: logging.Logger
) -> int:
    path = Path(args.config).expanduser() if args.config else config.default_config_path()
    if args.key is None:
        for key, value in file_cfg.model_dump().items():
            print(f"{key}: {'' if value is None else value}")
        return 0
    if args.value is None:
        print(file_cfg.get(args.key))
        return 0

    updated = file_cfg.with_updates(**{args.key: args.value})
    config.save_config_file(updated, str(path))
    log.info(f"Set {args.key} = {updated.get(args.key)} in {path}")
    return 0


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    apply_log_level_fn: Optional[Callable[[str, Optional[str]], None]] = None,
    database_factory: Callable[[config.Config], Database] = Database,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Entry point for the CLI; returns an exit status code."""
    log = logger or _LOGGER
    if apply_log_level_fn is None:
        apply_log_level_fn = workflow.apply_log_level

    args = parse_args(argv)

    try:
        file_cfg = config.load_config(args.config)
        cfg = _runtime_config(args, file_cfg)
    except (ValueError, ValidationError) as exc:
        log.error(f"Invalid configuration: {exc}")
        return 1

    apply_log_level_fn(cfg.log_level, cfg.log_file)

    try:
        if args.command == "config":
            return _run_config_command(args, file_cfg, log)
        with database_factory(cfg) as db:
            return COMMANDS[args.command](args, db, log)
    except KeyError as exc:
        log.error(f"Error: {exc.args[0] if exc.args else exc}")
        return 1
    except (DmhyError, ValueError, ValidationError) as exc:
        log.error(f"Error: {exc}")
        return 1


if __name__ == "__main__":  # pragma: no cover - script entry
    raise SystemExit(main())

"""Shared fixtures and test utilities for dmhy_subscribe tests.

This module contains:
- Test constants
- Helper functions for creating threads, subscriptions, configs and feeds
- Fake download agents and feed fetchers

Test modules import helpers explicitly (``from conftest import ...``) after
putting this directory on ``sys.path``.
"""

import os

# Keep .env files and user settings out of the test run
os.environ["TESTING"] = "1"

import json
import threading
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from dmhy_subscribe import config
from dmhy_subscribe.agents import DispatchOptions
from dmhy_subscribe.exceptions import DispatchError
from dmhy_subscribe.models import Thread
from dmhy_subscribe.subscription import Subscription

# Test constants
TEST_NAME = "Show"
TEST_KEYWORDS = ["kw"]
TEST_LINK_PREFIX = "magnet:?xt=urn:btih:"
TEST_FEED_URL = "https://example.com/topics/rss/rss.xml"
TEST_JSONRPC = "http://localhost:6800/jsonrpc"
TEST_DESTINATION = "/tmp/dmhy-downloads"

# Environment variables read by Config
CONFIG_ENV_VARS = tuple(config.ENV_OVERRIDES.values())


def clean_environ() -> Dict[str, str]:
    """Return the current environment without the Config override variables."""
    return {k: v for k, v in os.environ.items() if k not in CONFIG_ENV_VARS}


def create_test_thread(ep, title: Optional[str] = None, link: Optional[str] = None) -> Thread:
    """Create a thread; ``ep`` may be a single number or a sequence."""
    episodes = tuple(ep) if isinstance(ep, (list, tuple)) else (ep,)
    label = "-".join(str(e) for e in episodes)
    return Thread(
        title=title if title is not None else f"[Group] {TEST_NAME} [{label}][1080P]",
        link=link if link is not None else f"{TEST_LINK_PREFIX}{label}",
        ep=episodes,
    )


def create_test_subscription(
    name: str = TEST_NAME,
    keywords: Optional[List[str]] = None,
    episodes: Optional[List] = None,
) -> Subscription:
    """Create a subscription holding one thread per entry of ``episodes``."""
    subscription = Subscription(
        name=name, keywords=list(TEST_KEYWORDS if keywords is None else keywords)
    )
    for ep in episodes or []:
        subscription.add(create_test_thread(ep))
    return subscription


def create_test_config(tmpdir, **overrides) -> config.Config:
    """Create a Config whose store lives inside ``tmpdir``."""
    payload = {
        "db_path": os.path.join(str(tmpdir), "fakedb.json"),
        "destination": TEST_DESTINATION,
        "jsonrpc": TEST_JSONRPC,
        "feed_url": TEST_FEED_URL,
        "workers": 2,
    }
    payload.update(overrides)
    return config.Config(**payload)


def write_json(path, data) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return target


def build_feed_xml(items: List[Dict[str, str]]) -> bytes:
    """Build an RSS document; each item may carry ``title``, ``link`` and ``magnet``."""
    parts = ['<?xml version="1.0" encoding="UTF-8"?>', '<rss version="2.0"><channel>']
    parts.append("<title>Feed</title>")
    for item in items:
        parts.append("<item>")
        parts.append(f"<title><![CDATA[{item.get('title', '')}]]></title>")
        if "link" in item:
            parts.append(f"<link>{item['link']}</link>")
        if "magnet" in item:
            parts.append(
                f'<enclosure url="{item["magnet"]}" length="1" type="application/x-bittorrent"/>'
            )
        parts.append("</item>")
    parts.append("</channel></rss>")
    return "".join(parts).encode("utf-8")


class RecordingAgent:
    """Download agent that records dispatches instead of launching processes."""

    def __init__(self, name: str = "aria2", fail_for: Optional[set] = None) -> None:
        self.name = name
        self.fail_for = fail_for or set()
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def dispatch(self, thread: Thread, options: DispatchOptions) -> int:
        with self._lock:
            self.calls.append((thread, options))
        if thread.title in self.fail_for:
            raise DispatchError(self.name, code=1)
        return 0


class RecordingAgentFactory:
    """Agent factory that hands out one RecordingAgent per client name."""

    def __init__(self, fail_for: Optional[set] = None) -> None:
        self.fail_for = fail_for
        self.agents: Dict[str, RecordingAgent] = {}
        self.requested: List[str] = []

    def __call__(self, client: str) -> RecordingAgent:
        self.requested.append(client)
        if client not in self.agents:
            self.agents[client] = RecordingAgent(client, self.fail_for)
        return self.agents[client]

    @property
    def calls(self) -> List[tuple]:
        return [call for agent in self.agents.values() for call in agent.calls]


class StaticFetcher:
    """Feed fetcher returning canned threads per subscription name."""

    def __init__(self, results: Dict[str, List[Thread]], errors: Optional[set] = None) -> None:
        self.results = results
        self.errors = errors or set()
        self.fetched: List[str] = []
        self._lock = threading.Lock()

    def fetch(self, subscription: Subscription) -> List[Thread]:
        with self._lock:
            self.fetched.append(subscription.name)
        if subscription.name in self.errors:
            raise RuntimeError(f"feed for {subscription.name} is down")
        return list(self.results.get(subscription.name, []))


@pytest.fixture(autouse=True)
def _reset_root_logger_level():
    """Undo log level changes made by apply_log_level during a test."""
    import logging

    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    handler_levels = [(h, h.level) for h in handlers]
    yield
    for handler, handler_level in handler_levels:
        handler.setLevel(handler_level)
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)

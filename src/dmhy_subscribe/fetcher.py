"""Feed fetching: turn a subscription's search into candidate threads."""

from __future__ import annotations

import logging

# Bandit: parsing handled via defusedxml safe APIs
import xml.etree.ElementTree as ET  # nosec B405
from typing import List, Optional

from defusedxml.ElementTree import fromstring as safe_fromstring, ParseError as DefusedXMLParseError

from . import network
from .config import Config
from .config_constants import FEED_KEYWORD_SEPARATOR
from .episodes import parse_episodes
from .models import Thread
from .subscription import Subscription

logger = logging.getLogger(__name__)

TORRENT_MIME_TYPES = ("application/x-bittorrent",)


def _child_text(item: ET.Element, tag: str) -> str:
    el = item.find(tag)
    if el is None:
        el = next(
            (e for e in item if isinstance(e.tag, str) and e.tag.endswith(tag)),
            None,
        )
    if el is None or not el.text:
        return ""
    return el.text.strip()


def _item_link(item: ET.Element) -> str:
    """Prefer the enclosure (magnet or torrent) over the thread page link."""
    for enclosure in item.iter("enclosure"):
        url = (enclosure.attrib.get("url") or "").strip()
        if url and (
            url.startswith("magnet:") or enclosure.attrib.get("type") in TORRENT_MIME_TYPES
        ):
            return url
    return _child_text(item, "link")


def parse_feed(xml_bytes: bytes) -> List[Thread]:
    """Parse RSS XML into candidate threads.

    Items whose title carries no episode number come back with an empty
    ``ep`` and are rejected by ``Subscription.add``.
    """
    try:
        root = safe_fromstring(xml_bytes)
    except (DefusedXMLParseError, ValueError) as exc:
        logger.warning("Failed to parse feed XML: %s", exc)
        return []
    if root is None:
        return []

    threads = []
    for item in root.iter():
        if not (isinstance(item.tag, str) and item.tag.endswith("item")):
            continue
        title = _child_text(item, "title")
        threads.append(
            Thread(title=title, link=_item_link(item), ep=tuple(parse_episodes(title)))
        )
    return threads


def build_keyword(subscription: Subscription) -> str:
    """Join name and keywords the way the search box expects (``a+b+c``)."""
    return FEED_KEYWORD_SEPARATOR.join(subscription.search_terms)


class FeedFetcher:
    """Query the RSS search endpoint for one subscription at a time.

    Example:
        >>> fetcher = FeedFetcher(Config())
        >>> threads = fetcher.fetch(subscription)
    """

    def __init__(self, cfg: Optional[Config] = None) -> None:
        self.config = cfg or Config()

    def fetch(self, subscription: Subscription) -> List[Thread]:
        """Return candidate threads for ``subscription``, newest feed order.

        Network and parse failures are logged and yield an empty list.
        """
        keyword = build_keyword(subscription)
        body, _ = network.http_get(
            self.config.feed_url,
            self.config.user_agent,
            self.config.timeout,
            params={"keyword": keyword},
        )
        if body is None:
            logger.warning("No feed data for [%s]", subscription.name)
            return []
        threads = parse_feed(body)
        logger.debug("Feed for [%s] returned %d items", subscription.name, len(threads))
        return threads

#!/usr/bin/env python3
"""Tests for feed parsing and fetching."""

import sys
import unittest
from pathlib import Path
from unittest.mock import patch

from dmhy_subscribe.fetcher import build_keyword, FeedFetcher, parse_feed
from dmhy_subscribe.subscription import Subscription

# Add tests directory to path for conftest import
tests_dir = Path(__file__).resolve().parents[2]
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from conftest import build_feed_xml, create_test_config, TEST_FEED_URL  # noqa: E402

HTTP_GET = "dmhy_subscribe.fetcher.network.http_get"


class TestParseFeed(unittest.TestCase):
    """Test RSS parsing into candidate threads."""

    def test_items_become_threads(self):
        """Test title, link and episode extraction."""
        xml = build_feed_xml(
            [
                {
                    "title": "[Group] Show [02][1080P]",
                    "link": "https://share.dmhy.org/topics/view/2.html",
                    "magnet": "magnet:?xt=urn:btih:two",
                },
                {
                    "title": "[Group] Show [01][1080P]",
                    "link": "https://share.dmhy.org/topics/view/1.html",
                },
            ]
        )
        first, second = parse_feed(xml)
        self.assertEqual(first.title, "[Group] Show [02][1080P]")
        self.assertEqual(first.link, "magnet:?xt=urn:btih:two")
        self.assertEqual(first.ep, (2,))
        self.assertEqual(second.link, "https://share.dmhy.org/topics/view/1.html")
        self.assertEqual(second.ep, (1,))

    def test_items_without_episode_keep_empty_ep(self):
        """Test that unparsable titles are returned for add() to reject."""
        (thread,) = parse_feed(build_feed_xml([{"title": "[Group] Show OST", "link": "l"}]))
        self.assertEqual(thread.ep, ())

    def test_malformed_xml(self):
        """Test that parse errors yield no threads."""
        with self.assertLogs("dmhy_subscribe.fetcher", level="WARNING"):
            self.assertEqual(parse_feed(b"<rss><channel><item>"), [])

    def test_entities_are_refused(self):
        """Test that entity declarations are not expanded."""
        xml = (
            b'<?xml version="1.0"?><!DOCTYPE r [<!ENTITY a "x">]>'
            b"<rss><channel><item><title>&a;</title></item></channel></rss>"
        )
        with self.assertLogs("dmhy_subscribe.fetcher", level="WARNING"):
            self.assertEqual(parse_feed(xml), [])


class TestFeedFetcher(unittest.TestCase):
    """Test the fetcher's use of the HTTP layer."""

    def setUp(self):
        self.cfg = create_test_config("/tmp", timeout=7, user_agent="dmhy-test")
        self.subscription = Subscription(name="Show", keywords=["kw2", "kw1"])

    def test_build_keyword(self):
        """Test the search keyword format."""
        self.assertEqual(build_keyword(self.subscription), "Show+kw1+kw2")

    def test_fetch_queries_feed(self):
        """Test the request and the parsed result."""
        xml = build_feed_xml([{"title": "[Group] Show [03]", "magnet": "magnet:?xt=3"}])
        with patch(HTTP_GET, return_value=(xml, "application/xml")) as mock_get:
            threads = FeedFetcher(self.cfg).fetch(self.subscription)
        self.assertEqual([th.ep for th in threads], [(3,)])
        mock_get.assert_called_once_with(
            TEST_FEED_URL, "dmhy-test", 7, params={"keyword": "Show+kw1+kw2"}
        )

    def test_fetch_failure_returns_empty(self):
        """Test that network failures produce no threads."""
        with patch(HTTP_GET, return_value=(None, None)):
            with self.assertLogs("dmhy_subscribe.fetcher", level="WARNING"):
                self.assertEqual(FeedFetcher(self.cfg).fetch(self.subscription), [])


if __name__ == "__main__":
    unittest.main()

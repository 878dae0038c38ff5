#!/usr/bin/env python3
"""Tests for Subscription ordering, validation and sid assignment."""

import math
import sys
import unittest
from pathlib import Path

from dmhy_subscribe import identifiers
from dmhy_subscribe.exceptions import SelectorSyntaxError
from dmhy_subscribe.models import Thread
from dmhy_subscribe.subscription import Subscription

# Add tests directory to path for conftest import
tests_dir = Path(__file__).resolve().parents[2]
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from conftest import create_test_subscription, create_test_thread  # noqa: E402


def _is_sorted_descending(subscription):
    firsts = [th.first_episode for th in subscription.threads]
    return firsts == sorted(firsts, reverse=True)


class TestSubscriptionIdentity(unittest.TestCase):
    """Test name and keyword handling."""

    def test_from_subscribable_sorts_keywords(self):
        """Test parsing of 'name,keyword,...'."""
        subscription = Subscription.from_subscribable("Violet Evergarden,BIG5,1080P")
        self.assertEqual(subscription.name, "Violet Evergarden")
        self.assertEqual(subscription.keywords, ["1080P", "BIG5"])
        self.assertEqual(subscription.subscribable, "Violet Evergarden,1080P,BIG5")
        self.assertEqual(subscription.search_terms, ["Violet Evergarden", "1080P", "BIG5"])

    def test_blank_keywords_are_dropped(self):
        """Test that empty keyword slots are ignored."""
        subscription = Subscription.from_subscribable(" Show , kw ,, ")
        self.assertEqual(subscription.name, "Show")
        self.assertEqual(subscription.keywords, ["kw"])

    def test_empty_name_is_rejected(self):
        """Test that a subscription needs a name."""
        with self.assertRaises(ValueError):
            Subscription.from_subscribable(",kw")

    def test_new_subscription_has_no_latest(self):
        """Test the initial state."""
        subscription = Subscription(name="Show")
        self.assertEqual(subscription.threads, [])
        self.assertEqual(subscription.latest, -1)
        self.assertIsNone(subscription.sid)


class TestSubscriptionAdd(unittest.TestCase):
    """Test thread insertion and ordering."""

    def test_scenario_a_newest_first(self):
        """Test that E1 then E2 are held as [E2, E1] with latest 2."""
        subscription = Subscription(name="Show", keywords=["kw"])
        self.assertTrue(subscription.add(Thread(title="E1", link="l1", ep=(1,))))
        self.assertTrue(subscription.add(Thread(title="E2", link="l2", ep=(2,))))
        self.assertEqual([th.title for th in subscription.threads], ["E2", "E1"])
        self.assertEqual(subscription.latest, 2)

    def test_scenario_c_invalid_thread_leaves_state_unchanged(self):
        """Test that a NaN episode is rejected and reported."""
        subscription = Subscription(name="Show", keywords=["kw"])
        subscription.add(Thread(title="E1", link="l1", ep=(1,)))
        subscription.add(Thread(title="E2", link="l2", ep=(2,)))
        before = list(subscription.threads)

        with self.assertLogs("dmhy_subscribe.subscription", level="WARNING") as logs:
            added = subscription.add(Thread(title="Bad", link="l3", ep=(math.nan,)))

        self.assertFalse(added)
        self.assertEqual(subscription.threads, before)
        self.assertEqual(subscription.latest, 2)
        self.assertIn("Can't add invalid thread into subscription [Show]", logs.output[0])

    def test_rejects_empty_title_and_link(self):
        """Test the other rejection causes."""
        subscription = create_test_subscription(episodes=[1])
        with self.assertLogs("dmhy_subscribe.subscription", level="WARNING"):
            self.assertFalse(subscription.add(Thread(title="", link="l", ep=(2,))))
            self.assertFalse(subscription.add(Thread(title="t", link="", ep=(2,))))
            self.assertFalse(subscription.add(Thread(title="t", link="l", ep=())))
        self.assertEqual(len(subscription.threads), 1)
        self.assertEqual(subscription.latest, 1)

    def test_accepts_mapping_records(self):
        """Test that fetched dict records are accepted."""
        subscription = Subscription(name="Show")
        self.assertTrue(subscription.add({"title": "E3", "link": "l3", "ep": 3}))
        self.assertEqual(subscription.threads[0].ep, (3,))

    def test_rejects_malformed_mapping(self):
        """Test that a record with a non-numeric ep is rejected, not raised."""
        subscription = Subscription(name="Show")
        with self.assertLogs("dmhy_subscribe.subscription", level="WARNING"):
            self.assertFalse(subscription.add({"title": "E", "link": "l", "ep": "x"}))
        self.assertEqual(subscription.threads, [])

    def test_rejects_thread_with_non_numeric_episode(self):
        """Test that a built thread holding a string episode is rejected, not raised."""
        subscription = create_test_subscription(episodes=[1])
        with self.assertLogs("dmhy_subscribe.subscription", level="WARNING"):
            self.assertFalse(subscription.add(Thread(title="t", link="l", ep=("x",))))
        self.assertEqual(len(subscription.threads), 1)
        self.assertEqual(subscription.latest, 1)

    def test_threads_stay_sorted_after_any_insertion_order(self):
        """Test the descending order invariant."""
        subscription = create_test_subscription(episodes=[3, 1, 5, 2, 4, 5.5, 0])
        self.assertTrue(_is_sorted_descending(subscription))
        self.assertEqual(subscription.latest, 5.5)

    def test_latest_is_last_episode_of_top_batch(self):
        """Test that latest follows the last episode of the topmost thread."""
        subscription = create_test_subscription(episodes=[1, [2, 3, 4]])
        self.assertEqual(subscription.threads[0].ep, (2, 3, 4))
        self.assertEqual(subscription.latest, 4)

    def test_sort_is_stable_for_equal_first_episodes(self):
        """Test that releases of the same episode keep insertion order."""
        subscription = Subscription(name="Show")
        subscription.add(create_test_thread(1, title="Group A 01"))
        subscription.add(create_test_thread(1, title="Group B 01"))
        subscription.sort()
        self.assertEqual(
            [th.title for th in subscription.threads], ["Group A 01", "Group B 01"]
        )

    def test_has_thread(self):
        """Test membership by content identity."""
        subscription = create_test_subscription(episodes=[1])
        self.assertTrue(subscription.has_thread(create_test_thread(1)))
        self.assertFalse(subscription.has_thread(create_test_thread(2)))


class TestSubscriptionSid(unittest.TestCase):
    """Test sid generation."""

    def test_sid_is_deterministic(self):
        """Test that identity alone determines the sid."""
        first = Subscription(name="Show", keywords=["b", "a"]).generate_sid()
        second = Subscription(name="Show", keywords=["a", "b"]).generate_sid()
        self.assertEqual(first, second)
        self.assertEqual(first, identifiers.hash_parts("Show", "a,b"))

    def test_scenario_d_identical_identities_get_distinct_sids(self):
        """Test the chained rehash for a duplicate identity."""
        first = Subscription(name="Show", keywords=["kw"])
        second = Subscription(name="Show", keywords=["kw"])
        first.generate_sid()
        second.generate_sid([first.sid])
        self.assertNotEqual(first.sid, second.sid)
        self.assertEqual(second.sid, identifiers.hash_parts("Show", first.sid))


class TestSubscriptionQueries(unittest.TestCase):
    """Test thread selection and presentation helpers."""

    def setUp(self):
        self.subscription = create_test_subscription(episodes=[1, 2, 3])

    def test_get_threads_all(self):
        """Test that 'all' returns the full ordered list."""
        self.assertEqual(self.subscription.get_threads("all"), self.subscription.threads)
        self.assertEqual(self.subscription.get_threads(), self.subscription.threads)

    def test_get_threads_selector(self):
        """Test delegation to the selector."""
        picked = self.subscription.get_threads("1,2..3")
        self.assertEqual([th.first_episode for th in picked], [1, 3, 2])

    def test_get_threads_propagates_syntax_errors(self):
        """Test that malformed selectors raise."""
        with self.assertRaises(SelectorSyntaxError):
            self.subscription.get_threads("first")

    def test_thread_rows_are_earliest_first(self):
        """Test listing rows."""
        rows = self.subscription.thread_rows()
        self.assertEqual([episodes for episodes, _ in rows], ["01", "02", "03"])

    def test_dict_round_trip(self):
        """Test that stored form rebuilds the same subscription."""
        self.subscription.generate_sid()
        restored = Subscription.from_dict(self.subscription.to_dict())
        self.assertEqual(restored.to_dict(), self.subscription.to_dict())
        self.assertEqual(restored.latest, 3)

    def test_from_dict_sorts_threads(self):
        """Test that stored threads are re-sorted on load."""
        data = {
            "name": "Show",
            "keywords": [],
            "sid": "ABC",
            "threads": [
                {"title": "E1", "link": "l1", "ep": [1]},
                {"title": "E2", "link": "l2", "ep": [2]},
            ],
            "latest": 1,
        }
        restored = Subscription.from_dict(data)
        self.assertEqual([th.title for th in restored.threads], ["E2", "E1"])
        self.assertEqual(restored.latest, 2)


if __name__ == "__main__":
    unittest.main()

#!/usr/bin/env python3
"""Tests for episode number extraction from release titles."""

import unittest

from dmhy_subscribe.episodes import parse_episodes


class TestParseEpisodes(unittest.TestCase):
    """Test the supported title conventions."""

    def test_bracketed_episode(self):
        """Test '[05]' style tags."""
        self.assertEqual(parse_episodes("[Group] Show [05][1080P]"), [5])
        self.assertEqual(parse_episodes("[Group][Show][12][BIG5][720P][MP4]"), [12])

    def test_revision_suffix(self):
        """Test that 'v2' revisions keep the episode number."""
        self.assertEqual(parse_episodes("[Group] Show [05v2][1080P]"), [5])

    def test_decimal_special(self):
        """Test '5.5' specials."""
        self.assertEqual(parse_episodes("[Group] Show [5.5][720P]"), [5.5])

    def test_batch_range(self):
        """Test that batches expand to every episode."""
        self.assertEqual(parse_episodes("[Group] Show [01-12 Fin][1080P]"), list(range(1, 13)))
        self.assertEqual(parse_episodes("[Group] Show [01~03][1080P]"), [1, 2, 3])

    def test_ordinal_episode(self):
        """Test CJK ordinal markers."""
        self.assertEqual(parse_episodes("【Group】Show 第05話 1080P"), [5])
        self.assertEqual(parse_episodes("【Group】Show【第7集】"), [7])

    def test_dash_episode(self):
        """Test ' - 05 ' style numbering."""
        self.assertEqual(parse_episodes("[Group] Show - 05 [1080p]"), [5])
        self.assertEqual(parse_episodes("[Group] Show - 11v2 (WEB 1080p)"), [11])

    def test_end_marker(self):
        """Test final-episode markers."""
        self.assertEqual(parse_episodes("[Group] Show [24 END][1080P]"), [24])

    def test_resolutions_and_years_are_ignored(self):
        """Test that long digit runs are not episodes."""
        self.assertEqual(parse_episodes("[Group] Show [2019][1080P]"), [])

    def test_no_episode(self):
        """Test titles without a recognizable episode."""
        self.assertEqual(parse_episodes("[Group] Show Collection [BDRip]"), [])
        self.assertEqual(parse_episodes(""), [])


if __name__ == "__main__":
    unittest.main()

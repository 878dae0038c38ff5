"""Episode number extraction from release titles.

Release groups tag episodes in a handful of ways:

    [Group] Show [05][1080P]          -> [5]
    [Group] Show [05v2][1080P]        -> [5]
    [Group] Show [5.5][720P]          -> [5.5]
    [Group] Show [01-12 Fin][1080P]   -> [1, 2, ..., 12]
    【Group】Show 第05話                -> [5]
    [Group] Show - 05 [1080p]         -> [5]

The first matching pattern wins. Titles without a recognizable episode yield
an empty list.
"""

from __future__ import annotations

import re
from typing import List

from .models import Number

# Episode numbers are short; longer digit runs are resolutions or years
_NUM = r"\d{1,3}(?:\.\d+)?"
_OPEN = r"[\[【]"
_CLOSE = r"[\]】]"

BATCH_PATTERN = re.compile(
    rf"{_OPEN}\s*({_NUM})\s*[-~～]\s*({_NUM})\s*(?:END|Fin|完)?\s*(?:[+＋]\s*\w+)?\s*{_CLOSE}",
    re.IGNORECASE,
)
BRACKET_PATTERN = re.compile(
    rf"{_OPEN}\s*第?\s*({_NUM})\s*(?:v\d+)?\s*(?:話|话|集)?\s*(?:END|Fin|完)?\s*{_CLOSE}",
    re.IGNORECASE,
)
ORDINAL_PATTERN = re.compile(rf"第\s*({_NUM})\s*(?:話|话|集)")
DASH_PATTERN = re.compile(rf"\s-\s({_NUM})(?:v\d+)?(?=\s|$|[\[(【])", re.IGNORECASE)


def _to_number(text: str) -> Number:
    value = float(text)
    return int(value) if value.is_integer() else value


def _expand_batch(first: Number, last: Number) -> List[Number]:
    lo, hi = sorted((first, last))
    if isinstance(lo, int) and isinstance(hi, int):
        return list(range(lo, hi + 1))
    return [lo, hi]


def parse_episodes(title: str) -> List[Number]:
    """Return the episode numbers carried by a release title."""
    match = BATCH_PATTERN.search(title)
    if match:
        return _expand_batch(_to_number(match.group(1)), _to_number(match.group(2)))

    for pattern in (BRACKET_PATTERN, ORDINAL_PATTERN, DASH_PATTERN):
        match = pattern.search(title)
        if match:
            return [_to_number(match.group(1))]
    return []

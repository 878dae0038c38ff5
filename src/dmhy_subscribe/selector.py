"""Episode selector parsing and resolution.

A selector picks threads out of a subscription's thread list:

    all | <ep> | <ep>..<ep> | <token>,<token>,...

``<ep>`` is an integer or decimal episode number. Tokens are resolved left to
right and their results are unioned, keeping the order in which each thread
is first met.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from .exceptions import SelectorResolutionError, SelectorSyntaxError
from .models import Number, Thread

logger = logging.getLogger(__name__)

SELECT_ALL = "all"
TOKEN_SEPARATOR = ","
RANGE_SEPARATOR = re.compile(r"\.{2,}")


def _parse_number(text: str) -> Optional[float]:
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _first_index(threads: Sequence[Thread], episode: Number) -> Optional[int]:
    for idx, thread in enumerate(threads):
        if thread.contains(episode):
            return idx
    return None


@dataclass(frozen=True)
class EpisodeToken:
    """A single episode number."""

    text: str
    episode: float

    def select(self, threads: Sequence[Thread], selector: str) -> List[Thread]:
        return [th for th in threads if th.contains(self.episode)]


@dataclass(frozen=True)
class RangeToken:
    """An inclusive ``lo..hi`` span of episodes.

    Threads are stored newest first, so the slice runs from the first thread
    carrying ``hi`` down to the first thread carrying ``lo``.
    """

    text: str
    lo: float
    hi: float

    def select(self, threads: Sequence[Thread], selector: str) -> List[Thread]:
        head = _first_index(threads, self.hi)
        if head is None:
            raise SelectorResolutionError(selector, self.text, self.hi)
        tail = _first_index(threads, self.lo)
        if tail is None:
            raise SelectorResolutionError(selector, self.text, self.lo)
        if tail < head:
            raise SelectorResolutionError(
                selector,
                self.text,
                self.lo,
                message=f"Range {self.text!r} starts below where it ends in the thread list",
            )
        return list(threads[head : tail + 1])


Token = Union[EpisodeToken, RangeToken]


def parse_token(token: str, selector: str) -> Token:
    """Parse one comma-separated token.

    Raises:
        SelectorSyntaxError: If the token is neither a number nor a range
    """
    episode = _parse_number(token)
    if episode is not None:
        return EpisodeToken(text=token, episode=episode)

    bounds = RANGE_SEPARATOR.split(token)
    if len(bounds) == 2:
        first, second = (_parse_number(b.strip()) for b in bounds)
        if first is not None and second is not None:
            lo, hi = sorted((first, second))
            return RangeToken(text=token, lo=lo, hi=hi)
    raise SelectorSyntaxError(selector, token)


class EpisodeSelector:
    """Parsed form of a selector string.

    Parsing happens up front, so a malformed selector fails before any thread
    is looked at.

    Example:
        >>> selector = EpisodeSelector("1,3..5")
        >>> picked = selector.resolve(subscription.threads)
    """

    def __init__(self, selector: Optional[str] = None) -> None:
        self.selector = (selector or "").strip()
        self.tokens: List[Token] = []
        if not self.selects_all:
            self.tokens = [
                parse_token(part.strip(), self.selector)
                for part in self.selector.split(TOKEN_SEPARATOR)
            ]

    @property
    def selects_all(self) -> bool:
        return not self.selector or self.selector == SELECT_ALL

    def resolve(self, threads: Sequence[Thread]) -> List[Thread]:
        """Return the selected threads, each at most once.

        Raises:
            SelectorResolutionError: If a range boundary matches no thread
        """
        if self.selects_all:
            return list(threads)

        seen: set[str] = set()
        collection: List[Thread] = []
        for token in self.tokens:
            for thread in token.select(threads, self.selector):
                if thread.key in seen:
                    continue
                seen.add(thread.key)
                collection.append(thread)
        logger.debug(
            "Selector %r picked %d of %d threads", self.selector, len(collection), len(threads)
        )
        return collection

    def __repr__(self) -> str:
        return f"EpisodeSelector({self.selector!r})"


def select_threads(threads: Sequence[Thread], selector: Optional[str]) -> List[Thread]:
    """Shorthand for ``EpisodeSelector(selector).resolve(threads)``."""
    return EpisodeSelector(selector).resolve(threads)

"""Subscription entity: one tracked feed and its releases."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .config_constants import NO_LATEST_EPISODE
from .exceptions import ThreadValidationError
from .identifiers import generate_unique_sid
from .models import as_thread, Number, Thread
from .selector import select_threads

logger = logging.getLogger(__name__)

SUBSCRIBABLE_SEPARATOR = ","


@dataclass(eq=False)
class Subscription:
    """A feed identified by a name plus matching keywords.

    Threads are kept newest first (descending leading episode) and ``latest``
    mirrors the last episode of the topmost thread.

    Attributes:
        name: Series name, also the first search keyword.
        keywords: Extra search keywords, kept sorted.
        sid: Short identifier, unique within a database once generated.
        threads: Releases found so far, newest first.
        latest: Most recent episode number, ``-1`` while there are no threads.
    """

    name: str
    keywords: List[str] = field(default_factory=list)
    sid: Optional[str] = None
    threads: List[Thread] = field(default_factory=list)
    latest: Number = NO_LATEST_EPISODE

    def __post_init__(self) -> None:
        self.name = str(self.name).strip()
        if not self.name:
            raise ValueError("Subscription name cannot be empty")
        self.keywords = sorted(k.strip() for k in self.keywords if k and k.strip())

    @classmethod
    def from_subscribable(cls, subscribable: str) -> "Subscription":
        """Parse the ``name,keyword,keyword`` form.

        Example:
            >>> Subscription.from_subscribable("Violet Evergarden,1080P,BIG5").keywords
            ['1080P', 'BIG5']
        """
        name, *keywords = subscribable.split(SUBSCRIBABLE_SEPARATOR)
        return cls(name=name, keywords=keywords)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Subscription":
        """Rebuild a stored subscription.

        Raises:
            ThreadValidationError: If a stored episode value is not numeric
        """
        subscription = cls(
            name=data["name"],
            keywords=list(data.get("keywords") or []),
            sid=data.get("sid"),
            threads=[as_thread(th) for th in data.get("threads") or []],
        )
        subscription.sort()
        return subscription

    @property
    def subscribable(self) -> str:
        return SUBSCRIBABLE_SEPARATOR.join([self.name, *self.keywords])

    @property
    def search_terms(self) -> List[str]:
        return [self.name, *self.keywords]

    def sort(self) -> None:
        """Order threads latest to earliest and refresh ``latest``."""
        self.threads.sort(key=lambda th: th.first_episode, reverse=True)
        self.latest = self.threads[0].last_episode if self.threads else NO_LATEST_EPISODE

    def add(self, thread: Union[Thread, Mapping[str, Any]]) -> bool:
        """Insert a validated thread.

        Invalid threads are reported on this module's logger and leave the
        subscription untouched.

        Returns:
            True if the thread was inserted, False if it was rejected
        """
        try:
            candidate = as_thread(thread)
            candidate.validate()
        except ThreadValidationError as exc:
            logger.warning(
                "Can't add invalid thread into subscription [%s]: %s (%r)",
                self.name,
                exc,
                thread,
            )
            return False

        self.threads.append(candidate)
        self.sort()
        return True

    def has_thread(self, thread: Thread) -> bool:
        key = thread.key
        return any(th.key == key for th in self.threads)

    def generate_sid(self, existing_sids: Iterable[Optional[str]] = ()) -> str:
        """Assign a sid derived from the name and keywords, avoiding ``existing_sids``."""
        self.sid = generate_unique_sid(
            self.name, SUBSCRIBABLE_SEPARATOR.join(self.keywords), existing_sids
        )
        return self.sid

    def get_threads(self, selector: Optional[str] = None) -> List[Thread]:
        """Resolve an episode selector against this subscription's threads.

        Raises:
            SelectorSyntaxError: If the selector is malformed
            SelectorResolutionError: If a range boundary is not stored
        """
        return select_threads(self.threads, selector)

    def thread_rows(self) -> List[Tuple[str, str]]:
        """Return ``(episodes, title)`` rows, earliest first."""
        return [(th.format_episodes(), th.title) for th in reversed(self.threads)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "keywords": list(self.keywords),
            "sid": self.sid,
            "threads": [th.to_dict() for th in self.threads],
            "latest": self.latest,
        }

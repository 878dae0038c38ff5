from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple, Union

from .exceptions import ThreadValidationError

Number = Union[int, float]

THREAD_KEY_LENGTH = 16


def format_episode(value: Number) -> str:
    """Render an episode number the way listings show it (``5`` -> ``05``)."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int):
        return f"{value:02d}"
    return str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _coerce_episode(value: Any) -> Number:
    if isinstance(value, bool):
        raise ThreadValidationError(f"Episode must be a number, got {value!r}")
    if isinstance(value, (int, float)):
        return value
    try:
        return float(str(value).strip())
    except ValueError as exc:
        raise ThreadValidationError(f"Episode must be a number, got {value!r}") from exc


def _coerce_episodes(value: Any) -> Tuple[Number, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(_coerce_episode(v) for v in value)
    return (_coerce_episode(value),)


@dataclass(frozen=True)
class Thread:
    """One discovered release of a subscription.

    A release may bundle several episodes (a batch), so ``ep`` holds one or
    more episode numbers in the order they appear in the title.

    Attributes:
        title: Release title as published by the feed.
        link: Magnet or torrent link handed to the download client.
        ep: Episode numbers carried by the release.

    Example:
        >>> thread = Thread(title="[Sub] Show [05][1080P]", link="magnet:?xt=...", ep=(5,))
        >>> thread.validate()
    """

    title: str
    link: str
    ep: Tuple[Number, ...]

    @property
    def key(self) -> str:
        """Stable identifier derived from ``title`` and ``link``.

        Two threads with the same key are the same release regardless of
        object identity.
        """
        payload = f"{self.title}\n{self.link}".encode("utf-8")
        digest = hashlib.sha1(payload, usedforsecurity=False).hexdigest()
        return digest[:THREAD_KEY_LENGTH]

    @property
    def first_episode(self) -> Number:
        return self.ep[0]

    @property
    def last_episode(self) -> Number:
        return self.ep[-1]

    def contains(self, episode: Number) -> bool:
        return episode in self.ep

    def validate(self) -> None:
        """Check the title/link/episode contract.

        Raises:
            ThreadValidationError: If the title or link is empty, or ``ep`` is
                empty or holds a non-numeric or non-finite value.
        """
        if not self.title:
            raise ThreadValidationError("Thread title is empty", thread=self)
        if not self.link:
            raise ThreadValidationError("Thread link is empty", thread=self)
        if not self.ep:
            raise ThreadValidationError("Thread carries no episode number", thread=self)
        if not all(_is_number(ep) for ep in self.ep):
            raise ThreadValidationError(f"Thread episodes are not numbers: {self.ep}", thread=self)
        if not all(math.isfinite(ep) for ep in self.ep):
            raise ThreadValidationError(f"Thread episodes are not finite: {self.ep}", thread=self)

    def format_episodes(self) -> str:
        return ",".join(format_episode(ep) for ep in self.ep)

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "link": self.link, "ep": list(self.ep)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Thread":
        """Build a thread from a stored or fetched record.

        A scalar ``ep`` is wrapped into a one-element sequence.

        Raises:
            ThreadValidationError: If an episode value is not numeric.
        """
        title = data.get("title") or ""
        link = data.get("link") or ""
        raw_ep = data.get("ep", ())
        ep = _coerce_episodes(raw_ep) if raw_ep is not None else ()
        return cls(title=str(title), link=str(link), ep=ep)


def as_thread(value: Union[Thread, Mapping[str, Any]]) -> Thread:
    """Accept either a Thread or a ``{title, link, ep}`` mapping."""
    if isinstance(value, Thread):
        return value
    if isinstance(value, Mapping):
        return Thread.from_dict(value)
    raise ThreadValidationError(f"Not a thread record: {value!r}", thread=value)

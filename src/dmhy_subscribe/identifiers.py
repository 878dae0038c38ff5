"""Deterministic subscription identifiers."""

from __future__ import annotations

import hashlib
import logging
from typing import Iterable

from .config_constants import MAX_SID_ATTEMPTS, SID_LENGTH
from .exceptions import SidGenerationError

logger = logging.getLogger(__name__)

_PART_SEPARATOR = "\x1f"


def hash_parts(*parts: str, length: int = SID_LENGTH) -> str:
    """Hash the given parts into a short upper-case identifier.

    The same parts always produce the same identifier. Collisions are
    possible by construction; callers enforce uniqueness themselves.
    """
    payload = _PART_SEPARATOR.join(parts).encode("utf-8")
    # Deterministic id, not security sensitive
    digest = hashlib.sha1(payload, usedforsecurity=False).hexdigest()
    return digest[:length].upper()


def generate_unique_sid(
    name: str,
    seed: str,
    existing: Iterable[str | None],
    *,
    max_attempts: int = MAX_SID_ATTEMPTS,
) -> str:
    """Derive ``hash(name, seed)`` and rehash as ``hash(name, sid)`` until unique.

    Args:
        name: Subscription name
        seed: Sorted keywords joined by commas
        existing: Sids already taken
        max_attempts: Cap on chained rehashes

    Raises:
        SidGenerationError: If no free sid turns up within ``max_attempts``
    """
    taken = {sid for sid in existing if sid}
    sid = hash_parts(name, seed)
    attempts = 1
    while sid in taken:
        if attempts >= max_attempts:
            raise SidGenerationError(name, attempts)
        logger.debug("sid %s for [%s] is taken, rehashing", sid, name)
        sid = hash_parts(name, sid)
        attempts += 1
    return sid

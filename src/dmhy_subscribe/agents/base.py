"""DownloadAgent protocol definition.

This module defines the protocol that every download client adapter implements.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Protocol, runtime_checkable

from ..models import Thread


@dataclass(frozen=True)
class DispatchOptions:
    """Resolved per-download settings handed to an agent.

    Attributes:
        destination: Directory the download client saves into.
        jsonrpc: JSON-RPC endpoint (used by aria2, ignored by deluge).
    """

    destination: str
    jsonrpc: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@runtime_checkable
class DownloadAgent(Protocol):
    """Protocol for download client adapters.

    An agent hands exactly one thread to its download client per call and
    never retries.
    """

    name: str

    def dispatch(self, thread: Thread, options: DispatchOptions) -> int:
        """Hand ``thread`` to the download client.

        Args:
            thread: Release to download
            options: Resolved destination and RPC endpoint

        Returns:
            Exit code ``0`` on success

        Raises:
            DispatchError: If the client exits non-zero or cannot be launched
        """
        ...

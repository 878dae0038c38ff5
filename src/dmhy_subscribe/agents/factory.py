"""Factory for creating download agents."""

from __future__ import annotations

from typing import Dict, Type

from ..config_constants import SUPPORTED_CLIENTS
from ..exceptions import UnsupportedClientError
from .base import DownloadAgent
from .process import Aria2Agent, DelugeAgent, ProcessAgent

_AGENTS: Dict[str, Type[ProcessAgent]] = {
    Aria2Agent.name: Aria2Agent,
    DelugeAgent.name: DelugeAgent,
}


def is_supported_client(client: object) -> bool:
    """Return True only for ``"aria2"`` and ``"deluge"``."""
    return isinstance(client, str) and client in SUPPORTED_CLIENTS


def create_download_agent(client: str) -> DownloadAgent:
    """Create the agent for a download client.

    Args:
        client: Client name, ``"aria2"`` or ``"deluge"``

    Raises:
        UnsupportedClientError: If ``client`` is not supported

    Example:
        >>> agent = create_download_agent("aria2")
        >>> agent.dispatch(thread, DispatchOptions(destination="~/anime", jsonrpc=url))
        0
    """
    if not is_supported_client(client):
        raise UnsupportedClientError(client, SUPPORTED_CLIENTS)
    return _AGENTS[client]()

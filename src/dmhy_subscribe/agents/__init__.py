"""Download agents: adapters that hand a thread to a download client."""

from .base import DispatchOptions, DownloadAgent
from .factory import create_download_agent, is_supported_client
from .process import Aria2Agent, DelugeAgent, ProcessAgent

__all__ = [
    "Aria2Agent",
    "DelugeAgent",
    "DispatchOptions",
    "DownloadAgent",
    "ProcessAgent",
    "create_download_agent",
    "is_supported_client",
]

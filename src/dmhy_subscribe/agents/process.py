"""Subprocess adapter behind the DownloadAgent protocol.

Each dispatch launches the client's downloader program as

    python -m dmhy_subscribe.downloaders.<client> <thread-json> <options-json>

with the parent's standard streams, and reads success from its exit code.
"""

from __future__ import annotations

import json
import logging
import subprocess  # nosec B404
import sys
from typing import List

from ..config_constants import CLIENT_ARIA2, CLIENT_DELUGE
from ..exceptions import DispatchError
from ..models import Thread
from .base import DispatchOptions

logger = logging.getLogger(__name__)

DOWNLOADERS_PACKAGE = "dmhy_subscribe.downloaders"


class ProcessAgent:
    """Run a downloader program in a child process, one attempt per thread."""

    name = ""

    def build_command(self, thread: Thread, options: DispatchOptions) -> List[str]:
        args = [thread.to_dict(), options.to_dict()]
        return [
            sys.executable,
            "-m",
            f"{DOWNLOADERS_PACKAGE}.{self.name}",
            *(json.dumps(arg, ensure_ascii=False) for arg in args),
        ]

    def dispatch(self, thread: Thread, options: DispatchOptions) -> int:
        cmd = self.build_command(thread, options)
        logger.debug("Launching %s agent for %s", self.name, thread.title)
        try:
            completed = subprocess.run(cmd, check=False)  # nosec B603
        except OSError as exc:
            logger.error("Could not launch %s agent for %s: %s", self.name, thread.title, exc)
            raise DispatchError(self.name, cause=exc) from exc

        if completed.returncode != 0:
            logger.error(
                "%s agent exited with code %s for %s",
                self.name,
                completed.returncode,
                thread.title,
            )
            raise DispatchError(self.name, code=completed.returncode)
        logger.info("Add %s", thread.title)
        return 0

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Aria2Agent(ProcessAgent):
    """Queue links on an aria2 daemon over JSON-RPC."""

    name = CLIENT_ARIA2


class DelugeAgent(ProcessAgent):
    """Queue links with ``deluge-console``."""

    name = CLIENT_DELUGE

"""Queue a thread with ``deluge-console add``."""

from __future__ import annotations

import logging
import shutil
import subprocess  # nosec B404
import sys
from typing import List, Optional, Sequence

from ..exceptions import ThreadValidationError
from . import parse_agent_args, setup_agent_logging

logger = logging.getLogger(__name__)

DELUGE_CONSOLE = "deluge-console"


def build_command(link: str, destination: str) -> List[str]:
    cmd = [DELUGE_CONSOLE, "add"]
    if destination:
        cmd.extend(["-p", destination])
    cmd.append(link)
    return cmd


def main(argv: Optional[Sequence[str]] = None) -> int:
    setup_agent_logging()
    try:
        thread, options = parse_agent_args(sys.argv[1:] if argv is None else argv)
    except (ValueError, ThreadValidationError) as exc:
        logger.error(f"Invalid arguments: {exc}")
        return 2

    if shutil.which(DELUGE_CONSOLE) is None:
        logger.error(f"{DELUGE_CONSOLE} not found on PATH")
        return 127

    completed = subprocess.run(build_command(thread.link, options.destination), check=False)  # nosec B603
    if completed.returncode != 0:
        logger.error(f"Fail to add {thread.title}")
        return completed.returncode
    logger.info(f"Add {thread.title}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

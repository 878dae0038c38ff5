"""Download-client programs launched by the process agents.

Each module runs as ``python -m dmhy_subscribe.downloaders.<client>`` with two
JSON arguments, the thread and ``{destination, jsonrpc}``, and exits 0 once
the client accepted the link.
"""

from __future__ import annotations

import json
import os
from typing import Sequence, Tuple

from ..agents.base import DispatchOptions
from ..models import Thread
from ..workflow import apply_log_level


def parse_agent_args(argv: Sequence[str]) -> Tuple[Thread, DispatchOptions]:
    """Decode the two positional JSON arguments.

    Raises:
        ValueError: If the arguments are missing or malformed
    """
    if len(argv) != 2:
        raise ValueError(f"Expected <thread-json> <options-json>, got {len(argv)} arguments")
    thread_data, options_data = (json.loads(arg) for arg in argv)
    if not isinstance(thread_data, dict) or not isinstance(options_data, dict):
        raise ValueError("Both arguments must be JSON objects")
    thread = Thread.from_dict(thread_data)
    thread.validate()
    options = DispatchOptions(
        destination=os.path.expanduser(str(options_data.get("destination") or "")),
        jsonrpc=str(options_data.get("jsonrpc") or ""),
    )
    return thread, options


def setup_agent_logging() -> None:
    apply_log_level(os.getenv("LOG_LEVEL", "INFO"))

"""Queue a thread on an aria2 daemon through its JSON-RPC interface.

The RPC secret, if the daemon uses one, goes into the endpoint URL as
``?token=<secret>``; it is stripped from the URL and sent as the first
RPC parameter the way aria2 expects.
"""

from __future__ import annotations

import logging
import sys
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import requests

from .. import network
from ..config_constants import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT
from ..exceptions import ThreadValidationError
from . import parse_agent_args, setup_agent_logging

logger = logging.getLogger(__name__)

ADD_URI_METHOD = "aria2.addUri"


class Aria2RpcError(Exception):
    """Raised when aria2 answers with a JSON-RPC error object."""

    def __init__(self, code: Any, message: str) -> None:
        self.code = code
        super().__init__(f"aria2 error {code}: {message}")


def split_token(jsonrpc: str) -> Tuple[str, Optional[str]]:
    """Separate the ``token`` query parameter from the endpoint URL."""
    parsed = urlparse(jsonrpc)
    query = parse_qs(parsed.query)
    tokens = query.pop("token", None)
    endpoint = urlunparse(parsed._replace(query=urlencode(query, doseq=True)))
    return endpoint, tokens[0] if tokens else None


def build_add_uri_request(link: str, destination: str, token: Optional[str]) -> Dict[str, Any]:
    params: List[Any] = []
    if token:
        params.append(f"token:{token}")
    params.append([link])
    if destination:
        params.append({"dir": destination})
    return {
        "jsonrpc": "2.0",
        "id": uuid.uuid4().hex,
        "method": ADD_URI_METHOD,
        "params": params,
    }


def add_uri(
    link: str,
    destination: str,
    jsonrpc: str,
    *,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """Queue ``link`` and return the download GID aria2 assigned.

    Raises:
        Aria2RpcError: If aria2 rejects the request
        requests.RequestException: If the daemon cannot be reached
    """
    endpoint, token = split_token(jsonrpc)
    reply = network.post_json(
        endpoint,
        build_add_uri_request(link, destination, token),
        DEFAULT_USER_AGENT,
        timeout,
    )
    error = reply.get("error")
    if error:
        raise Aria2RpcError(error.get("code"), error.get("message", ""))
    return str(reply.get("result"))


def main(argv: Optional[Sequence[str]] = None) -> int:
    setup_agent_logging()
    try:
        thread, options = parse_agent_args(sys.argv[1:] if argv is None else argv)
    except (ValueError, ThreadValidationError) as exc:
        logger.error(f"Invalid arguments: {exc}")
        return 2

    try:
        gid = add_uri(thread.link, options.destination, options.jsonrpc)
    except (Aria2RpcError, requests.RequestException, ValueError) as exc:
        logger.error(f"Fail to add {thread.title}: {exc}")
        return 1
    logger.info(f"Add {thread.title} (gid {gid})")
    return 0


if __name__ == "__main__":
    sys.exit(main())

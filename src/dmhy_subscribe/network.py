"""HTTP session management and request helpers for dmhy_subscribe."""

from __future__ import annotations

import atexit
import logging
import threading
from typing import Any, cast, Dict, List, Mapping, Optional, Tuple

import requests
from requests.utils import requote_uri

logger = logging.getLogger(__name__)

# Track if we've suppressed urllib3 logs (lazy initialization)
_urllib3_logs_suppressed = False

_THREAD_LOCAL = threading.local()
_SESSION_REGISTRY: List[requests.Session] = []
_SESSION_REGISTRY_LOCK = threading.Lock()


def _suppress_urllib3_debug_logs() -> None:
    """Keep urllib3 connection chatter out of DEBUG output."""
    global _urllib3_logs_suppressed
    if _urllib3_logs_suppressed:
        return

    root_logger = logging.getLogger()
    root_level = root_logger.level if root_logger.level else logging.INFO
    if root_level <= logging.DEBUG:
        for logger_name in ("urllib3", "urllib3.connectionpool", "urllib3.connection"):
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    _urllib3_logs_suppressed = True


def normalize_url(url: str) -> str:
    """Normalize URLs while preserving already-encoded segments."""
    normalized = requote_uri(url)
    if normalized != url:
        logger.debug("Normalized URL %s -> %s", url, normalized)
    return cast(str, normalized)


def _get_thread_request_session() -> requests.Session:
    _suppress_urllib3_debug_logs()

    session = getattr(_THREAD_LOCAL, "session", None)
    if session is None:
        session = requests.Session()
        setattr(_THREAD_LOCAL, "session", session)
        with _SESSION_REGISTRY_LOCK:
            _SESSION_REGISTRY.append(session)
        logger.debug("Created new thread-local HTTP session %s", hex(id(session)))
    return session


def _close_all_sessions() -> None:
    with _SESSION_REGISTRY_LOCK:
        for session in _SESSION_REGISTRY:
            try:
                session.close()
            # Best-effort cleanup; ignore shutdown errors
            except Exception:  # pragma: no cover  # nosec B110
                pass
        _SESSION_REGISTRY.clear()


atexit.register(_close_all_sessions)


def fetch_url(
    url: str,
    user_agent: str,
    timeout: int,
    *,
    params: Optional[Mapping[str, str]] = None,
) -> Optional[requests.Response]:
    """Execute one HTTP GET and return the response if it succeeded.

    Failures are logged and reported as ``None``; there is no retry.
    """
    normalized_url = normalize_url(url)
    headers = {"User-Agent": user_agent}
    try:
        session = _get_thread_request_session()
        resp = session.get(normalized_url, headers=headers, params=params, timeout=timeout)
        resp.raise_for_status()
        logger.debug("GET %s -> %s", resp.url, resp.status_code)
        return resp
    except requests.RequestException as exc:
        logger.warning(f"Failed to fetch {url}: {exc}")
        return None


def http_get(
    url: str,
    user_agent: str,
    timeout: int,
    *,
    params: Optional[Mapping[str, str]] = None,
) -> Tuple[Optional[bytes], Optional[str]]:
    """Fetch a URL and return its content and Content-Type header."""
    resp = fetch_url(url, user_agent, timeout, params=params)
    if resp is None:
        return None, None
    try:
        return resp.content, resp.headers.get("Content-Type", "")
    finally:
        resp.close()


def post_json(
    url: str,
    payload: Dict[str, Any],
    user_agent: str,
    timeout: int,
) -> Dict[str, Any]:
    """POST a JSON body and return the decoded JSON reply.

    JSON error bodies are returned as-is so that RPC error objects reach the
    caller even on non-2xx replies.

    Raises:
        requests.RequestException: On connection errors and non-2xx, non-JSON replies
        ValueError: If the reply is not a JSON object
    """
    session = _get_thread_request_session()
    resp = session.post(
        normalize_url(url),
        json=payload,
        headers={"User-Agent": user_agent},
        timeout=timeout,
    )
    try:
        try:
            data = resp.json()
        except ValueError:
            resp.raise_for_status()
            raise
    finally:
        resp.close()
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object from {url}, got {type(data).__name__}")
    return data

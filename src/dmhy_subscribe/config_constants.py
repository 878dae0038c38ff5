"""Configuration constants for dmhy_subscribe.

All constants are re-exported from config.py for convenience.
"""

import os

APP_NAME = "dmhy-subscribe"

# General defaults
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_TIMEOUT_SECONDS = 20
MIN_TIMEOUT_SECONDS = 1
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/119.0 Safari/537.36"
)
DEFAULT_WORKERS = max(1, min(8, os.cpu_count() or 4))

# Feed source
DEFAULT_FEED_URL = "https://share.dmhy.org/topics/rss/rss.xml"
FEED_KEYWORD_SEPARATOR = "+"

# Download clients
CLIENT_ARIA2 = "aria2"
CLIENT_DELUGE = "deluge"
SUPPORTED_CLIENTS = frozenset({CLIENT_ARIA2, CLIENT_DELUGE})
DEFAULT_CLIENT = CLIENT_ARIA2
DEFAULT_DESTINATION = "~/Downloads"
DEFAULT_JSONRPC = "http://localhost:6800/jsonrpc"

# Store
DATABASE_FILENAME = "fakedb.json"
CONFIG_FILENAME = "config.json"

# Subscription identifiers
SID_LENGTH = 3
MAX_SID_ATTEMPTS = 10000
NO_LATEST_EPISODE = -1

# Validation constants
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

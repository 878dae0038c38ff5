from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv
from platformdirs import user_config_dir, user_data_dir
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
    ValidationInfo,
)

from . import config_constants


def _is_test_environment() -> bool:
    """Check if we're running in a test environment."""
    import sys

    if "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ:
        return True
    if os.environ.get("TESTING", "").lower() in ("1", "true", "yes"):
        return True
    return False


# Tests must set Config values explicitly, never through a stray .env file
if not _is_test_environment():
    try:
        load_dotenv(override=False)
    except (PermissionError, OSError):
        pass

APP_NAME = config_constants.APP_NAME
DEFAULT_LOG_LEVEL = config_constants.DEFAULT_LOG_LEVEL
DEFAULT_TIMEOUT_SECONDS = config_constants.DEFAULT_TIMEOUT_SECONDS
MIN_TIMEOUT_SECONDS = config_constants.MIN_TIMEOUT_SECONDS
DEFAULT_USER_AGENT = config_constants.DEFAULT_USER_AGENT
DEFAULT_WORKERS = config_constants.DEFAULT_WORKERS
DEFAULT_FEED_URL = config_constants.DEFAULT_FEED_URL
DEFAULT_CLIENT = config_constants.DEFAULT_CLIENT
DEFAULT_DESTINATION = config_constants.DEFAULT_DESTINATION
DEFAULT_JSONRPC = config_constants.DEFAULT_JSONRPC
SUPPORTED_CLIENTS = config_constants.SUPPORTED_CLIENTS
VALID_LOG_LEVELS = config_constants.VALID_LOG_LEVELS

# Environment variables consulted when a field is not given explicitly
ENV_OVERRIDES = {
    "client": "DMHY_CLIENT",
    "destination": "DMHY_DESTINATION",
    "jsonrpc": "DMHY_JSONRPC",
    "db_path": "DMHY_DB_PATH",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
}


def default_config_path() -> Path:
    """Return the per-user configuration file location."""
    return Path(user_config_dir(APP_NAME)) / config_constants.CONFIG_FILENAME


def default_db_path() -> Path:
    """Return the per-user subscription store location."""
    return Path(user_data_dir(APP_NAME)) / config_constants.DATABASE_FILENAME


def _validate_http_url(value: str, field_name: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"{field_name} must be an http or https URL, got: {value}")
    if not parsed.netloc:
        raise ValueError(f"{field_name} must have a valid hostname: {value}")
    return value


class Config(BaseModel):
    """Settings for dmhy_subscribe.

    Download fields (``client``, ``destination``, ``jsonrpc``) are the defaults
    that ``Database.download`` falls back to when a call does not override them.

    Example:
        >>> cfg = Config(client="deluge", destination="~/anime")
        >>> cfg.get("client")
        'deluge'
    """

    client: str = Field(
        default=DEFAULT_CLIENT,
        description=f"Download client, one of {sorted(SUPPORTED_CLIENTS)}.",
    )
    destination: str = Field(
        default=DEFAULT_DESTINATION,
        validate_default=True,
        description="Directory the download client saves into.",
    )
    jsonrpc: str = Field(
        default=DEFAULT_JSONRPC,
        description="aria2 JSON-RPC endpoint; add ?token=<secret> for rpc-secret.",
    )
    db_path: Optional[str] = Field(
        default=None,
        description="Subscription store file (default: per-user data directory).",
    )
    feed_url: str = Field(
        default=DEFAULT_FEED_URL,
        description="RSS endpoint queried for new threads.",
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="HTTP User-Agent header.")
    timeout: int = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        description="HTTP timeout in seconds for feed requests.",
    )
    workers: int = Field(
        default=DEFAULT_WORKERS,
        description="Number of feeds fetched concurrently.",
    )
    log_level: str = Field(default=DEFAULT_LOG_LEVEL, description="Logging level.")
    log_file: Optional[str] = Field(default=None, description="Optional log file path.")

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _load_env_overrides(cls, data: Any) -> Any:
        """Fill fields that were not provided from their environment variables."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for field_name, env_name in ENV_OVERRIDES.items():
            if data.get(field_name) not in (None, ""):
                continue
            env_value = os.getenv(env_name, "").strip()
            if env_value:
                data[field_name] = env_value
        return data

    @field_validator("client", mode="before")
    @classmethod
    def _normalize_client(cls, value: Any) -> str:
        if value is None:
            return DEFAULT_CLIENT
        return str(value).strip().lower() or DEFAULT_CLIENT

    @field_validator("client", mode="after")
    @classmethod
    def _validate_client(cls, value: str) -> str:
        if value not in SUPPORTED_CLIENTS:
            raise ValueError(f"client must be one of {sorted(SUPPORTED_CLIENTS)}, got: {value}")
        return value

    @field_validator("destination", mode="before")
    @classmethod
    def _expand_destination(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            value = DEFAULT_DESTINATION
        return os.path.expanduser(str(value).strip())

    @field_validator("jsonrpc", mode="before")
    @classmethod
    def _coerce_jsonrpc(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            return DEFAULT_JSONRPC
        return str(value).strip()

    @field_validator("jsonrpc", "feed_url", mode="after")
    @classmethod
    def _validate_urls(cls, value: str, info: ValidationInfo) -> str:
        return _validate_http_url(value, info.field_name)

    @field_validator("db_path", "log_file", mode="before")
    @classmethod
    def _expand_optional_path(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value_str = str(value).strip()
        return os.path.expanduser(value_str) if value_str else None

    @field_validator("user_agent", mode="before")
    @classmethod
    def _coerce_user_agent(cls, value: Any) -> str:
        if value is None:
            return DEFAULT_USER_AGENT
        return str(value).strip() or DEFAULT_USER_AGENT

    @field_validator("timeout", mode="before")
    @classmethod
    def _ensure_timeout(cls, value: Any) -> int:
        if value is None or value == "":
            return DEFAULT_TIMEOUT_SECONDS
        try:
            timeout = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("timeout must be an integer") from exc
        return max(MIN_TIMEOUT_SECONDS, timeout)

    @field_validator("workers", mode="before")
    @classmethod
    def _ensure_workers(cls, value: Any) -> int:
        if value is None or value == "":
            return DEFAULT_WORKERS
        try:
            workers = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("workers must be an integer") from exc
        if workers < 1:
            raise ValueError("workers must be at least 1")
        return workers

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        if value is None:
            return DEFAULT_LOG_LEVEL
        return str(value).strip().upper() or DEFAULT_LOG_LEVEL

    @field_validator("log_level", mode="after")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        if value not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}, got: {value}")
        return value

    @property
    def effective_db_path(self) -> Path:
        return Path(self.db_path) if self.db_path else default_db_path()

    def get(self, key: str) -> Any:
        """Return a setting by name.

        Raises:
            KeyError: If ``key`` is not a setting
        """
        if key not in type(self).model_fields:
            raise KeyError(f"Unknown config key: {key}")
        return getattr(self, key)

    def with_updates(self, **values: Any) -> "Config":
        """Return a re-validated copy with ``values`` applied."""
        unknown = set(values) - set(type(self).model_fields)
        if unknown:
            raise KeyError(f"Unknown config key: {', '.join(sorted(unknown))}")
        payload = self.model_dump()
        payload.update(values)
        return type(self).model_validate(payload)


def load_config_file(path: str) -> Dict[str, Any]:
    """Load configuration from a JSON or YAML file.

    The format is picked from the extension (``.json``, ``.yaml`` or ``.yml``).
    The returned mapping can be unpacked into ``Config``.

    Raises:
        ValueError: If the path is empty, missing, unreadable, unparsable, of an
            unsupported type, or does not hold a mapping at the top level
    """
    if not path:
        raise ValueError("Config path cannot be empty")

    cfg_path = Path(path).expanduser()
    try:
        resolved = cfg_path.resolve()
    except (OSError, RuntimeError) as exc:
        raise ValueError(f"Invalid config path: {path} ({exc})") from exc

    if not resolved.exists():
        raise ValueError(f"Config file not found: {resolved}")

    suffix = resolved.suffix.lower()
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Failed to read config file {resolved}: {exc}") from exc

    if suffix == ".json":
        try:
            data = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON config file {resolved}: {exc}") from exc
    elif suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML config file {resolved}: {exc}") from exc
    else:
        raise ValueError(f"Unsupported config file type: {resolved.suffix}")

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a mapping/object at the top level")

    return data


def save_config_file(cfg: Config, path: str) -> None:
    """Write the settings that differ from the defaults to ``path``.

    YAML is written for ``.yaml``/``.yml`` paths, JSON otherwise.
    """
    cfg_path = Path(path).expanduser()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    data = cfg.model_dump(exclude_defaults=True)
    if cfg_path.suffix.lower() in (".yaml", ".yml"):
        text = yaml.safe_dump(data, allow_unicode=True, sort_keys=True)
    else:
        text = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
    cfg_path.write_text(text, encoding="utf-8")


def load_config(path: Optional[str] = None) -> Config:
    """Build a Config from ``path``, or from the per-user file when it exists."""
    if path:
        return Config(**load_config_file(path))
    default_path = default_config_path()
    if default_path.exists():
        return Config(**load_config_file(str(default_path)))
    return Config()

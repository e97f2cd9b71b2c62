"""Configuration for the proxy: defaults, config file, environment"""

import configparser
import logging
import os
import platform
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from modproxy.codec import check_module_path
from modproxy.exceptions import ConfigError, ValidationError

APP_NAME = "modproxy"
SECTION = "proxy"

logger = logging.getLogger(__name__)

_home = os.path.expanduser("~")

xdg_config_home = os.environ.get("XDG_CONFIG_HOME") or os.path.join(_home, ".config")
xdg_cache_home = os.environ.get("XDG_CACHE_HOME") or os.path.join(_home, ".cache")

if platform.system() == "Darwin":
    # macOS
    config_dir = Path("~/Library/Application Support/modproxy").expanduser()
else:
    # Linux or others
    config_dir = Path(os.path.join(xdg_config_home, APP_NAME))


default_cfg = {
    "host": "0.0.0.0",
    "port": "8000",
    "cache_dir": os.path.join(xdg_cache_home, APP_NAME),
    "user": "dummy",
    "list_timeout": "30",
    "fetch_timeout": "300",
    "max_fetches": "4",
    "mutable_ttl": "300",
    "clone_depth": "1",
}

# config key -> environment variable
ENV_VARS = {
    "host": "MODPROXY_HOST",
    "port": "MODPROXY_PORT",
    "cache_dir": "MODPROXY_CACHE_DIR",
    "token": "GITHUB_TOKEN",
    "source_namespace": "MODPROXY_SOURCE",
    "destination_root": "MODPROXY_DESTINATION",
    "user": "MODPROXY_USER",
    "list_timeout": "MODPROXY_LIST_TIMEOUT",
    "fetch_timeout": "MODPROXY_FETCH_TIMEOUT",
    "max_fetches": "MODPROXY_MAX_FETCHES",
    "mutable_ttl": "MODPROXY_MUTABLE_TTL",
    "clone_depth": "MODPROXY_CLONE_DEPTH",
}

REQUIRED = ("port", "cache_dir", "token", "source_namespace", "destination_root")


def get_config_file() -> Path:
    return config_dir / f"{APP_NAME}.cfg"


class ConfigAccessor:
    """
    Read-only view of the INI configuration file.

    A missing file, section or key is not an error; lookups fall back to the
    supplied default. A file that exists but does not parse is.

    Usage:
        config = ConfigAccessor()
        value = config.get("proxy", "port", default="8000")
    """

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = Path(config_path) if config_path else get_config_file()
        self.config = configparser.ConfigParser()
        if not self.config_path.is_file():
            logger.debug(f"No configuration file at {self.config_path}")
            return
        try:
            self.config.read(self.config_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigError(f"Could not parse {self.config_path}: {e}") from e
        logger.debug(f"Read configuration from {self.config_path}")

    def get(self, section: str, key: str, default: Any = None) -> Any:
        if not self.config.has_option(section, key):
            return default
        return self.config.get(section, key, raw=True)


@dataclass(frozen=True)
class ProxyConfig:
    """
    Immutable proxy configuration, built once at startup.

    Every component receives the values it needs from this object through
    its constructor; nothing reads the environment after startup.
    """

    port: int
    cache_dir: Path
    token: str
    source_namespace: str
    destination_root: str
    host: str = "0.0.0.0"
    user: str = "dummy"
    list_timeout: float = 30.0
    fetch_timeout: float = 300.0
    max_fetches: int = 4
    mutable_ttl: float = 300.0
    clone_depth: int = 1

    def repo_url(self, repo_name: str) -> str:
        """Authenticated https address of a destination repository."""
        return f"https://{self.user}:{self.token}@{self.destination_root}/{repo_name}"

    def public_repo_url(self, repo_name: str) -> str:
        """Destination repository address without credentials, for logs and errors."""
        return f"https://{self.destination_root}/{repo_name}"

    def masked(self) -> dict:
        """Configuration as a dict, with the token hidden."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values["token"] = "****" if self.token else ""
        values["cache_dir"] = str(self.cache_dir)
        return values


def _to_int(key: str, value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {key}: {value!r} is not an integer")


def _to_float(key: str, value: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {key}: {value!r} is not a number")


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> ProxyConfig:
    """
    Resolve the proxy configuration.

    Precedence, lowest first: built-in defaults, the ``[proxy]`` section of
    the config file, environment variables, explicit overrides (CLI options).
    Overrides whose value is None are ignored.

    Args:
        config_path: INI file to read (defaults to the XDG config location)
        environ: Environment mapping (defaults to os.environ)
        overrides: Values taking precedence over everything else

    Returns:
        The resolved, validated ProxyConfig

    Raises:
        ConfigError: If a required value is missing or a value cannot be parsed
    """
    if environ is None:
        environ = os.environ

    accessor = ConfigAccessor(config_path)
    raw = dict(default_cfg)
    for key in ENV_VARS:
        value = accessor.get(SECTION, key)
        if value is not None:
            raw[key] = value
    for key, var in ENV_VARS.items():
        value = environ.get(var)
        if value:
            raw[key] = value
    for key, value in (overrides or {}).items():
        if value is not None:
            raw[key] = str(value)

    missing = [key for key in REQUIRED if not str(raw.get(key, "")).strip()]
    if missing:
        hints = ", ".join(f"{key} ({ENV_VARS[key]})" for key in missing)
        raise ConfigError(f"Missing required configuration: {hints}")

    cfg = ProxyConfig(
        port=_to_int("port", raw["port"]),
        cache_dir=Path(raw["cache_dir"]).expanduser(),
        token=raw["token"].strip(),
        source_namespace=raw["source_namespace"].strip().strip("/"),
        destination_root=raw["destination_root"].strip().strip("/"),
        host=raw["host"],
        user=raw["user"],
        list_timeout=_to_float("list_timeout", raw["list_timeout"]),
        fetch_timeout=_to_float("fetch_timeout", raw["fetch_timeout"]),
        max_fetches=_to_int("max_fetches", raw["max_fetches"]),
        mutable_ttl=_to_float("mutable_ttl", raw["mutable_ttl"]),
        clone_depth=_to_int("clone_depth", raw["clone_depth"]),
    )

    if not 0 < cfg.port < 65536:
        raise ConfigError(f"Invalid value for port: {cfg.port}")
    if cfg.max_fetches < 1:
        raise ConfigError(f"Invalid value for max_fetches: {cfg.max_fetches}")
    if cfg.list_timeout <= 0 or cfg.fetch_timeout <= 0:
        raise ConfigError("Timeouts must be positive")
    try:
        check_module_path(cfg.source_namespace)
    except ValidationError as e:
        raise ConfigError(f"Invalid source namespace: {e}")

    return cfg

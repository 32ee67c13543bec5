"""Layered configuration of a standalone hub: flags, environment, files and defaults."""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
import tomllib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

from mercurehub.hub import HubOptions

CONFIG_NAME = "mercure"
CONFIG_EXTENSIONS = ("json", "toml")
DEFAULT_WRITE_TIMEOUT = timedelta(seconds=600)

_log = logging.getLogger(__name__)
_UNSET = object()
_TRUE_STRINGS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}
_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class InvalidConfigError(ValueError):
    """Raised when the configuration is inconsistent or incomplete."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"invalid config: {detail}")
        self.detail = detail


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"40s"``, ``"1m30s"`` or ``"250ms"``."""
    rest = text
    sign = 1
    if rest[:1] in ("+", "-"):
        sign = -1 if rest[0] == "-" else 1
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ValueError(f'invalid duration "{text}"')
    total = 0.0
    pos = 0
    while pos < len(rest):
        match = _DURATION_PART.match(rest, pos)
        if match is None:
            raise ValueError(f'invalid duration "{text}"')
        total += float(match.group(1)) * _NANOSECONDS[match.group(2)]
        pos = match.end()
    return timedelta(microseconds=sign * total / 1000)


def _to_duration(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool) or value is None:
        return timedelta(0)
    if isinstance(value, (int, float)):
        return timedelta(microseconds=value / 1000)
    text = str(value)
    try:
        if text.lstrip("+-").replace(".", "", 1).isdigit():
            return timedelta(microseconds=float(text) / 1000)
        return parse_duration(text)
    except ValueError:
        return timedelta(0)


class Config:
    """Configuration values looked up, in order, in explicit settings,
    command-line flags, the environment, a configuration file, defaults and
    the defaults of the flags."""

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self.environ = environ
        self._overrides: dict[str, Any] = {}
        self._flags: dict[str, Any] = {}
        self._file: dict[str, Any] = {}
        self._defaults: dict[str, Any] = {}
        self._flag_defaults: dict[str, Any] = {}

    def set(self, key: str, value: Any) -> None:
        self._overrides[key.lower()] = value

    def set_default(self, key: str, value: Any) -> None:
        self._defaults[key.lower()] = value

    def _bind_flag(self, key: str, default: Any, value: Any = _UNSET) -> None:
        key = key.lower()
        self._flag_defaults[key] = default
        if value is not _UNSET:
            self._flags[key] = value

    def _read_file(self, path: Path) -> None:
        text = path.read_text(encoding="utf-8")
        data = tomllib.loads(text) if path.suffix == ".toml" else json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"{path}: the configuration must be a table")
        self._file = {str(key).lower(): value for key, value in data.items()}

    def get(self, key: str, default: Any = None) -> Any:
        key = key.lower()
        for layer in (self._overrides, self._flags):
            if key in layer:
                return layer[key]
        if self.environ is not None:
            env_value = self.environ.get(key.upper())
            if env_value:
                return env_value
        for layer in (self._file, self._defaults, self._flag_defaults):
            if key in layer:
                return layer[key]
        return default

    def get_string(self, key: str) -> str:
        value = self.get(key)
        if value is None or isinstance(value, (list, tuple, dict)):
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def get_bool(self, key: str) -> bool:
        value = self.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            return value in _TRUE_STRINGS
        return False

    def get_int(self, key: str) -> int:
        value = self.get(key)
        if isinstance(value, (bool, int)):
            return int(value)
        if isinstance(value, float):
            return int(value)
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                return 0
        return 0

    def get_duration(self, key: str) -> timedelta:
        return _to_duration(self.get(key))

    def get_string_list(self, key: str) -> list[str]:
        value = self.get(key)
        if value is None:
            return []
        if isinstance(value, str):
            return value.split()
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        return []

    def keys(self) -> list[str]:
        names: set[str] = set()
        for layer in (self._overrides, self._flags, self._file, self._defaults, self._flag_defaults):
            names.update(layer)
        return sorted(names)


def set_config_defaults(config: Config) -> None:
    """Register the default value of every setting."""
    config.set_default("debug", False)
    config.set_default("transport_url", "bolt://updates.db")
    config.set_default("jwt_algorithm", "HS256")
    config.set_default("allow_anonymous", False)
    config.set_default("acme_http01_addr", ":http")
    # Must stay under 45s for compatibility with some EventSource polyfills.
    config.set_default("heartbeat_interval", timedelta(seconds=40))
    config.set_default("read_timeout", timedelta(seconds=5))
    config.set_default("read_header_timeout", timedelta(seconds=3))
    config.set_default("write_timeout", DEFAULT_WRITE_TIMEOUT)
    config.set_default("dispatch_timeout", timedelta(seconds=5))
    config.set_default("compress", False)
    config.set_default("use_forwarded_headers", False)
    config.set_default("demo", False)
    config.set_default("subscriptions", False)
    config.set_default("metrics_enabled", False)
    config.set_default("metrics_addr", "127.0.0.1:9764")


def validate_config(config: Config) -> None:
    """Raise InvalidConfigError if the configuration cannot start a hub."""
    if not config.get_string("publisher_jwt_key") and not config.get_string("jwt_key"):
        raise InvalidConfigError(
            'one of "jwt_key" or "publisher_jwt_key" configuration parameter must be defined'
        )
    if config.get_string("cert_file") and not config.get_string("key_file"):
        raise InvalidConfigError(
            'if the "cert_file" configuration parameter is defined, "key_file" must be defined too'
        )
    if config.get_string("key_file") and not config.get_string("cert_file"):
        raise InvalidConfigError(
            'if the "key_file" configuration parameter is defined, "cert_file" must be defined too'
        )
    if not config.get_bool("metrics_enabled"):
        return
    if not config.get_string("metrics_addr"):
        raise InvalidConfigError('"metrics_addr" must be defined when metrics is enabled')
    if config.get_string("metrics_addr") == config.get_string("addr"):
        raise InvalidConfigError('"metrics_addr" must not be the same as "addr"')


@dataclass(frozen=True)
class _Flag:
    name: str
    short: str | None
    kind: str
    default: Any
    help: str

    @property
    def key(self) -> str:
        return self.name.replace("-", "_")


_FLAGS = (
    _Flag("debug", "d", "bool", False, "enable the debug mode"),
    _Flag("transport-url", "t", "str", "", "transport and history system to use"),
    _Flag("jwt-key", "k", "str", "", "JWT key"),
    _Flag("jwt-algorithm", "O", "str", "", "JWT algorithm"),
    _Flag("publisher-jwt-key", "K", "str", "", "publisher JWT key"),
    _Flag("publisher-jwt-algorithm", "A", "str", "", "publisher JWT algorithm"),
    _Flag("subscriber-jwt-key", "L", "str", "", "subscriber JWT key"),
    _Flag("subscriber-jwt-algorithm", "B", "str", "", "subscriber JWT algorithm"),
    _Flag("allow-anonymous", "X", "bool", False, "allow subscribers with no valid JWT to connect"),
    _Flag("cors-allowed-origins", "c", "list", [], "list of allowed CORS origins"),
    _Flag("publish-allowed-origins", "p", "list", [], "list of origins allowed to publish"),
    _Flag("addr", "a", "str", "", "the address to listen on"),
    _Flag("acme-hosts", "o", "list", [], "list of hosts for which Let's Encrypt certificates must be issued"),
    _Flag("acme-cert-dir", "E", "str", "", "the directory where to store Let's Encrypt certificates"),
    _Flag("cert-file", "C", "str", "", "a cert file (to use a custom certificate)"),
    _Flag("key-file", "J", "str", "", "a key file (to use a custom certificate)"),
    _Flag("heartbeat-interval", "i", "duration", timedelta(seconds=15),
          "interval between heartbeats (0s to disable)"),
    _Flag("read-timeout", "R", "duration", timedelta(seconds=5),
          "maximum duration for reading the entire request, including the body, 5s by default, 0s to disable"),
    _Flag("write-timeout", "W", "duration", timedelta(seconds=60),
          "maximum duration of a connection, 60s by default, 0s to disable"),
    _Flag("dispatch-timeout", "T", "duration", timedelta(seconds=5),
          "maximum duration of the dispatch of a single update, 5s by default, 0s to disable"),
    _Flag("compress", "Z", "bool", False, "enable or disable HTTP compression support"),
    _Flag("use-forwarded-headers", "f", "bool", False, "enable headers forwarding"),
    _Flag("demo", "D", "bool", False, "enable the demo mode"),
    _Flag("subscriptions", "s", "bool", False, "dispatch updates when subscriptions are created or terminated"),
    _Flag("metrics-enabled", None, "bool", False, "enable metrics"),
    _Flag("metrics-addr", None, "str", "127.0.0.1:9764", "metrics HTTP server address"),
)


def add_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Declare every configuration flag on ``parser``."""
    for flag in _FLAGS:
        names = [f"--{flag.name}"]
        if flag.short:
            names.append(f"-{flag.short}")
        common = {"dest": flag.key, "default": argparse.SUPPRESS, "help": flag.help}
        if flag.kind == "bool":
            parser.add_argument(*names, action="store_true", **common)
        elif flag.kind == "list":
            parser.add_argument(*names, action="append", metavar="VALUES", **common)
        elif flag.kind == "duration":
            parser.add_argument(*names, type=parse_duration, metavar="DURATION", **common)
        else:
            parser.add_argument(*names, **common)
    return parser


def apply_arguments(config: Config, namespace: argparse.Namespace) -> None:
    """Bind parsed flags to ``config``; flags that were not given only supply defaults."""
    given = vars(namespace)
    for flag in _FLAGS:
        value = given.get(flag.key, _UNSET)
        if flag.kind == "list" and value is not _UNSET:
            value = [item.strip() for chunk in value for item in chunk.split(",") if item.strip()]
        config._bind_flag(flag.key, flag.default, value)


def _default_search_paths(environ: Mapping[str, str]) -> list[Path]:
    config_dir = environ.get("XDG_CONFIG_HOME")
    if config_dir:
        base = Path(config_dir)
    else:
        home = environ.get("HOME")
        base = (Path(home) if home else Path.home()) / ".config"
    return [Path("."), base / CONFIG_NAME, Path("/etc") / CONFIG_NAME]


def _find_config_file(search_paths: Iterable[str | os.PathLike[str]]) -> Path | None:
    for directory in search_paths:
        for extension in CONFIG_EXTENSIONS:
            candidate = Path(directory) / f"{CONFIG_NAME}.{extension}"
            if candidate.is_file():
                return candidate
    return None


def init_config(
    config: Config,
    environ: Mapping[str, str] | None = None,
    search_paths: Iterable[str | os.PathLike[str]] | None = None,
) -> Path | None:
    """Set defaults, read the environment and load the first configuration file found.

    Returns the path of the loaded file, or None when there is none.
    """
    set_config_defaults(config)
    config.environ = os.environ if environ is None else environ
    if search_paths is None:
        search_paths = _default_search_paths(config.environ)
    path = _find_config_file(search_paths)
    if path is None:
        return None
    try:
        config._read_file(path)
    except (OSError, ValueError) as exc:
        _log.warning("Unable to read configuration file %s: %s", path, exc)
        return None
    return path


def _algorithm(config: Config, key: str) -> str:
    return config.get_string(key) or config.get_string("jwt_algorithm") or "HS256"


def hub_options_from_config(config: Config) -> HubOptions:
    """Build the hub options described by ``config``."""
    validate_config(config)
    options = HubOptions()
    options.debug = config.get_bool("debug")
    logger = logging.getLogger("mercurehub")
    if options.debug:
        logger.setLevel(logging.DEBUG)
    options.logger = logger

    if config.get_bool("allow_anonymous"):
        options.anonymous = True
    if config.get_bool("demo"):
        options.enable_demo()
    write_timeout = config.get_duration("write_timeout")
    if write_timeout != DEFAULT_WRITE_TIMEOUT:
        options.write_timeout = write_timeout
    dispatch_timeout = config.get_duration("dispatch_timeout")
    if dispatch_timeout:
        options.dispatch_timeout = dispatch_timeout
    if config.get_bool("subscriptions"):
        options.subscriptions = True
    heartbeat = config.get_duration("heartbeat_interval")
    if heartbeat:
        options.heartbeat = heartbeat

    publisher_key = config.get_string("publisher_jwt_key") or config.get_string("jwt_key")
    if publisher_key:
        options.set_publisher_jwt(publisher_key, _algorithm(config, "publisher_jwt_algorithm"))
    subscriber_key = config.get_string("subscriber_jwt_key") or config.get_string("jwt_key")
    if subscriber_key:
        options.set_subscriber_jwt(subscriber_key, _algorithm(config, "subscriber_jwt_algorithm"))

    hosts = config.get_string_list("acme_hosts")
    if hosts:
        options.allowed_hosts = hosts
    publish_origins = config.get_string_list("publish_allowed_origins")
    if publish_origins:
        options.set_publish_origins(publish_origins)
    cors_origins = config.get_string_list("cors_allowed_origins")
    if cors_origins:
        options.set_cors_origins(cors_origins)
    return options
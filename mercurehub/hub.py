"""Hub options and their validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any
from urllib.parse import urlsplit

DEFAULT_HUB_URL = "/.well-known/mercure"
DEFAULT_COOKIE_NAME = "mercureAuthorization"
DEFAULT_WRITE_TIMEOUT = timedelta(seconds=600)
DEFAULT_DISPATCH_TIMEOUT = timedelta(seconds=5)
DEFAULT_HEARTBEAT = timedelta(seconds=40)

HMAC_ALGORITHMS = frozenset({"HS256", "HS384", "HS512"})
RSA_ALGORITHMS = frozenset({"RS256", "RS384", "RS512"})


class UnsupportedProtocolVersionError(ValueError):
    """Raised when a compatibility version other than 7 is requested."""

    def __init__(self, version: int) -> None:
        super().__init__("compatibility mode only supports protocol version 7")
        self.version = version


class InvalidOriginError(ValueError):
    """Raised when an origin is not a bare scheme/host/port, "*" or "null"."""

    def __init__(self, origin: str) -> None:
        super().__init__(
            'invalid origin, must be a URL having only a scheme, a host and optionally a port, '
            f'"*" or "null": {origin!r}'
        )
        self.origin = origin


class UnexpectedSigningMethodError(ValueError):
    """Raised when a JWT signing algorithm is not supported."""

    def __init__(self, algorithm: str) -> None:
        super().__init__(f"{algorithm}: unexpected signing method")
        self.algorithm = algorithm


@dataclass(frozen=True)
class JWTConfig:
    """A JWT key together with its signing algorithm."""

    key: bytes
    algorithm: str

    @property
    def is_hmac(self) -> bool:
        return self.algorithm in HMAC_ALGORITHMS


def create_jwt_config(key: bytes | str, alg: str) -> JWTConfig:
    """Build a JWT configuration; only HMAC and RSA algorithms are accepted."""
    if alg not in HMAC_ALGORITHMS and alg not in RSA_ALGORITHMS:
        raise UnexpectedSigningMethodError(alg)
    if isinstance(key, str):
        key = key.encode()
    return JWTConfig(key, alg)


def _valid_optional_port(hostport: str) -> bool:
    if hostport.startswith("["):
        _, bracket, rest = hostport.partition("]")
        if not bracket:
            return False
        if not rest:
            return True
        if not rest.startswith(":"):
            return False
        port = rest[1:]
    elif ":" in hostport:
        port = hostport.rpartition(":")[2]
    else:
        return True
    return port == "" or port.isascii() and port.isdigit()


def _is_valid_origin(origin: str) -> bool:
    if origin in ("*", "null"):
        return True
    try:
        parts = urlsplit(origin)
    except ValueError:
        return False
    if not parts.scheme:
        return False
    if parts.path or parts.query or parts.fragment:
        return False
    if "@" in parts.netloc:
        return False
    return _valid_optional_port(parts.netloc)


def validate_origins(origins: list[str]) -> None:
    """Raise InvalidOriginError for the first origin that is not acceptable."""
    for origin in origins:
        if not _is_valid_origin(origin):
            raise InvalidOriginError(origin)


@dataclass
class HubOptions:
    """Everything that configures a hub."""

    transport: Any = None
    topic_selector_store: Any = None
    anonymous: bool = False
    debug: bool = False
    subscriptions: bool = False
    ui: bool = False
    demo: bool = False
    logger: logging.Logger | None = None
    write_timeout: timedelta = DEFAULT_WRITE_TIMEOUT
    dispatch_timeout: timedelta = DEFAULT_DISPATCH_TIMEOUT
    heartbeat: timedelta = DEFAULT_HEARTBEAT
    publisher_jwt: JWTConfig | None = None
    subscriber_jwt: JWTConfig | None = None
    metrics: Any = None
    allowed_hosts: list[str] = field(default_factory=list)
    publish_origins: list[str] = field(default_factory=list)
    cors_origins: list[str] = field(default_factory=list)
    cookie_name: str = DEFAULT_COOKIE_NAME
    protocol_version_compatibility: int = 0

    def enable_demo(self) -> None:
        """Enable the demo endpoints, which also need the UI."""
        self.demo = True
        self.ui = True

    def set_publisher_jwt(self, key: bytes | str, alg: str) -> None:
        self.publisher_jwt = create_jwt_config(key, alg)

    def set_subscriber_jwt(self, key: bytes | str, alg: str) -> None:
        self.subscriber_jwt = create_jwt_config(key, alg)

    def set_publish_origins(self, origins: list[str]) -> None:
        validate_origins(origins)
        self.publish_origins = list(origins)

    def set_cors_origins(self, origins: list[str]) -> None:
        validate_origins(origins)
        self.cors_origins = list(origins)

    def set_protocol_version_compatibility(self, version: int) -> None:
        if version != 7:
            raise UnsupportedProtocolVersionError(version)
        self.protocol_version_compatibility = version

    def is_backward_compatibly_enabled_with(self, version: int) -> bool:
        return (
            self.protocol_version_compatibility != 0
            and version >= self.protocol_version_compatibility
        )
"""Authorization of publishers and subscribers through JWTs."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, urlsplit

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from cryptography.hazmat.primitives.serialization import load_pem_public_key
from cryptography.x509 import load_pem_x509_certificate

from mercurehub.hub import (
    DEFAULT_COOKIE_NAME,
    HMAC_ALGORITHMS,
    RSA_ALGORITHMS,
    JWTConfig,
    UnexpectedSigningMethodError,
)

MERCURE_CLAIM = "mercure"
NAMESPACED_MERCURE_CLAIM = "https://mercure.rocks/"

_MIN_HEADER_LENGTH = 48
_MIN_QUERY_LENGTH = 41
_BEARER_PREFIX = "Bearer "


class AuthorizationError(Exception):
    """Base class of every authorization failure."""


class InvalidAuthorizationHeaderError(AuthorizationError):
    """The "Authorization" header is malformed."""

    def __init__(self) -> None:
        super().__init__('invalid "Authorization" HTTP header')


class InvalidAuthorizationQueryError(AuthorizationError):
    """The "authorization" query parameter is malformed."""

    def __init__(self) -> None:
        super().__init__('invalid "authorization" Query parameter')


class NoOriginError(AuthorizationError):
    """A cookie was used to publish without an Origin or Referer header."""

    def __init__(self) -> None:
        super().__init__(
            'an "Origin" or a "Referer" HTTP header must be present to use '
            "the cookie-based authorization mechanism"
        )


class OriginNotAllowedError(AuthorizationError):
    """The origin of a cookie-authorized publish request is not allowed."""

    def __init__(self, origin: str) -> None:
        super().__init__(f'"{origin}": origin not allowed to post updates')
        self.origin = origin


class InvalidJWTError(AuthorizationError):
    """The token cannot be parsed, is not signed correctly or is not valid."""


@dataclass
class Request:
    """The parts of an HTTP request that authorization looks at."""

    method: str = "GET"
    url: str = "/"
    headers: list[tuple[str, str]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if isinstance(self.headers, Mapping):
            pairs: list[tuple[str, str]] = []
            for name, value in self.headers.items():
                if isinstance(value, str):
                    pairs.append((name, value))
                else:
                    pairs.extend((name, item) for item in value)
            self.headers = pairs
        else:
            self.headers = list(self.headers)

    def header_values(self, name: str) -> list[str]:
        """Every value of the header ``name``, case-insensitively."""
        wanted = name.lower()
        return [value for key, value in self.headers if key.lower() == wanted]

    def header(self, name: str) -> str:
        """The first value of the header ``name``, or an empty string."""
        values = self.header_values(name)
        return values[0] if values else ""

    @property
    def query(self) -> dict[str, list[str]]:
        return parse_qs(urlsplit(self.url).query, keep_blank_values=True)

    def cookie(self, name: str) -> str | None:
        """The value of the first cookie called ``name``, or None."""
        for line in self.header_values("Cookie"):
            for part in line.split(";"):
                cookie_name, sep, value = part.strip().partition("=")
                if not sep or cookie_name != name:
                    continue
                if len(value) > 1 and value.startswith('"') and value.endswith('"'):
                    value = value[1:-1]
                return value
        return None


@dataclass
class MercureClaim:
    """The topics a token may publish to or subscribe to, and its payload."""

    publish: list[str] | None = None
    subscribe: list[str] | None = None
    payload: Any = None


@dataclass
class Claims:
    """The claims of a validated token."""

    mercure: MercureClaim = field(default_factory=MercureClaim)
    registered: dict[str, Any] = field(default_factory=dict)


def _topics(raw: Mapping[str, Any], name: str) -> list[str] | None:
    value = raw.get(name)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise InvalidJWTError(f'unable to parse JWT: "{name}" must be a list of strings')
    return list(value)


def _parse_mercure_claim(raw: Any) -> MercureClaim:
    if not isinstance(raw, Mapping):
        raise InvalidJWTError("unable to parse JWT: the mercure claim must be an object")
    return MercureClaim(
        publish=_topics(raw, "publish"),
        subscribe=_topics(raw, "subscribe"),
        payload=raw.get("payload"),
    )


def _load_rsa_public_key(pem: bytes) -> RSAPublicKey:
    try:
        if b"CERTIFICATE" in pem:
            key = load_pem_x509_certificate(pem).public_key()
        else:
            key = load_pem_public_key(pem)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise InvalidJWTError(
            f"unable to parse JWT: unable to parse RSA public key: {exc}"
        ) from exc
    if not isinstance(key, RSAPublicKey):
        raise InvalidJWTError("unable to parse JWT: unable to parse RSA public key: not an RSA key")
    return key


def _verification_key(jwt_config: JWTConfig) -> tuple[Any, list[str]]:
    if jwt_config.algorithm in HMAC_ALGORITHMS:
        return jwt_config.key, sorted(HMAC_ALGORITHMS)
    if jwt_config.algorithm in RSA_ALGORITHMS:
        return _load_rsa_public_key(jwt_config.key), sorted(RSA_ALGORITHMS)
    raise UnexpectedSigningMethodError(jwt_config.algorithm)


def validate_jwt(encoded_token: str, jwt_config: JWTConfig | None) -> Claims:
    """Check the signature and validity of a token and return its claims."""
    if jwt_config is None:
        raise InvalidJWTError("unable to parse JWT: no key configured")
    key, algorithms = _verification_key(jwt_config)
    try:
        payload = jwt.decode(
            encoded_token,
            key,
            algorithms=algorithms,
            options={"verify_aud": False},
        )
    except jwt.PyJWTError as exc:
        raise InvalidJWTError(f"unable to parse JWT: {exc}") from exc
    if not isinstance(payload, dict):
        raise InvalidJWTError("invalid JWT")

    registered = dict(payload)
    mercure = registered.pop(MERCURE_CLAIM, None)
    namespaced = registered.pop(NAMESPACED_MERCURE_CLAIM, None)
    claim = MercureClaim() if mercure is None else _parse_mercure_claim(mercure)
    if namespaced is not None:
        claim = _parse_mercure_claim(namespaced)
    return Claims(mercure=claim, registered=registered)


def _referer_origin(referer: str) -> str:
    try:
        parts = urlsplit(referer)
    except ValueError as exc:
        raise AuthorizationError(f"unable to parse referer: {exc}") from exc
    host = parts.netloc.rpartition("@")[2]
    return f"{parts.scheme}://{host}"


def authorize(
    request: Request,
    jwt_config: JWTConfig | None,
    publish_origins: Iterable[str],
    cookie_name: str = DEFAULT_COOKIE_NAME,
) -> Claims | None:
    """Validate the token carried by ``request``.

    The token is looked for in the "Authorization" header, then in the
    "authorization" query parameter, then in the cookie ``cookie_name``.
    Returns None when no token is provided (anonymous request).
    """
    authorization_headers = request.header_values("Authorization")
    if authorization_headers:
        if (
            len(authorization_headers) != 1
            or len(authorization_headers[0]) < _MIN_HEADER_LENGTH
            or not authorization_headers[0].startswith(_BEARER_PREFIX)
        ):
            raise InvalidAuthorizationHeaderError()
        return validate_jwt(authorization_headers[0][len(_BEARER_PREFIX):], jwt_config)

    query = request.query
    if "authorization" in query:
        values = query["authorization"]
        if len(values) != 1 or len(values[0]) < _MIN_QUERY_LENGTH:
            raise InvalidAuthorizationQueryError()
        return validate_jwt(values[0], jwt_config)

    cookie = request.cookie(cookie_name)
    if cookie is None:
        return None

    # Safe methods cannot be the target of CSRF attacks.
    if request.method != "POST":
        return validate_jwt(cookie, jwt_config)

    origin = request.header("Origin")
    if not origin:
        referer = request.header("Referer")
        if not referer:
            raise NoOriginError()
        origin = _referer_origin(referer)

    for allowed in publish_origins:
        if allowed == "*" or allowed == origin:
            return validate_jwt(cookie, jwt_config)

    raise OriginNotAllowedError(origin)
# mercurehub

Building blocks for a hub speaking the Mercure protocol, a push mechanism
that delivers updates to web browsers and other HTTP clients over
server-sent events.

Install with `pip install mercurehub`; the test suite needs the `test`
extra (`pip install "mercurehub[test]"`) and runs with `pytest`.

## What is in the package

- `mercurehub.event` — `Event` serializes an update in the
  `text/event-stream` format. `str(event)` writes an optional `event:`
  line, an optional `retry:` line, the `id:` line and one `data:` line per
  line of data (`\n`, `\r` and `\r\n` all split lines).
- `mercurehub.hub` — `HubOptions` holds the hub settings (timeouts and
  heartbeat as `timedelta`, JWT configurations, allowed hosts, publish and
  CORS origins, cookie name, protocol compatibility, flags such as
  `anonymous`, `debug`, `demo`, `ui` and `subscriptions`).
  `validate_origins` and `create_jwt_config` check origins and JWT
  settings; the constants `DEFAULT_HUB_URL`, `DEFAULT_COOKIE_NAME`,
  `DEFAULT_WRITE_TIMEOUT` (600 s), `DEFAULT_DISPATCH_TIMEOUT` (5 s) and
  `DEFAULT_HEARTBEAT` (40 s) give the defaults.
- `mercurehub.authorization` — `authorize` looks for a JWT in the
  `Authorization` header, then the `authorization` query parameter, then
  the authorization cookie (checking `Origin` or `Referer` against the
  allowed publish origins on `POST`), and `validate_jwt` checks a token
  and returns its `Claims`. `Request` describes the request being checked.
- `mercurehub.demo` — `demo` builds the `DemoResponse` of the demo
  endpoint used to try out discovery and cookie authorization.
- `mercurehub.config` — `Config` is a layered key/value store (explicit
  settings, command-line flags, environment variables, a configuration
  file, defaults). `set_config_defaults`, `add_arguments`,
  `apply_arguments`, `init_config`, `validate_config` and
  `hub_options_from_config` fill it, check it and turn it into
  `HubOptions`; `parse_duration` reads durations such as `"1m30s"`.
- `mercurehub.version` — `AppVersionInfo` and `current_version` describe
  the running build; `metrics_sample` renders it as a Prometheus gauge in
  the text exposition format.

## Serializing an event

```python
from mercurehub.event import Event

event = Event(data="several\nlines", id="custom-id", type="type", retry=5)
print(str(event), end="")
# event: type
# retry: 5
# id: custom-id
# data: several
# data: lines
```

## Hub options

```python
from mercurehub.hub import HubOptions, validate_origins

options = HubOptions()
options.set_publisher_jwt(b"secret", "HS256")
options.set_subscriber_jwt(b"secret", "HS256")
options.set_publish_origins(["https://example.com"])
options.set_protocol_version_compatibility(7)

validate_origins(["*", "null", "http://example.com:8000"])
```

Only HMAC (`HS256`, `HS384`, `HS512`) and RSA (`RS256`, `RS384`, `RS512`)
algorithms are accepted. An origin must be `*`, `null` or a URL with only
a scheme, a host and optionally a port. Invalid origins raise
`InvalidOriginError`, other algorithms raise
`UnexpectedSigningMethodError`, and any protocol version other than 7
raises `UnsupportedProtocolVersionError`. `enable_demo()` turns on both
the demo and the UI.

## Checking a token

```python
import jwt

from mercurehub.authorization import Request, authorize, validate_jwt
from mercurehub.hub import create_jwt_config

config = create_jwt_config(b"secret", "HS256")
encoded = jwt.encode({"mercure": {"subscribe": ["*"]}}, "secret", algorithm="HS256")

claims = validate_jwt(encoded, config)
print(claims.mercure.subscribe)  # ['*']

request = Request(method="GET", url="/.well-known/mercure?topic=foo",
                  headers={"Authorization": f"Bearer {encoded}"})
claims = authorize(request, config, publish_origins=[])
```

`authorize` returns `None` when the request carries no token. A token in
the `https://mercure.rocks/` claim takes the place of the `mercure` claim.
Failures raise a subclass of `AuthorizationError`:
`InvalidAuthorizationHeaderError`, `InvalidAuthorizationQueryError`,
`NoOriginError`, `OriginNotAllowedError` or `InvalidJWTError`.

## The demo endpoint

```python
from mercurehub.demo import demo

response = demo("http://example.com/demo/foo.jsonld?body=hello&jwt=token")
response.body          # 'hello'
response.content_type  # 'application/ld+json'
response.links         # ['</.well-known/mercure>; rel="mercure"', '<http://...>; rel="self"']
response.headers       # Link, Content-Type and Set-Cookie headers
```

Without a `jwt` parameter the cookie is expired. The cookie is
`SameSite=Strict`, scoped to the hub URL, and `HttpOnly` when `tls=True`.

## Configuration

```python
import argparse

from mercurehub.config import (
    Config,
    add_arguments,
    apply_arguments,
    hub_options_from_config,
    init_config,
)

parser = argparse.ArgumentParser(prog="hub")
add_arguments(parser)
namespace = parser.parse_args(["--jwt-key", "secret", "--allow-anonymous"])

config = Config()
init_config(config)
apply_arguments(config, namespace)

options = hub_options_from_config(config)
```

`init_config` sets the defaults, reads environment variables (the key in
upper case, for instance `JWT_KEY`) and loads the first `mercure.json` or
`mercure.toml` found in the current directory,
`$XDG_CONFIG_HOME/mercure` (or `~/.config/mercure`) and `/etc/mercure`;
it returns the path of the file it loaded, or `None`.

`validate_config`, which `hub_options_from_config` also calls, raises
`InvalidConfigError` when no JWT key is set, when only one of `cert_file`
and `key_file` is given, or when metrics are enabled without a
`metrics_addr` distinct from `addr`.

## What the package does not do

The package holds the pieces around a hub, not the hub itself. It has no
HTTP server and no command to start one, no subscribe or publish
endpoints, no update transport or history storage, and no topic selector
matching. `HubOptions.transport`, `topic_selector_store` and `metrics`
are plain slots for objects supplied by the application, and settings
such as `transport_url`, `addr`, `cert_file` or `metrics_addr` are only
stored and validated by `Config`.
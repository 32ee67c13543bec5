"""Insecure demo endpoint used to test discovery and authorization."""

from __future__ import annotations

import mimetypes
import posixpath
from dataclasses import dataclass, field
from http.cookies import Morsel, SimpleCookie
from urllib.parse import parse_qs, urlsplit

from mercurehub.hub import DEFAULT_COOKIE_NAME, DEFAULT_HUB_URL

_EXTRA_TYPES = {".jsonld": "application/ld+json"}
_EPOCH = "Thu, 01 Jan 1970 00:00:00 GMT"


@dataclass
class DemoResponse:
    """What the demo endpoint answers: headers, the cookie and a body."""

    body: str
    links: list[str]
    content_type: str | None
    cookie: Morsel
    headers: list[tuple[str, str]] = field(default_factory=list)


def _content_type(path: str) -> str | None:
    ext = posixpath.splitext(path)[1]
    if not ext:
        return None
    if ext.lower() in _EXTRA_TYPES:
        return _EXTRA_TYPES[ext.lower()]
    return mimetypes.guess_type("file" + ext)[0]


def demo(url: str, cookie_name: str = DEFAULT_COOKIE_NAME, tls: bool = False) -> DemoResponse:
    """Answer a demo request for ``url``.

    The ``body`` query parameter becomes the response body and ``jwt`` is set
    as the authorization cookie; without ``jwt`` the cookie is expired.
    """
    parts = urlsplit(url)
    query = parse_qs(parts.query, keep_blank_values=True)
    body = query.get("body", [""])[0]
    jwt = query.get("jwt", [""])[0]

    hub_link = f'<{DEFAULT_HUB_URL}>; rel="mercure"'
    if cookie_name != DEFAULT_COOKIE_NAME:
        hub_link += f'; cookie-name="{cookie_name}"'
    links = [hub_link, f'<{url}>; rel="self"']

    jar: SimpleCookie = SimpleCookie()
    jar[cookie_name] = jwt
    cookie = jar[cookie_name]
    cookie["path"] = DEFAULT_HUB_URL
    cookie["samesite"] = "Strict"
    if tls:
        cookie["httponly"] = True
    if not jwt:
        cookie["expires"] = _EPOCH

    content_type = _content_type(parts.path)
    headers = [("Link", link) for link in links]
    if content_type:
        headers.append(("Content-Type", content_type))
    headers.append(("Set-Cookie", cookie.OutputString()))

    return DemoResponse(body=body, links=links, content_type=content_type, cookie=cookie, headers=headers)
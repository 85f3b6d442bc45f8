"""URL helpers for console endpoints and per-request URLs."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .exceptions import InvalidURLError

SECURE_SCHEME = "https"


@dataclass(slots=True)
class URL:
    """Mutable URL used to build one request.

    The client keeps its endpoint as a `URL` and only ever hands out copies,
    so per-request path and query changes never reach the shared endpoint.
    """

    scheme: str
    netloc: str
    path: str = ""
    query: dict[str, str] = field(default_factory=dict)

    @property
    def host(self) -> str | None:
        return urlsplit(f"//{self.netloc}").hostname

    @property
    def port(self) -> int | None:
        return urlsplit(f"//{self.netloc}").port

    def copy(self) -> URL:
        return copy.deepcopy(self)

    def join(self, *segments: str) -> URL:
        """Append path segments in place and return self.

        Resource URIs reported by the console are absolute (``/api/cpcs/1``);
        when the endpoint already carries the same prefix it is not doubled.
        """

        path = self.path.rstrip("/")
        for segment in segments:
            if not segment:
                continue
            segment = "/" + segment.strip("/")
            if path and segment.startswith(path + "/"):
                path = segment
            else:
                path = f"{path}{segment}"
        self.path = path
        return self

    def __str__(self) -> str:
        query = urlencode(self.query) if self.query else ""
        return urlunsplit((self.scheme, self.netloc, self.path, query, ""))


def parse_endpoint(endpoint: str) -> URL:
    """Validate a console endpoint such as ``https://hmc:6794/api``."""

    if not isinstance(endpoint, str) or not endpoint.strip():
        raise InvalidURLError("Console endpoint must be a non-empty string.")
    try:
        parsed = urlsplit(endpoint.strip())
        hostname = parsed.hostname
        parsed.port  # noqa: B018 - raises ValueError on a malformed port
    except ValueError as exc:
        raise InvalidURLError(f"Console endpoint {endpoint!r} is not a valid URL: {exc}") from exc
    if parsed.scheme.lower() != SECURE_SCHEME:
        raise InvalidURLError(
            f"Console endpoint {endpoint!r} must use HTTPS; scheme {parsed.scheme!r} is not allowed."
        )
    if not hostname:
        raise InvalidURLError(f"Console endpoint {endpoint!r} does not name a host.")
    return URL(
        scheme=SECURE_SCHEME,
        netloc=parsed.netloc,
        path=parsed.path.rstrip("/"),
        query=dict(parse_qsl(parsed.query)),
    )


def build_url_from_query(url: URL, query: Mapping[str, str | None] | None) -> URL:
    """Add the non-empty entries of ``query`` to ``url`` and return it."""

    if not query:
        return url
    for name, value in query.items():
        if value is None or value == "":
            continue
        url.query[name] = str(value)
    return url

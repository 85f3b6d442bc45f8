"""HTTP utilities for HMC Web Services API access."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .config import APPLICATION_OCTET_STREAM, EXPECTED_STATUSES, SESSION_HEADER_NAME
from .exceptions import UNKNOWN_REASON, ErrorCode, RequestError, UnexpectedResponseError

REDACTED = "********"
_SENSITIVE_FIELDS = ("password", "new-password", "ssc-master-pw", "boot-ftp-password")


@dataclass(slots=True)
class HttpResponse:
    """Status code and raw body of one console exchange."""

    status_code: int
    content: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        """Parse the body, turning malformed JSON into `UNMARSHAL_FAIL`."""

        if not self.content:
            raise UnexpectedResponseError(
                "Response did not contain a body",
                reason=ErrorCode.EMPTY_RESPONSE,
                status_code=self.status_code,
            )
        try:
            return json.loads(self.content)
        except ValueError as exc:
            raise UnexpectedResponseError(
                f"Response did not contain valid JSON: {exc}",
                reason=ErrorCode.UNMARSHAL_FAIL,
                status_code=self.status_code,
            ) from exc

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


def is_expected_status(status_code: int) -> bool:
    """Return True for statuses that are answered without a re-logon."""

    return status_code in EXPECTED_STATUSES


def need_logon(status_code: int, reason: int) -> bool:
    """Return True when a response signals a missing or expired session."""

    if status_code == 401:
        return True
    return status_code == 403 and reason in (4, 5)


def error_reason(content: bytes | None) -> int:
    """Best-effort read of the ``reason`` field of an error envelope."""

    try:
        payload = json.loads(content) if content else None
    except ValueError:
        return UNKNOWN_REASON
    if isinstance(payload, Mapping) and isinstance(payload.get("reason"), int):
        return payload["reason"]
    return UNKNOWN_REASON


def encode_json(payload: Any) -> bytes:
    try:
        return json.dumps(payload).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise RequestError(
            f"Unable to serialize request body: {exc}",
            reason=ErrorCode.MARSHAL_FAIL,
        ) from exc


def redact_body(body: Any) -> str:
    """Render a request body for tracing with credentials elided."""

    if body is None:
        return ""
    if isinstance(body, (bytes, bytearray)):
        try:
            payload = json.loads(body)
        except ValueError:
            return f"<{len(body)} bytes>"
    elif isinstance(body, str):
        try:
            payload = json.loads(body)
        except ValueError:
            return body
    else:
        return f"<{type(body).__name__} stream>"
    if isinstance(payload, dict):
        payload = {
            key: (REDACTED if key in _SENSITIVE_FIELDS else value) for key, value in payload.items()
        }
    return json.dumps(payload)


def _render_headers(headers: Mapping[str, str]) -> list[str]:
    lines = []
    for name, value in headers.items():
        if name.lower() == SESSION_HEADER_NAME.lower():
            value = REDACTED
        lines.append(f"{name}: {value}")
    return lines


def format_request_trace(method: str, url: str, headers: Mapping[str, str], body: Any) -> str:
    lines = ["---------START-HTTP---------", f"{method} {url}"]
    lines.extend(_render_headers(headers))
    if headers.get("Content-Type") == APPLICATION_OCTET_STREAM:
        body = "<binary upload>"
    else:
        body = redact_body(body)
    if body:
        lines.extend(["", body])
    return "\n".join(lines) + "\n"


def format_response_trace(
    status_code: int, reason: str | None, headers: Mapping[str, str], content: bytes
) -> str:
    lines = [f"HTTP {status_code} {reason or ''}".rstrip()]
    lines.extend(_render_headers(headers))
    # Bodies of successful reads can be large; only failures are dumped.
    if status_code not in (200, 204, 206) and content:
        lines.extend(["", content.decode("utf-8", errors="replace")])
    lines.append("---------END-HTTP---------")
    return "\n".join(lines) + "\n"

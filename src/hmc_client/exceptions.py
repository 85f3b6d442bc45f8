"""Custom exception hierarchy for the HMC client."""
from __future__ import annotations

import json
from enum import IntEnum
from typing import Any

UNKNOWN_REASON = -1
UNKNOWN_MESSAGE = "Unknown error."


class ErrorCode(IntEnum):
    """Client-side failure kinds. The numeric values are part of the public contract."""

    INVALID_URL = 1000
    BAD_REQUEST = 1001
    EMPTY_JOB_URI = 1002
    EMPTY_RESPONSE = 1003
    READ_RESPONSE_FAIL = 1004
    TRACE_REQUEST_FAIL = 1005
    EXECUTE_FAIL = 1006
    MARSHAL_FAIL = 1007
    UNMARSHAL_FAIL = 1008


class HmcError(RuntimeError):
    """Base error for HMC failures, client-side and server-reported alike."""

    def __init__(
        self,
        message: str,
        *,
        reason: int = UNKNOWN_REASON,
        status_code: int | None = None,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"reason": int(self.reason), "message": self.message}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HmcError):
            return NotImplemented
        return (int(self.reason), self.message) == (int(other.reason), other.message)

    __hash__ = RuntimeError.__hash__

    def __repr__(self) -> str:
        return f"{type(self).__name__}(reason={int(self.reason)}, message={self.message!r})"


class InvalidURLError(HmcError):
    """Raised when the console endpoint or its TLS material cannot be used."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("reason", ErrorCode.INVALID_URL)
        super().__init__(message, **kwargs)


class AuthenticationError(HmcError):
    """Raised when logon fails or the session cannot be refreshed."""


class RequestError(HmcError):
    """Raised when an HTTP request cannot be fulfilled."""


class UnexpectedResponseError(HmcError):
    """Raised when the API returns an unexpected status or payload structure."""


class JobError(HmcError):
    """Raised when an asynchronous job fails, times out or carries no URI."""


# Documented reason codes of the HMC Web Services API, used when the server
# sends an envelope without a message.
_REASON_MESSAGES: dict[int, dict[int, str]] = {
    400: {
        1: "The request included an unrecognized or unsupported query parameter.",
        2: "A required request header is missing or invalid.",
        3: "A required request body is missing.",
        4: "A request body was specified when not expected.",
        5: "A required request body field is missing.",
        6: "The request body contains an unrecognized field.",
        7: "The data type of a field in the request body is not as expected, "
        "or its value is not in the range permitted.",
        8: "The value of a field does not provide a unique value for the "
        "corresponding data model property as required.",
        9: "The request body is not a well-formed JSON document.",
        10: "An unrecognized X-* header field was specified.",
        11: "The length of the supplied request body does not match the value "
        "specified in the Content-Length header.",
        13: "The maximum number of logged in user sessions for this user ID has been reached.",
        14: "Query parameters on the request are malformed or specify a value "
        "that is invalid for this operation.",
        15: "The request body contains a field whose presence or value is "
        "inconsistent with the presence or value of another field.",
        18: "The request body contains a field whose presence or value is "
        "inconsistent with the type of the object.",
        19: "The request body contains a field whose corresponding data model "
        "property is no longer writable.",
        20: "The request body contains a field or value that is not supported "
        "by the version of the targeted SE.",
    },
    403: {
        1: "The user under which the API request was authenticated does not "
        "have the required authority to perform the requested action.",
        3: "The ensemble is not operating at the management enablement level "
        "required to perform this operation.",
        4: "The request requires authentication but no X-API-Session header "
        "was specified in the request.",
        5: "An X-API-Session header was provided but the session id specified "
        "in that header is not valid.",
        301: "The operation cannot be performed because it targets a CPC that "
        "does not support Web Services API operations.",
    },
    404: {
        1: "The request URI does not designate an existing resource of the expected type.",
        2: "A URI in the request body does not designate an existing resource "
        "of the expected type.",
        3: "The request URI designates a resource or operation that is not "
        "available on the Alternate HMC.",
        4: "The object designated by the request URI does not support the requested operation.",
        5: "The element ID component of the request URI does not designate an existing resource.",
        6: "An element URI in the request body does not designate an existing resource.",
    },
    409: {
        1: "The object designated by the request URI is not in the correct state.",
        2: "The object designated by the request URI is currently busy "
        "performing some other operation.",
        3: "The object designated by the request URI is currently locked to "
        "prevent disruptive changes from being made.",
        4: "The CPC designated by the request URI is currently enabled for DPM.",
        5: "The CPC designated by the request URI is currently not enabled for DPM.",
        6: "The object hosting the object designated by the request URI is not "
        "in the correct state.",
        8: "The request would place the object into a state that is "
        "inconsistent with its data model or other requirements.",
        9: "The request attempts to update an effective property while "
        "effective properties do not apply.",
        10: "The affected SE is in the process of being shut down.",
        11: "The operation requires a fully authenticated session.",
        12: "A feature that prohibits the operation is currently enabled.",
        13: "A feature required by the operation is currently disabled.",
    },
    500: {},
    503: {
        1: "The HMC is not currently communicating with an SE needed to "
        "perform the requested operation.",
        2: "The SE is not currently communicating with an element of a zBX "
        "needed to perform the requested operation.",
        3: "This request would exceed the limit on the number of concurrent "
        "API requests allowed.",
    },
}

_STATUS_MESSAGES: dict[int, str] = {
    400: "Bad Request.",
    403: "The API user does not have the required permission for this operation.",
    404: "Not Found.",
    409: "Conflict.",
    500: "An internal processing error has occurred and no additional details are documented.",
    503: "The HMC is not currently communicating with an SE needed to "
    "perform the requested operation.",
}


def describe_reason(status_code: int | None, reason: int) -> str | None:
    """Return the documented message for a (status, reason) pair, if any."""

    if status_code is None:
        return None
    by_reason = _REASON_MESSAGES.get(status_code)
    if by_reason is None:
        return None
    return by_reason.get(reason) or _STATUS_MESSAGES.get(status_code)


def parse_error_body(
    content: bytes | str | None,
    status_code: int | None = None,
    *,
    error_class: type[HmcError] = HmcError,
) -> HmcError:
    """Recover a server error envelope ``{"reason": int, "message": str}``.

    Bodies that are not such an envelope yield reason ``-1`` with the message
    ``"Unknown error."``.
    """

    try:
        payload = json.loads(content) if content else None
    except (TypeError, ValueError):
        payload = None
    if not isinstance(payload, dict):
        return error_class(UNKNOWN_MESSAGE, reason=UNKNOWN_REASON, status_code=status_code)

    reason = payload.get("reason")
    message = payload.get("message")
    if not isinstance(reason, int) or isinstance(reason, bool):
        reason = UNKNOWN_REASON
    # Empty messages are filled in from the reason table, so such envelopes
    # do not round-trip unchanged.
    if not isinstance(message, str) or not message:
        message = describe_reason(status_code, reason) or UNKNOWN_MESSAGE
    return error_class(message, reason=reason, status_code=status_code, details=payload)


def error_from_exception(code: ErrorCode, exc: BaseException, **kwargs: Any) -> HmcError:
    """Wrap a lower-level exception in the matching client error class."""

    reason = str(exc).strip() or exc.__class__.__name__
    error_class: type[HmcError]
    if code == ErrorCode.INVALID_URL:
        error_class = InvalidURLError
    elif code in (ErrorCode.UNMARSHAL_FAIL, ErrorCode.EMPTY_RESPONSE):
        error_class = UnexpectedResponseError
    else:
        error_class = RequestError
    return error_class(reason, reason=code, details=reason, **kwargs)

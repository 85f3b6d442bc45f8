"""Common helpers for resource wrappers."""

from __future__ import annotations

import logging
import threading
from collections.abc import Collection, Mapping
from typing import TYPE_CHECKING, Any

from ..exceptions import ErrorCode, UnexpectedResponseError, parse_error_body
from ..http import HttpResponse
from ..urls import URL, build_url_from_query

if TYPE_CHECKING:  # pragma: no cover - import-time guard
    from ..client import HMCClient

logger = logging.getLogger(__name__)


class ResourceBase:
    """Provide shared helpers for resource modules."""

    def __init__(self, client: HMCClient) -> None:
        self._client = client

    def _url(self, *segments: str, query: Mapping[str, str | None] | None = None) -> URL:
        url = self._client.clone_endpoint_url().join(*segments)
        return build_url_from_query(url, query)

    def _request(
        self,
        method: str,
        url: URL,
        body: Any = None,
        *,
        expected: Collection[int],
        cancel_event: threading.Event | None = None,
    ) -> HttpResponse:
        response = self._client.execute(method, url, body, cancel_event=cancel_event)
        return self._check(response, expected)

    def _get(self, *segments: str, query: Mapping[str, str | None] | None = None) -> Any:
        response = self._request("GET", self._url(*segments, query=query), expected=(200,))
        return response.json()

    def _get_object(
        self, *segments: str, query: Mapping[str, str | None] | None = None
    ) -> dict[str, Any]:
        payload = self._get(*segments, query=query)
        if not isinstance(payload, Mapping):
            raise unmarshal_error(f"Expected a JSON object from {'/'.join(segments)}")
        return dict(payload)

    def _list(
        self,
        collection: str,
        *segments: str,
        query: Mapping[str, str | None] | None = None,
    ) -> list[dict[str, Any]]:
        payload = self._get(*segments, query=query)
        items = payload.get(collection) if isinstance(payload, Mapping) else None
        if not isinstance(items, list):
            raise unmarshal_error(f"Response did not contain a {collection!r} list")
        return items

    def _post(
        self,
        *segments: str,
        payload: Any = None,
        expected: Collection[int] = (200,),
    ) -> HttpResponse:
        return self._request("POST", self._url(*segments), payload, expected=expected)

    def _post_for_uri(self, *segments: str, payload: Any, uri_field: str) -> str:
        """POST a create request and return the URI the console assigned."""

        response = self._post(*segments, payload=payload, expected=(201,))
        body = response.json()
        uri = body.get(uri_field) if isinstance(body, Mapping) else None
        if not isinstance(uri, str) or not uri:
            raise unmarshal_error(f"Create response did not contain {uri_field!r}")
        return uri

    def _delete(self, *segments: str) -> None:
        self._request("DELETE", self._url(*segments), expected=(204,))

    @staticmethod
    def _check(response: HttpResponse, expected: Collection[int]) -> HttpResponse:
        status = response.status_code
        if status in expected:
            return response
        if status >= 400:
            raise parse_error_body(response.content, status)
        logger.debug("Unexpected status %s, wanted one of %s", status, sorted(expected))
        raise UnexpectedResponseError(
            f"Unexpected status {status}; expected {', '.join(map(str, sorted(expected)))}",
            reason=ErrorCode.BAD_REQUEST,
            status_code=status,
        )


def unmarshal_error(message: str) -> UnexpectedResponseError:
    return UnexpectedResponseError(message, reason=ErrorCode.UNMARSHAL_FAIL)

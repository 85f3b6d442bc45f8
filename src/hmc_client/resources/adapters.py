"""Adapter operations."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .base import ResourceBase


class AdaptersResource(ResourceBase):
    """Interact with CPC adapters and their ports."""

    def list(
        self, cpc_uri: str, query: Mapping[str, str | None] | None = None
    ) -> list[dict[str, Any]]:
        return self._list("adapters", cpc_uri, "adapters", query=query)

    def get(self, adapter_uri: str) -> dict[str, Any]:
        return self._get_object(adapter_uri)

    def create_hipersocket(self, cpc_uri: str, properties: Mapping[str, Any]) -> str:
        """Create a HiperSockets adapter and return its ``object-uri``.

        ``properties`` needs at least ``name``; ``port-description`` and
        ``maximum-transmission-unit-size`` are optional.
        """

        return self._post_for_uri(
            cpc_uri,
            "adapters",
            payload=dict(properties),
            uri_field="object-uri",
        )

    def delete_hipersocket(self, adapter_uri: str) -> None:
        self._delete(adapter_uri)

    def get_network_port(self, port_uri: str) -> dict[str, Any]:
        return self._get_object(port_uri)

    def get_storage_port(self, port_uri: str) -> dict[str, Any]:
        return self._get_object(port_uri)

"""NIC operations."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .base import ResourceBase


class NicsResource(ResourceBase):
    """Manage network interfaces attached to a partition."""

    def create(self, partition_uri: str, properties: Mapping[str, Any]) -> str:
        return self._post_for_uri(
            partition_uri, "nics", payload=dict(properties), uri_field="element-uri"
        )

    def get(self, nic_uri: str) -> dict[str, Any]:
        return self._get_object(nic_uri)

    def update(self, nic_uri: str, properties: Mapping[str, Any]) -> None:
        self._post(nic_uri, payload=dict(properties), expected=(204,))

    def delete(self, nic_uri: str) -> None:
        self._delete(nic_uri)

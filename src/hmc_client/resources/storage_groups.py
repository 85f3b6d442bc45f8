"""Storage group and storage volume operations."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from .base import ResourceBase

STORAGE_GROUPS_PATH = "/api/storage-groups"


class StorageGroupsResource(ResourceBase):
    """Interact with storage groups and the volumes they hold."""

    def list(
        self,
        cpc_uri: str | None = None,
        query: Mapping[str, str | None] | None = None,
    ) -> list[dict[str, Any]]:
        filters = {"cpc-uri": cpc_uri, **(query or {})}
        return self._list("storage-groups", STORAGE_GROUPS_PATH, query=filters)

    def get(self, storage_group_uri: str) -> dict[str, Any]:
        return self._get_object(storage_group_uri)

    def list_volumes(self, storage_group_uri: str) -> list[dict[str, Any]]:
        return self._list("storage-volumes", storage_group_uri, "storage-volumes")

    def get_volume(self, storage_volume_uri: str) -> dict[str, Any]:
        return self._get_object(storage_volume_uri)

    def create(self, properties: Mapping[str, Any]) -> str:
        """Create a storage group, including any ``storage-volumes`` listed.

        Volume entries without an ``operation`` are sent as ``create``.
        """

        payload = copy.deepcopy(dict(properties))
        for volume in payload.get("storage-volumes") or []:
            volume.setdefault("operation", "create")
        return self._post_for_uri(STORAGE_GROUPS_PATH, payload=payload, uri_field="object-uri")

    def update(self, storage_group_uri: str, properties: Mapping[str, Any]) -> None:
        self._post(
            storage_group_uri,
            "operations/modify",
            payload=dict(properties),
            expected=(200, 204),
        )

    def fulfill(self, storage_group_uri: str, properties: Mapping[str, Any]) -> None:
        """Accept volumes whose reported size differs from the requested size."""

        self._post(
            storage_group_uri,
            "operations/accept-mismatched-storage-volumes",
            payload=dict(properties),
            expected=(200, 204),
        )

    def delete(self, storage_group_uri: str) -> None:
        self._post(storage_group_uri, "operations/delete", expected=(204,))

    def get_partitions(
        self, storage_group_uri: str, query: Mapping[str, str | None] | None = None
    ) -> list[dict[str, Any]]:
        return self._list(
            "partitions", storage_group_uri, "operations/get-partitions", query=query
        )

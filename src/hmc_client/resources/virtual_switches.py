"""Virtual switch operations."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .base import ResourceBase


class VirtualSwitchesResource(ResourceBase):
    def list(
        self, cpc_uri: str, query: Mapping[str, str | None] | None = None
    ) -> list[dict[str, Any]]:
        return self._list("virtual-switches", cpc_uri, "virtual-switches", query=query)

    def get(self, vswitch_uri: str) -> dict[str, Any]:
        return self._get_object(vswitch_uri)

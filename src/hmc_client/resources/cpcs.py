"""CPC operations."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .base import ResourceBase

CPCS_PATH = "/api/cpcs"


class CpcsResource(ResourceBase):
    """Read-only access to central processor complexes."""

    def list(self, query: Mapping[str, str | None] | None = None) -> list[dict[str, Any]]:
        return self._list("cpcs", CPCS_PATH, query=query)

    def get(self, cpc_uri: str) -> dict[str, Any]:
        return self._get_object(cpc_uri)

    def get_by_name(self, name: str) -> dict[str, Any] | None:
        for cpc in self.list({"name": name}):
            if cpc.get("name") == name:
                return cpc
        return None

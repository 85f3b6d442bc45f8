"""Partition (LPAR) operations."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import IO, Any

from ..exceptions import HmcError
from ..http import HttpResponse
from ..urls import build_url_from_query
from .base import ResourceBase, unmarshal_error
from .jobs import Job

logger = logging.getLogger(__name__)

DEFAULT_ENERGY_QUERY = {"range": "last-day", "resolution": "one-hour"}


class PartitionsResource(ResourceBase):
    """Interact with partitions of a DPM-enabled CPC."""

    def list(
        self, cpc_uri: str, query: Mapping[str, str | None] | None = None
    ) -> list[dict[str, Any]]:
        return self._list("partitions", cpc_uri, "partitions", query=query)

    def get(self, partition_uri: str) -> dict[str, Any]:
        return self._get_object(partition_uri)

    def create(self, cpc_uri: str, properties: Mapping[str, Any]) -> str:
        return self._post_for_uri(
            cpc_uri, "partitions", payload=dict(properties), uri_field="object-uri"
        )

    def update(self, partition_uri: str, properties: Mapping[str, Any]) -> None:
        self._post(partition_uri, payload=dict(properties), expected=(204,))

    def delete(self, partition_uri: str) -> None:
        self._delete(partition_uri)

    def start(
        self,
        partition_uri: str,
        *,
        wait_for_completion: bool = False,
        timeout: float | None = None,
    ) -> str | Job:
        """Start a partition.

        Returns the job URI, or the finished `Job` with ``wait_for_completion``.
        """

        return self._run_job(partition_uri, "operations/start", wait_for_completion, timeout)

    def stop(
        self,
        partition_uri: str,
        *,
        wait_for_completion: bool = False,
        timeout: float | None = None,
    ) -> str | Job:
        return self._run_job(partition_uri, "operations/stop", wait_for_completion, timeout)

    def mount_iso_image(
        self,
        partition_uri: str,
        image: bytes | IO[bytes],
        image_name: str,
        ins_file: str,
    ) -> None:
        """Upload an ISO image and mount it on the partition."""

        url = self._url(partition_uri, "operations/mount-iso-image")
        build_url_from_query(url, {"image-name": image_name, "ins-file-name": ins_file})
        response = self._client.upload("POST", url, image)
        self._check(response, (204,))
        logger.info("Mounted ISO image %s on %s", image_name, partition_uri)

    def unmount_iso_image(self, partition_uri: str) -> None:
        self._post(partition_uri, "operations/unmount-iso-image", expected=(204,))

    def list_nics(self, partition_uri: str) -> list[str]:
        nic_uris = self.get(partition_uri).get("nic-uris")
        if nic_uris is None:
            return []
        if not isinstance(nic_uris, list):
            raise unmarshal_error("Partition property 'nic-uris' is not a list")
        return nic_uris

    def attach_storage_group(self, partition_uri: str, storage_group_uri: str) -> None:
        self._post(
            partition_uri,
            "operations/attach-storage-group",
            payload={"storage-group-uri": storage_group_uri},
            expected=(204,),
        )

    def detach_storage_group(self, partition_uri: str, storage_group_uri: str) -> None:
        self._post(
            partition_uri,
            "operations/detach-storage-group",
            payload={"storage-group-uri": storage_group_uri},
            expected=(204,),
        )

    def increase_crypto_configuration(
        self, partition_uri: str, configuration: Mapping[str, Any]
    ) -> None:
        """Add crypto adapters and domains (``crypto-adapter-uris``,
        ``crypto-domain-configurations``) to the partition."""

        self._post(
            partition_uri,
            "operations/increase-crypto-configuration",
            payload=dict(configuration),
            expected=(204,),
        )

    def fetch_ascii_console_uri(self, partition_uri: str) -> dict[str, str]:
        """Open a console session and return its websocket URI and session id.

        The caller owns the returned session and closes it with
        `HMCClient.logoff_console`.
        """

        session_id = self._client.logon_console()
        try:
            response = self._post(
                partition_uri,
                "operations/get-ascii-console-websocket-uri",
                payload={"force-takeover": False},
            )
            payload = response.json()
            uri = payload.get("websocket-uri") if isinstance(payload, Mapping) else None
            if not uri:
                raise unmarshal_error("Response did not contain a 'websocket-uri'")
        except HmcError:
            logger.info("Closing console session opened for %s", partition_uri)
            self._client.logoff_console(session_id)
            raise
        return {"uri": uri, "session_id": session_id}

    def get_energy(
        self, partition_uri: str, query: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Return historical power samples (``wattage``) of the partition."""

        response = self._post(
            partition_uri,
            "operations/get-historical-sustainability-data",
            payload=dict(query or DEFAULT_ENERGY_QUERY),
        )
        payload = response.json()
        wattage = payload.get("wattage") if isinstance(payload, Mapping) else None
        if not isinstance(wattage, list):
            raise unmarshal_error("Response did not contain a 'wattage' list")
        return wattage

    def get_live_energy(self, partition_uri: str) -> float:
        return self._client.metrics.get_live_energy(partition_uri)

    def _run_job(
        self,
        partition_uri: str,
        operation: str,
        wait_for_completion: bool,
        timeout: float | None,
    ) -> str | Job:
        response: HttpResponse = self._post(partition_uri, operation, expected=(202,))
        job_uri = self._client.jobs.extract_job_uri(response)
        logger.info("Submitted %s for %s as job %s", operation, partition_uri, job_uri)
        if not wait_for_completion:
            return job_uri
        return self._client.jobs.wait_for_completion(job_uri, timeout=timeout)

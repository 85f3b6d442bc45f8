"""Asynchronous job tracking."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..exceptions import ErrorCode, JobError, RequestError
from ..http import HttpResponse
from .base import ResourceBase, unmarshal_error

logger = logging.getLogger(__name__)

RUNNING = "running"
CANCEL_PENDING = "cancel-pending"
CANCELED = "canceled"
COMPLETE = "complete"
TERMINAL_STATUSES = frozenset({CANCELED, COMPLETE})


@dataclass(slots=True)
class Job:
    """Snapshot of a job as reported by ``GET /api/jobs/{job-id}``."""

    uri: str
    status: str
    status_code: int | None = None
    reason_code: int | None = None
    results: Any = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def succeeded(self) -> bool:
        return (
            self.status == COMPLETE
            and (self.status_code is None or 200 <= self.status_code < 300)
        )

    @classmethod
    def from_payload(cls, uri: str, payload: Mapping[str, Any]) -> Job:
        return cls(
            uri=uri,
            status=str(payload.get("status", "")),
            status_code=payload.get("job-status-code"),
            reason_code=payload.get("job-reason-code"),
            results=payload.get("job-results"),
            raw=dict(payload),
        )


class JobsResource(ResourceBase):
    """Query, cancel, delete and wait for asynchronous jobs."""

    @staticmethod
    def extract_job_uri(response: HttpResponse) -> str:
        """Return the ``job-uri`` of a 202 response or raise `EMPTY_JOB_URI`."""

        payload = response.json()
        if not isinstance(payload, Mapping):
            raise unmarshal_error("Job response is not a JSON object")
        job_uri = payload.get("job-uri")
        if not job_uri:
            raise JobError(
                "Response did not contain a job URI",
                reason=ErrorCode.EMPTY_JOB_URI,
                status_code=response.status_code,
                details=dict(payload),
            )
        return str(job_uri)

    def query(self, job_uri: str) -> Job:
        return Job.from_payload(job_uri, self._get_object(job_uri))

    def cancel(self, job_uri: str) -> None:
        self._post(job_uri, "operations/cancel", expected=(204,))

    def delete(self, job_uri: str) -> None:
        self._delete(job_uri)

    def wait_for_completion(
        self,
        job_uri: str,
        *,
        poll_interval: float | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Job:
        """Poll a job until it is complete or canceled.

        A ``complete`` job whose ``job-status-code`` is not 2xx raises
        `JobError`. Setting ``cancel_event`` stops the polling only; the job
        keeps running on the console.
        """

        config = self._client.config
        interval = config.job_poll_interval if poll_interval is None else poll_interval
        limit = config.job_timeout if timeout is None else timeout
        deadline = None if limit is None else time.monotonic() + limit

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise RequestError(
                    f"Stopped waiting for job {job_uri}", reason=ErrorCode.EXECUTE_FAIL
                )
            job = self.query(job_uri)
            logger.debug("Job %s is %s", job_uri, job.status)
            if job.is_terminal:
                return self._finish(job)
            if deadline is not None and time.monotonic() >= deadline:
                raise JobError(
                    f"Timed out after {limit} seconds waiting for job {job_uri}",
                    reason=ErrorCode.EXECUTE_FAIL,
                    details=job.raw,
                )
            if cancel_event is not None:
                cancel_event.wait(interval)
            else:
                time.sleep(interval)

    @staticmethod
    def _finish(job: Job) -> Job:
        if job.status == CANCELED or job.succeeded:
            logger.info("Job %s finished with status %s", job.uri, job.status)
            return job
        message = None
        if isinstance(job.results, Mapping):
            message = job.results.get("message")
        raise JobError(
            message or f"Job {job.uri} failed with status code {job.status_code}",
            reason=job.reason_code if isinstance(job.reason_code, int) else -1,
            status_code=job.status_code,
            details=job.raw,
        )

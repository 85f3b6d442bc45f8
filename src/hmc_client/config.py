"""Configuration helpers for the HMC client."""

from __future__ import annotations

import platform
from dataclasses import dataclass

LIBRARY_NAME = "hmc_client"
LIBRARY_VERSION = "0.1.0"
USER_AGENT = (
    f"ZHMC ({platform.system().lower()}; {platform.machine().lower()}) "
    f"{LIBRARY_NAME}/{LIBRARY_VERSION}"
)

SESSION_HEADER_NAME = "X-API-Session"
APPLICATION_JSON = "application/json"
APPLICATION_OCTET_STREAM = "application/octet-stream"

SESSIONS_PATH = "/api/sessions"
THIS_SESSION_PATH = "/api/sessions/this-session"
CONSOLE_PATH = "/api/console"
METRICS_CONTEXT_PATH = "/api/services/metrics/context"

DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_READ_TIMEOUT = 3600.0
DEFAULT_JOB_POLL_INTERVAL = 2.0
DEFAULT_JOB_TIMEOUT = 3600.0

# 403 signals an expired session header and goes through re-logon.
EXPECTED_STATUSES = frozenset({200, 201, 202, 204, 206, 400, 404, 409, 500, 503})


@dataclass(slots=True)
class ClientConfig:
    """Typed configuration for `HMCClient`."""

    userid: str
    password: str
    skip_cert: bool = False
    ca_cert: str | None = None
    trace: bool = False
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    read_timeout: float = DEFAULT_READ_TIMEOUT
    job_poll_interval: float = DEFAULT_JOB_POLL_INTERVAL
    job_timeout: float | None = DEFAULT_JOB_TIMEOUT

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)

    def resolved_headers(self, *, content_type: str | None = None) -> dict[str, str]:
        return {
            "User-Agent": USER_AGENT,
            "Accept": "*/*",
            "Content-Type": content_type or APPLICATION_JSON,
        }

    def logon_payload(self, *, new_password: str | None = None) -> dict[str, str]:
        payload = {"userid": self.userid, "password": self.password}
        if new_password:
            payload["new-password"] = new_password
        return payload

    def __repr__(self) -> str:
        return (
            f"ClientConfig(userid={self.userid!r}, password='***', "
            f"skip_cert={self.skip_cert!r}, ca_cert={self.ca_cert!r}, trace={self.trace!r})"
        )

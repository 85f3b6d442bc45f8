"""High-level HMC Web Services API client."""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Mapping
from typing import IO, Any

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.exceptions import InsecureRequestWarning

from .config import (
    APPLICATION_OCTET_STREAM,
    CONSOLE_PATH,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_JOB_POLL_INTERVAL,
    DEFAULT_JOB_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
    METRICS_CONTEXT_PATH,
    SESSION_HEADER_NAME,
    SESSIONS_PATH,
    THIS_SESSION_PATH,
    ClientConfig,
)
from .exceptions import (
    AuthenticationError,
    ErrorCode,
    HmcError,
    RequestError,
    error_from_exception,
    parse_error_body,
)
from .http import (
    HttpResponse,
    encode_json,
    error_reason,
    format_request_trace,
    format_response_trace,
    is_expected_status,
    need_logon,
)
from .resources import (
    AdaptersResource,
    CpcsResource,
    JobsResource,
    MetricsResource,
    NicsResource,
    PartitionsResource,
    StorageGroupsResource,
    VirtualSwitchesResource,
)
from .session import Session, SessionStore
from .tls import TLSContextAdapter, build_tls_context
from .urls import URL, parse_endpoint

logger = logging.getLogger(__name__)

DEFAULT_METRIC_GROUPS = ("partition-usage", "logical-partition-usage")
METRICS_FREQUENCY_SECONDS = 15

Body = Any


class HMCClient:
    """Transport handle for one HMC: session, TLS, tracing and resource helpers.

    A single instance may be shared between threads. Every call builds its own
    request from a copy of the endpoint; the session token is swapped under a
    lock and an expired session is refreshed by exactly one caller.
    """

    def __init__(
        self,
        *,
        base_url: str,
        userid: str,
        password: str,
        skip_cert: bool = False,
        ca_cert: str | None = None,
        trace: bool = False,
        trace_output: IO[str] | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        job_poll_interval: float = DEFAULT_JOB_POLL_INTERVAL,
        job_timeout: float | None = DEFAULT_JOB_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self._endpoint = parse_endpoint(base_url)
        self.config = ClientConfig(
            userid=userid,
            password=password,
            skip_cert=skip_cert,
            ca_cert=ca_cert,
            trace=trace,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            job_poll_interval=job_poll_interval,
            job_timeout=job_timeout,
        )
        tls_context = build_tls_context(self.config)
        self._http = session or requests.Session()
        if tls_context is not None and isinstance(self._http, requests.Session):
            self._http.mount("https://", TLSContextAdapter(tls_context))
        self._skip_cert = skip_cert
        self._suppress_insecure_warning_if_needed()

        self._sessions = SessionStore()
        self._logon_lock = threading.RLock()
        self._trace_lock = threading.Lock()
        self._trace_enabled = False
        self._trace_output: IO[str] = sys.stdout
        if trace:
            self.trace_on(trace_output)
        self._metrics_lock = threading.Lock()
        self._metrics_context: dict[str, Any] | None = None

        self.cpcs = CpcsResource(self)
        self.partitions = PartitionsResource(self)
        self.nics = NicsResource(self)
        self.adapters = AdaptersResource(self)
        self.virtual_switches = VirtualSwitchesResource(self)
        self.storage_groups = StorageGroupsResource(self)
        self.jobs = JobsResource(self)
        self.metrics = MetricsResource(self)

    @classmethod
    def from_config(
        cls, base_url: str, config: ClientConfig, **kwargs: Any
    ) -> HMCClient:
        return cls(
            base_url=base_url,
            userid=config.userid,
            password=config.password,
            skip_cert=config.skip_cert,
            ca_cert=config.ca_cert,
            trace=config.trace,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            job_poll_interval=config.job_poll_interval,
            job_timeout=config.job_timeout,
            **kwargs,
        )

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> HMCClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Endpoint, tracing and TLS ----------------------------------------------
    @property
    def endpoint(self) -> str:
        return str(self._endpoint)

    def clone_endpoint_url(self) -> URL:
        """Return a private copy of the endpoint to build a request URL on."""

        return self._endpoint.copy()

    def trace_on(self, output: IO[str] | None = None) -> None:
        with self._trace_lock:
            self._trace_output = output or sys.stdout
            self._trace_enabled = True
            self.config.trace = True

    def trace_off(self) -> None:
        with self._trace_lock:
            self._trace_output = sys.stdout
            self._trace_enabled = False
            self.config.trace = False

    @property
    def is_trace_enabled(self) -> bool:
        return self._trace_enabled

    def set_skip_cert_verify(self, skip_cert: bool) -> None:
        self._skip_cert = skip_cert
        self.config.skip_cert = skip_cert
        tls_context = build_tls_context(self.config)
        if isinstance(self._http, requests.Session):
            adapter = (
                TLSContextAdapter(tls_context)
                if tls_context is not None
                else HTTPAdapter()
            )
            self._http.mount("https://", adapter)
        self._suppress_insecure_warning_if_needed()

    # Session management -----------------------------------------------------
    @property
    def session(self) -> Session:
        return self._sessions.current

    def logon(self, *, new_password: str | None = None) -> Session:
        """Create a new API session; concurrent callers wait for one logon."""

        with self._logon_lock:
            return self._logon(new_password=new_password)

    def logoff(self) -> None:
        """Delete the API session. The local token is dropped in every case."""

        token = self._sessions.token
        if not token:
            return
        url = self.clone_endpoint_url().join(THIS_SESSION_PATH)
        try:
            response = self._send("DELETE", str(url), None, token=token)
        finally:
            self._sessions.clear()
            self._metrics_context = None
        if response.status_code != 204:
            raise parse_error_body(response.content, response.status_code)

    def logon_console(self) -> str:
        """Open an additional session, e.g. for an ASCII console, and return its id."""

        url = self.clone_endpoint_url().join(SESSIONS_PATH)
        response = self._send("POST", str(url), encode_json(self.config.logon_payload()))
        session = self._session_from_logon(response)
        return session.token

    def logoff_console(self, session_id: str) -> None:
        url = self.clone_endpoint_url().join(THIS_SESSION_PATH)
        response = self._send("DELETE", str(url), None, token=session_id)
        if response.status_code != 204:
            raise parse_error_body(response.content, response.status_code)

    def is_logged_on(self, verify: bool = False) -> bool:
        """Report whether a session exists; with ``verify`` ask the console."""

        token = self._sessions.token
        if not verify:
            return bool(token)
        url = self.clone_endpoint_url().join(CONSOLE_PATH)
        try:
            response = self._send("GET", str(url), None, token=token)
        except HmcError as exc:
            logger.info("Session check against %s failed: %s", url, exc)
            return False
        return response.status_code in (200, 400)

    def get_metrics_context(self) -> dict[str, Any]:
        """Return the metrics context of this session, creating it on first use."""

        with self._metrics_lock:
            if self._metrics_context is not None:
                return self._metrics_context
            url = self.clone_endpoint_url().join(METRICS_CONTEXT_PATH)
            payload = {
                "anticipated-frequency-seconds": METRICS_FREQUENCY_SECONDS,
                "metric-groups": list(DEFAULT_METRIC_GROUPS),
            }
            response = self.execute("POST", url, payload)
            if response.status_code != 200:
                raise parse_error_body(response.content, response.status_code)
            context = response.json()
            if not isinstance(context, Mapping) or not context.get("metrics-context-uri"):
                raise error_from_exception(
                    ErrorCode.UNMARSHAL_FAIL,
                    ValueError("Metrics context response did not carry a metrics-context-uri"),
                    status_code=response.status_code,
                )
            self._metrics_context = dict(context)
            return self._metrics_context

    # Request execution ------------------------------------------------------
    def execute(
        self,
        method: str,
        url: URL | str,
        body: Body = None,
        *,
        content_type: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> HttpResponse:
        """Send a request with a JSON body and return the raw response.

        Statuses in the expected set are returned as-is, including 4xx/5xx
        answers whose error envelope the caller decodes. An expired session
        (401, or 403 with reason 4 or 5) is refreshed once and the request
        retried; anything else raises `HmcError`.

        Setting ``cancel_event`` raises `RequestError` before the request is
        sent or once its response has been read. A request already on the wire
        is not interrupted; the read timeout bounds it.
        """

        data = None if body is None else self._serialize(body)
        return self._execute(
            method, str(url), data, content_type=content_type, cancel_event=cancel_event
        )

    def upload(
        self,
        method: str,
        url: URL | str,
        data: bytes | IO[bytes],
        *,
        content_type: str = APPLICATION_OCTET_STREAM,
        cancel_event: threading.Event | None = None,
    ) -> HttpResponse:
        """Stream raw bytes (e.g. an ISO image) under the same session policy."""

        return self._execute(
            method, str(url), data, content_type=content_type, cancel_event=cancel_event
        )

    def close(self) -> None:
        if self._sessions.token:
            try:
                self.logoff()
            except HmcError as exc:
                logger.warning("Logoff from %s failed: %s", self.endpoint, exc)
        self._http.close()

    # Internal helpers -------------------------------------------------------
    def _logon(self, *, new_password: str | None = None) -> Session:
        self._sessions.clear()
        self._metrics_context = None
        url = self.clone_endpoint_url().join(SESSIONS_PATH)
        payload = encode_json(self.config.logon_payload(new_password=new_password))
        response = self._send("POST", str(url), payload)
        session = self._session_from_logon(response)
        self._sessions.set(session)
        logger.info("Logged on to %s as %s", self.endpoint, self.config.userid)
        return session

    def _session_from_logon(self, response: HttpResponse) -> Session:
        if response.status_code not in (200, 201):
            raise parse_error_body(
                response.content, response.status_code, error_class=AuthenticationError
            )
        payload = response.json()
        if not isinstance(payload, Mapping):
            raise error_from_exception(
                ErrorCode.UNMARSHAL_FAIL,
                ValueError("Logon response is not a JSON object"),
                status_code=response.status_code,
            )
        session = Session.from_payload(payload)
        if not session.is_authenticated:
            raise AuthenticationError(
                "Logon response did not contain an api-session token",
                reason=ErrorCode.EMPTY_RESPONSE,
                status_code=response.status_code,
            )
        return session

    def _ensure_logged_on(self) -> None:
        if self._sessions.current.is_authenticated:
            return
        with self._logon_lock:
            if not self._sessions.current.is_authenticated:
                self._logon()

    def _relogon(self, rejected_token: str) -> None:
        with self._logon_lock:
            if self._sessions.token and self._sessions.token != rejected_token:
                logger.debug("Re-logon to %s already done by another caller", self.endpoint)
                return
            logger.info("Session for %s expired; logging on again", self.endpoint)
            self._logon()

    def _execute(
        self,
        method: str,
        url: str,
        data: bytes | IO[bytes] | None,
        *,
        content_type: str | None,
        cancel_event: threading.Event | None,
    ) -> HttpResponse:
        self._ensure_logged_on()
        token = self._sessions.token
        self._log_request(method, url)
        response = self._send(
            method, url, data, token=token, content_type=content_type, cancel_event=cancel_event
        )
        if is_expected_status(response.status_code):
            return response

        if not need_logon(response.status_code, error_reason(response.content)):
            raise parse_error_body(response.content, response.status_code)

        self._relogon(token)
        _rewind(data)
        response = self._send(
            method,
            url,
            data,
            token=self._sessions.token,
            content_type=content_type,
            cancel_event=cancel_event,
        )
        if is_expected_status(response.status_code):
            return response
        error_class = (
            AuthenticationError
            if need_logon(response.status_code, error_reason(response.content))
            else HmcError
        )
        raise parse_error_body(response.content, response.status_code, error_class=error_class)

    def _send(
        self,
        method: str,
        url: str,
        data: bytes | IO[bytes] | None,
        *,
        token: str | None = None,
        content_type: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> HttpResponse:
        headers = self.config.resolved_headers(content_type=content_type)
        if token:
            headers[SESSION_HEADER_NAME] = token
        _check_cancelled(cancel_event)
        self._trace(format_request_trace(method, url, headers, data))
        try:
            response = self._http.request(
                method=method,
                url=url,
                headers=headers,
                data=data,
                timeout=self.config.timeout,
                verify=self._verify_target(),
                stream=True,
            )
        except requests.RequestException as exc:
            raise error_from_exception(ErrorCode.EXECUTE_FAIL, exc) from exc
        try:
            content = response.content
        except (requests.RequestException, OSError) as exc:
            raise error_from_exception(
                ErrorCode.READ_RESPONSE_FAIL, exc, status_code=response.status_code
            ) from exc
        finally:
            response.close()
        _check_cancelled(cancel_event)
        self._trace(
            format_response_trace(response.status_code, response.reason, response.headers, content)
        )
        return HttpResponse(
            status_code=response.status_code,
            content=content or b"",
            headers=response.headers,
        )

    @staticmethod
    def _serialize(body: Body) -> bytes | IO[bytes]:
        if isinstance(body, (bytes, bytearray)):
            return bytes(body)
        if hasattr(body, "read"):
            return body
        return encode_json(body)

    def _trace(self, text: str) -> None:
        if not self._trace_enabled:
            return
        with self._trace_lock:
            try:
                self._trace_output.write(text)
                self._trace_output.flush()
            except (OSError, ValueError) as exc:
                logger.warning(
                    "Unable to write HTTP trace (reason %s): %s",
                    int(ErrorCode.TRACE_REQUEST_FAIL),
                    exc,
                )

    def _verify_target(self) -> bool | str:
        if self._skip_cert:
            return False
        return self.config.ca_cert or True

    def _log_request(self, method: str, url: str) -> None:
        logger.info("HMC request %s %s", method.upper(), url)

    def _suppress_insecure_warning_if_needed(self) -> None:
        if self._skip_cert:
            urllib3.disable_warnings(InsecureRequestWarning)


def change_password(base_url: str, config: ClientConfig, new_password: str) -> None:
    """Log on with ``new_password`` set, which changes the password, then log off."""

    client = HMCClient.from_config(base_url, config)
    try:
        client.logon(new_password=new_password)
    finally:
        client.close()


def _check_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise RequestError("Request cancelled by caller", reason=ErrorCode.EXECUTE_FAIL)


def _rewind(data: bytes | IO[bytes] | None) -> None:
    if data is not None and hasattr(data, "seek"):
        data.seek(0)

import io
import json
import threading

import pytest
import requests

from hmc_client import ClientConfig, HMCClient, change_password
from hmc_client.exceptions import (
    AuthenticationError,
    ErrorCode,
    HmcError,
    InvalidURLError,
    RequestError,
)

BASE_URL = "https://hmc.example.com:6794"
SESSIONS_URL = f"{BASE_URL}/api/sessions"


def build_client(**kwargs):
    return HMCClient(base_url=BASE_URL, userid="admin", password="secret", **kwargs)


def logon_body(token="T1"):
    return {
        "api-session": token,
        "notification-topic": "topic-1",
        "job-notification-topic": "job-topic-1",
        "api-major-version": 4,
        "api-minor-version": 10,
        "password-expires": 90,
    }


def test_invalid_endpoint_is_rejected_at_construction():
    with pytest.raises(InvalidURLError) as excinfo:
        HMCClient(base_url="http://hmc.example.com", userid="u", password="p")

    assert excinfo.value.reason == ErrorCode.INVALID_URL


def test_logon_records_session_and_topics(requests_mock):
    matcher = requests_mock.post(SESSIONS_URL, json=logon_body())
    client = build_client()

    session = client.logon()

    assert session.token == "T1"
    assert session.notification_topic == "topic-1"
    assert session.job_notification_topic == "job-topic-1"
    assert session.api_major_version == 4
    assert client.is_logged_on()
    assert matcher.last_request.json() == {"userid": "admin", "password": "secret"}
    assert matcher.last_request.headers["User-Agent"].startswith("ZHMC (")


def test_logon_failure_raises_authentication_error(requests_mock):
    requests_mock.post(
        SESSIONS_URL, status_code=403, json={"reason": 0, "message": "Logon failed."}
    )
    client = build_client()

    with pytest.raises(AuthenticationError) as excinfo:
        client.logon()

    assert excinfo.value.status_code == 403
    assert excinfo.value.message == "Logon failed."
    assert not client.is_logged_on()


def test_first_request_logs_on_lazily_and_sends_token(requests_mock):
    logon = requests_mock.post(SESSIONS_URL, json=logon_body("T1"))
    cpcs = requests_mock.get(f"{BASE_URL}/api/cpcs", json={"cpcs": []})
    client = build_client()

    assert client.cpcs.list() == []

    assert logon.call_count == 1
    assert cpcs.last_request.headers["X-API-Session"] == "T1"


def test_expired_session_triggers_single_relogon_and_retry(requests_mock):
    logon = requests_mock.post(
        SESSIONS_URL, [{"json": logon_body("T1")}, {"json": logon_body("T2")}]
    )
    cpcs = requests_mock.get(
        f"{BASE_URL}/api/cpcs",
        [
            {"status_code": 401, "json": {"reason": 0, "message": "expired"}},
            {"status_code": 200, "json": {"cpcs": [{"name": "CPC1"}]}},
        ],
    )
    client = build_client()
    client.logon()

    result = client.cpcs.list()

    assert result == [{"name": "CPC1"}]
    # the explicit logon above plus exactly one re-logon
    assert logon.call_count == 2
    assert cpcs.call_count == 2
    assert cpcs.request_history[1].headers["X-API-Session"] == "T2"
    assert client.session.token == "T2"


def test_forbidden_with_invalid_session_reason_relogons(requests_mock):
    logon = requests_mock.post(
        SESSIONS_URL, [{"json": logon_body("T1")}, {"json": logon_body("T2")}]
    )
    requests_mock.get(
        f"{BASE_URL}/api/cpcs/1",
        [
            {"status_code": 403, "json": {"reason": 5, "message": "bad session"}},
            {"status_code": 200, "json": {"name": "CPC1"}},
        ],
    )
    client = build_client()

    assert client.cpcs.get("/api/cpcs/1") == {"name": "CPC1"}
    assert logon.call_count == 2


def test_forbidden_with_other_reason_is_surfaced_without_relogon(requests_mock):
    logon = requests_mock.post(SESSIONS_URL, json=logon_body())
    cpcs = requests_mock.get(
        f"{BASE_URL}/api/cpcs",
        status_code=403,
        json={"reason": 0, "message": "not permitted"},
    )
    client = build_client()

    with pytest.raises(HmcError) as excinfo:
        client.cpcs.list()

    assert excinfo.value.reason == 0
    assert excinfo.value.message == "not permitted"
    assert excinfo.value.status_code == 403
    assert logon.call_count == 1
    assert cpcs.call_count == 1


def test_relogon_is_not_repeated_when_retry_also_fails(requests_mock):
    logon = requests_mock.post(
        SESSIONS_URL, [{"json": logon_body("T1")}, {"json": logon_body("T2")}]
    )
    cpcs = requests_mock.get(
        f"{BASE_URL}/api/cpcs", status_code=401, json={"reason": 0, "message": "nope"}
    )
    client = build_client()

    with pytest.raises(AuthenticationError):
        client.cpcs.list()

    assert logon.call_count == 2
    assert cpcs.call_count == 2


def test_concurrent_expired_requests_share_one_relogon(requests_mock):
    tokens = iter(["T1", "T2", "T3", "T4"])
    logon = requests_mock.post(SESSIONS_URL, json=lambda request, context: logon_body(next(tokens)))

    def cpcs_callback(request, context):
        if request.headers.get("X-API-Session") == "T1":
            context.status_code = 401
            return json.dumps({"reason": 0, "message": "expired"})
        return json.dumps({"cpcs": []})

    cpcs = requests_mock.get(f"{BASE_URL}/api/cpcs", text=cpcs_callback)
    client = build_client()
    client.logon()

    workers = 8
    barrier = threading.Barrier(workers)
    results: list[object] = []

    def worker():
        barrier.wait()
        try:
            results.append(client.cpcs.list())
        except HmcError as exc:  # pragma: no cover - surfaced by the assertion below
            results.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results == [[]] * workers
    assert logon.call_count == 2
    assert client.session.token == "T2"
    retried = [r for r in cpcs.request_history if r.headers["X-API-Session"] == "T2"]
    assert len(retried) == workers


def test_endpoint_is_unchanged_by_requests(requests_mock):
    requests_mock.post(SESSIONS_URL, json=logon_body())
    requests_mock.get(f"{BASE_URL}/api/cpcs", json={"cpcs": []})
    requests_mock.get(f"{BASE_URL}/api/cpcs/1/partitions", json={"partitions": []})
    client = build_client()
    before = client.endpoint

    client.cpcs.list({"name": "CPC1"})
    client.partitions.list("/api/cpcs/1")
    clone = client.clone_endpoint_url()
    clone.join("/api/console")
    clone.query["x"] = "y"

    assert client.endpoint == before == BASE_URL


def test_endpoint_prefix_is_preserved(requests_mock):
    requests_mock.post(f"{BASE_URL}/api/sessions", json=logon_body())
    matcher = requests_mock.get(f"{BASE_URL}/api/cpcs/1", json={"name": "CPC1"})
    client = HMCClient(base_url=f"{BASE_URL}/api", userid="u", password="p")

    client.cpcs.get("/api/cpcs/1")

    assert matcher.called


def test_request_error_wraps_transport_failure():
    class ExplodingSession:
        def request(self, *args, **kwargs):  # pragma: no cover - helper
            raise requests.exceptions.SSLError("CERTIFICATE_VERIFY_FAILED")

        def close(self):  # pragma: no cover - helper
            pass

    client = build_client(session=ExplodingSession())

    with pytest.raises(RequestError) as excinfo:
        client.cpcs.list()

    assert excinfo.value.reason == ErrorCode.EXECUTE_FAIL
    assert "CERTIFICATE_VERIFY_FAILED" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, requests.exceptions.SSLError)


def test_cancelled_request_is_not_sent(requests_mock):
    requests_mock.post(SESSIONS_URL, json=logon_body())
    cpcs = requests_mock.get(f"{BASE_URL}/api/cpcs", json={"cpcs": []})
    client = build_client()
    client.logon()
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(RequestError) as excinfo:
        client.execute("GET", f"{BASE_URL}/api/cpcs", cancel_event=cancel)

    assert excinfo.value.reason == ErrorCode.EXECUTE_FAIL
    assert not cpcs.called
    assert client.session.token == "T1"


def test_cancel_during_round_trip_discards_response(requests_mock):
    requests_mock.post(SESSIONS_URL, json=logon_body())
    cancel = threading.Event()

    def cancel_while_answering(request, context):
        cancel.set()
        return {"cpcs": []}

    cpcs = requests_mock.get(f"{BASE_URL}/api/cpcs", json=cancel_while_answering)
    client = build_client()

    with pytest.raises(RequestError) as excinfo:
        client.execute("GET", f"{BASE_URL}/api/cpcs", cancel_event=cancel)

    assert excinfo.value.reason == ErrorCode.EXECUTE_FAIL
    assert cpcs.call_count == 1


def test_execute_returns_expected_error_statuses(requests_mock):
    requests_mock.post(SESSIONS_URL, json=logon_body())
    requests_mock.get(
        f"{BASE_URL}/api/cpcs/missing",
        status_code=404,
        json={"reason": 1, "message": "not found"},
    )
    client = build_client()

    response = client.execute("GET", f"{BASE_URL}/api/cpcs/missing")

    assert response.status_code == 404
    assert response.json()["reason"] == 1


def test_unserializable_body_is_marshal_failure(requests_mock):
    requests_mock.post(SESSIONS_URL, json=logon_body())
    client = build_client()

    with pytest.raises(RequestError) as excinfo:
        client.execute("POST", f"{BASE_URL}/api/cpcs", {"bad": object()})

    assert excinfo.value.reason == ErrorCode.MARSHAL_FAIL


def test_upload_streams_octet_stream_and_rewinds_on_retry(requests_mock):
    requests_mock.post(SESSIONS_URL, [{"json": logon_body("T1")}, {"json": logon_body("T2")}])
    upload = requests_mock.post(
        f"{BASE_URL}/api/partitions/1/operations/mount-iso-image",
        [{"status_code": 401}, {"status_code": 204}],
    )
    client = build_client()
    image = io.BytesIO(b"ISO-BYTES")

    response = client.upload(
        "POST", f"{BASE_URL}/api/partitions/1/operations/mount-iso-image", image
    )

    assert response.status_code == 204
    assert upload.call_count == 2
    assert upload.last_request.headers["Content-Type"] == "application/octet-stream"


def test_trace_writes_markers_and_redacts_credentials(requests_mock):
    requests_mock.post(SESSIONS_URL, json=logon_body())
    requests_mock.get(
        f"{BASE_URL}/api/cpcs/1", status_code=404, json={"reason": 1, "message": "gone"}
    )
    client = build_client()
    sink = io.StringIO()
    client.trace_on(sink)
    assert client.is_trace_enabled

    client.execute("GET", f"{BASE_URL}/api/cpcs/1")
    client.trace_off()
    assert not client.is_trace_enabled
    client.execute("GET", f"{BASE_URL}/api/cpcs/1")

    output = sink.getvalue()
    assert output.count("---------START-HTTP---------") == 2
    assert output.count("---------END-HTTP---------") == 2
    assert "secret" not in output
    assert "T1" not in output
    assert '"message": "gone"' in output


def test_trace_write_failure_does_not_fail_request(requests_mock, caplog):
    class BrokenSink:
        def write(self, text):
            raise OSError("disk full")

        def flush(self):  # pragma: no cover - helper
            pass

    requests_mock.post(SESSIONS_URL, json=logon_body())
    requests_mock.get(f"{BASE_URL}/api/cpcs", json={"cpcs": []})
    client = build_client(trace=True, trace_output=BrokenSink())

    with caplog.at_level("WARNING", logger="hmc_client.client"):
        assert client.cpcs.list() == []

    assert "1005" in caplog.text


def test_request_logging(caplog, requests_mock):
    requests_mock.post(SESSIONS_URL, json=logon_body())
    requests_mock.get(f"{BASE_URL}/api/cpcs", json={"cpcs": []})
    client = build_client()

    with caplog.at_level("INFO", logger="hmc_client.client"):
        client.cpcs.list()

    assert f"HMC request GET {BASE_URL}/api/cpcs" in caplog.text


def test_logoff_deletes_session_and_clears_token(requests_mock):
    requests_mock.post(SESSIONS_URL, json=logon_body())
    logoff = requests_mock.delete(f"{BASE_URL}/api/sessions/this-session", status_code=204)
    client = build_client()
    client.logon()

    client.logoff()

    assert logoff.last_request.headers["X-API-Session"] == "T1"
    assert not client.is_logged_on()


def test_is_logged_on_verify_queries_console(requests_mock):
    requests_mock.post(SESSIONS_URL, json=logon_body())
    requests_mock.get(
        f"{BASE_URL}/api/console", [{"status_code": 200, "json": {}}, {"status_code": 403}]
    )
    client = build_client()
    client.logon()

    assert client.is_logged_on(verify=True) is True
    assert client.is_logged_on(verify=True) is False


def test_console_session_logon_and_logoff(requests_mock):
    requests_mock.post(SESSIONS_URL, [{"json": logon_body("T1")}, {"json": logon_body("C1")}])
    logoff = requests_mock.delete(f"{BASE_URL}/api/sessions/this-session", status_code=204)
    client = build_client()
    client.logon()

    session_id = client.logon_console()
    client.logoff_console(session_id)

    assert session_id == "C1"
    assert logoff.last_request.headers["X-API-Session"] == "C1"
    assert client.session.token == "T1"


def test_metrics_context_is_created_once_per_session(requests_mock):
    requests_mock.post(SESSIONS_URL, json=logon_body())
    context = requests_mock.post(
        f"{BASE_URL}/api/services/metrics/context",
        json={"metrics-context-uri": "/api/services/metrics/context/1", "metric-group-infos": []},
    )
    client = build_client()

    first = client.get_metrics_context()
    second = client.get_metrics_context()

    assert first is second
    assert context.call_count == 1
    assert "partition-usage" in context.last_request.json()["metric-groups"]


def test_change_password_sends_new_password_and_logs_off(requests_mock):
    logon = requests_mock.post(SESSIONS_URL, json=logon_body())
    logoff = requests_mock.delete(f"{BASE_URL}/api/sessions/this-session", status_code=204)

    change_password(BASE_URL, ClientConfig(userid="admin", password="old"), "new")

    assert logon.last_request.json() == {
        "userid": "admin",
        "password": "old",
        "new-password": "new",
    }
    assert logoff.called


def test_disables_insecure_warning_when_skip_cert(monkeypatch):
    captured: list[object] = []

    monkeypatch.setattr(
        "hmc_client.client.urllib3.disable_warnings",
        lambda warning: captured.append(warning),
    )

    build_client(skip_cert=True)

    assert captured


def test_skip_cert_disables_verification_per_request(requests_mock):
    requests_mock.post(SESSIONS_URL, json=logon_body())
    matcher = requests_mock.get(f"{BASE_URL}/api/cpcs", json={"cpcs": []})
    client = build_client(skip_cert=True)

    client.cpcs.list()
    assert matcher.last_request.verify is False

    client.set_skip_cert_verify(False)
    client.cpcs.list()
    assert matcher.last_request.verify is True

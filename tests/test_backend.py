from __future__ import annotations

import threading

import requests

from purchases.core.backend import Backend
from purchases.core.errors import PurchasesErrorCode
from tests.helpers.fakes import StubResponse, StubSession

STUB_ANONYMOUS_ID = "$RCAnonymousID:ff68f26e432648369a713849a9f93b58"


class _Waiter:
    def __init__(self, expected: int = 1):
        self.expected = expected
        self.successes = 0
        self.errors = []
        self.threads = []
        self._lock = threading.Lock()
        self.done = threading.Event()

    def _tick(self) -> None:
        self.threads.append(threading.current_thread().name)
        if self.successes + len(self.errors) >= self.expected:
            self.done.set()

    def on_success(self) -> None:
        with self._lock:
            self.successes += 1
            self._tick()

    def on_error(self, error) -> None:  # noqa: ANN001
        with self._lock:
            self.errors.append(error)
            self._tick()


def _backend(session) -> Backend:  # noqa: ANN001
    return Backend(api_key="appl_secret", base_url="https://api.example.test/v1/", timeout_seconds=3.0, session=session)


def test_create_alias_posts_to_alias_endpoint():
    session = StubSession([StubResponse(201, {})])
    b = _backend(session)
    w = _Waiter()
    b.create_alias(STUB_ANONYMOUS_ID, "new", w.on_success, w.on_error)
    assert w.done.wait(timeout=5.0)
    b.close()

    assert w.successes == 1 and w.errors == []
    req = session.requests[0]
    assert req["url"] == "https://api.example.test/v1/subscribers/%24RCAnonymousID%3Aff68f26e432648369a713849a9f93b58/alias"
    assert req["json"] == {"new_app_user_id": "new"}
    assert req["headers"]["Authorization"] == "Bearer appl_secret"
    assert req["timeout"] == 3.0
    assert session.closed is True


def test_continuations_run_on_worker_thread():
    b = _backend(StubSession([StubResponse(200, {})]))
    w = _Waiter()
    b.create_alias("a", "b", w.on_success, w.on_error)
    assert w.done.wait(timeout=5.0)
    b.close()
    assert w.threads[0].startswith("purchases-backend")


def test_backend_error_code_is_mapped():
    b = _backend(StubSession([StubResponse(401, {"code": 7225, "message": "Invalid API Key."})]))
    w = _Waiter()
    b.create_alias("a", "b", w.on_success, w.on_error)
    assert w.done.wait(timeout=5.0)
    b.close()
    assert w.successes == 0
    err = w.errors[0]
    assert err.code == PurchasesErrorCode.INVALID_CREDENTIALS_ERROR
    assert err.underlying_error_message == "Invalid API Key."
    assert err.context["status_code"] == 401


def test_server_error_without_body_is_unexpected_response():
    b = _backend(StubSession([StubResponse(503, None)]))
    w = _Waiter()
    b.create_alias("a", "b", w.on_success, w.on_error)
    assert w.done.wait(timeout=5.0)
    b.close()
    assert w.errors[0].code == PurchasesErrorCode.UNEXPECTED_BACKEND_RESPONSE_ERROR


def test_connection_failure_is_network_error():
    b = _backend(StubSession([requests.ConnectionError("offline")]))
    w = _Waiter()
    b.create_alias("a", "b", w.on_success, w.on_error)
    assert w.done.wait(timeout=5.0)
    b.close()
    assert w.errors[0].code == PurchasesErrorCode.NETWORK_ERROR
    assert "offline" in (w.errors[0].underlying_error_message or "")


def test_identical_in_flight_alias_requests_are_coalesced():
    gate = threading.Event()
    session = StubSession([StubResponse(201, {})], gate=gate)
    b = _backend(session)
    w = _Waiter(expected=2)
    b.create_alias("a", "b", w.on_success, w.on_error)
    b.create_alias("a", "b", w.on_success, w.on_error)
    gate.set()
    assert w.done.wait(timeout=5.0)
    b.close()
    assert len(session.requests) == 1
    assert w.successes == 2


def test_each_callback_fires_even_if_one_raises():
    gate = threading.Event()
    b = _backend(StubSession([StubResponse(201, {})], gate=gate))
    w = _Waiter()

    def _boom() -> None:
        raise RuntimeError("caller bug")

    b.create_alias("a", "b", _boom, w.on_error)
    b.create_alias("a", "b", w.on_success, w.on_error)
    gate.set()
    assert w.done.wait(timeout=5.0)
    b.close()
    assert w.successes == 1

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests

from purchases.core.config import DEFAULT_BASE_URL
from purchases.core.errors import PurchasesError, PurchasesErrorCode, error_from_backend_response, network_error

SDK_VERSION = "0.1.0"

OnSuccess = Callable[[], None]
OnError = Callable[[PurchasesError], None]


@dataclass
class BackendResponse:
    status_code: int
    body: Dict[str, Any]

    @property
    def ok(self) -> bool:
        return 200 <= int(self.status_code) < 300


class Backend:
    """
    Client for the purchases backend.

    Calls run on a small worker pool; continuations fire on a worker thread,
    never on the caller's. Identical alias requests that are already in flight
    are coalesced into a single HTTP call, and every caller still receives
    exactly one continuation.
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 30.0,
        max_workers: int = 2,
        session: Optional[requests.Session] = None,
        logger: Any = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_seconds = float(timeout_seconds)
        self.logger = logger
        self._session = session or requests.Session()
        self._executor = ThreadPoolExecutor(max_workers=int(max_workers), thread_name_prefix="purchases-backend")
        self._lock = threading.Lock()
        self._alias_callbacks: Dict[Tuple[str, str], List[Tuple[OnSuccess, OnError]]] = {}

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}{path}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Platform": "python",
            "X-Version": SDK_VERSION,
        }

    def perform_request(self, path: str, body: Dict[str, Any]) -> BackendResponse:
        r = self._session.post(self._url(path), json=body, headers=self._headers(), timeout=self.timeout_seconds)
        try:
            data = r.json()
        except ValueError:
            data = {}
        return BackendResponse(status_code=int(r.status_code), body=data if isinstance(data, dict) else {})

    # ---- alias ----
    def create_alias(self, app_user_id: str, new_app_user_id: str, on_success: OnSuccess, on_error: OnError) -> None:
        key = (app_user_id, new_app_user_id)
        with self._lock:
            pending = self._alias_callbacks.get(key)
            if pending is not None:
                pending.append((on_success, on_error))
                if self.logger:
                    self.logger.debug(f"Alias request {app_user_id} -> {new_app_user_id} already in flight; enqueued callbacks.")
                return
            self._alias_callbacks[key] = [(on_success, on_error)]
        self._executor.submit(self._run_alias, key)

    def _run_alias(self, key: Tuple[str, str]) -> None:
        app_user_id, new_app_user_id = key
        path = f"/subscribers/{quote(app_user_id, safe='')}/alias"
        error: Optional[PurchasesError] = None
        try:
            resp = self.perform_request(path, {"new_app_user_id": new_app_user_id})
            if not resp.ok:
                error = error_from_backend_response(resp.status_code, resp.body)
        except requests.RequestException as e:
            error = network_error(e)
        except Exception as e:  # noqa: BLE001
            error = PurchasesError(PurchasesErrorCode.UNKNOWN_ERROR, str(e), context={"exception": type(e).__name__})

        with self._lock:
            callbacks = self._alias_callbacks.pop(key, [])
        if error is not None and self.logger:
            self.logger.error(f"Error creating alias {app_user_id} -> {new_app_user_id}: {error}")
        for on_success, on_error in callbacks:
            try:
                if error is None:
                    on_success()
                else:
                    on_error(error)
            except Exception as e:  # noqa: BLE001
                # one failing continuation must not starve the others
                if self.logger:
                    self.logger.error(f"Alias continuation raised: {e!r}")

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self._session.close()

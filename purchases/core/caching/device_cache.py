from __future__ import annotations

import threading
import time
from typing import Any, Dict, Optional

from purchases.core.caching.io import JsonFileStore

SHARED_PREFERENCES_PREFIX = "com.revenuecat.purchases."


class DeviceCache:
    """
    Device-local cache for the current app user ID and per-user customer info.

    The current app user ID lives under `<prefix>.new`; IDs written by older SDK
    versions live under the bare `<prefix>` key (the legacy slot).
    """

    def __init__(self, store: JsonFileStore, api_key: str, *, customer_info_cache_ttl_seconds: float = 300.0, logger: Any = None):
        self.store = store
        self.logger = logger
        self.api_key_prefix = SHARED_PREFERENCES_PREFIX + str(api_key)
        self.customer_info_cache_ttl_seconds = float(customer_info_cache_ttl_seconds)
        self._lock = threading.RLock()

    # ---- keys ----
    @property
    def legacy_app_user_id_cache_key(self) -> str:
        return self.api_key_prefix

    @property
    def app_user_id_cache_key(self) -> str:
        return f"{self.api_key_prefix}.new"

    def customer_info_cache_key(self, app_user_id: str) -> str:
        return f"{self.api_key_prefix}.customerInfo.{app_user_id}"

    def customer_info_last_updated_cache_key(self, app_user_id: str) -> str:
        return f"{self.api_key_prefix}.customerInfoLastUpdated.{app_user_id}"

    # ---- app user id ----
    def get_cached_app_user_id(self) -> Optional[str]:
        return self.store.get(self.app_user_id_cache_key)

    def get_legacy_cached_app_user_id(self) -> Optional[str]:
        return self.store.get(self.legacy_app_user_id_cache_key)

    def cache_app_user_id(self, app_user_id: str) -> None:
        self.store.set(self.app_user_id_cache_key, app_user_id)

    def clear_caches_for_app_user_id(self) -> None:
        """
        Drop the cached IDs (current and legacy) and the customer info of the
        current user.
        """
        with self._lock:
            app_user_id = self.get_cached_app_user_id()
            keys = [self.app_user_id_cache_key, self.legacy_app_user_id_cache_key]
            if app_user_id is not None:
                keys.append(self.customer_info_cache_key(app_user_id))
                keys.append(self.customer_info_last_updated_cache_key(app_user_id))
            self.store.remove(*keys)
        if self.logger:
            self.logger.debug(f"Cleared device caches for App User ID: {app_user_id}")

    # ---- customer info ----
    def cache_customer_info(self, app_user_id: str, info: Dict[str, Any], *, now: Optional[float] = None) -> None:
        with self._lock:
            self.store.set(self.customer_info_cache_key(app_user_id), dict(info))
            self.store.set(self.customer_info_last_updated_cache_key(app_user_id), float(now if now is not None else time.time()))

    def get_cached_customer_info(self, app_user_id: str) -> Optional[Dict[str, Any]]:
        data = self.store.get(self.customer_info_cache_key(app_user_id))
        return dict(data) if isinstance(data, dict) else None

    def is_customer_info_cache_stale(self, app_user_id: str, *, ttl_seconds: Optional[float] = None, now: Optional[float] = None) -> bool:
        last = self.store.get(self.customer_info_last_updated_cache_key(app_user_id))
        if last is None:
            return True
        current = float(now if now is not None else time.time())
        ttl = self.customer_info_cache_ttl_seconds if ttl_seconds is None else float(ttl_seconds)
        return (current - float(last)) >= ttl

from __future__ import annotations

"""
IdentityManager: the current app user ID and its transitions.

The device cache is the source of truth for the current ID; this class keeps
no copy of it. Callers are expected to serialize identity operations, the lock
only keeps a clear-then-persist sequence from interleaving with another one.
"""

import threading
from typing import Any, Callable, Optional

from purchases.core.errors import PurchasesError, PurchasesErrorCode
from purchases.core.identity.interfaces import AliasBackend, DeviceCacheLike, SubscriberAttributesCacheLike
from purchases.core.identity.models import IdentityState, generate_anonymous_app_user_id, is_anonymous_app_user_id
from purchases.core.logger import get_logger

OnSuccess = Callable[[], None]
OnError = Callable[[PurchasesError], None]


class IdentityManager:
    def __init__(
        self,
        *,
        device_cache: DeviceCacheLike,
        subscriber_attributes_cache: SubscriberAttributesCacheLike,
        backend: AliasBackend,
        logger: Any = None,
    ):
        self.device_cache = device_cache
        self.subscriber_attributes_cache = subscriber_attributes_cache
        self.backend = backend
        self.logger = logger or get_logger()
        self._lock = threading.RLock()

    @property
    def current_app_user_id(self) -> Optional[str]:
        return self.device_cache.get_cached_app_user_id()

    def configure(self, app_user_id: Optional[str] = None) -> str:
        """
        Resolve the current app user ID at startup and persist it.

        A cached ID is kept as is. Otherwise a supplied ID wins over a legacy
        one, and a fresh anonymous ID is generated when neither exists.
        """
        with self._lock:
            resolved = self.device_cache.get_cached_app_user_id()
            if resolved is None:
                resolved = app_user_id
            if resolved is None:
                resolved = self.device_cache.get_legacy_cached_app_user_id()
            if resolved is None:
                resolved = generate_anonymous_app_user_id()
            self.logger.info(f"Identifying App User ID: {resolved}")
            self.device_cache.cache_app_user_id(resolved)
            self.subscriber_attributes_cache.clean_up_subscriber_attribute_cache(resolved)
        return resolved

    def identify(self, app_user_id: str, on_success: OnSuccess, on_error: OnError) -> None:
        with self._lock:
            current = self.device_cache.get_cached_app_user_id()
            route_to_alias = current is not None and current != app_user_id and self.current_user_is_anonymous()
            if not route_to_alias:
                if current != app_user_id:
                    self.logger.info(f"Changing App User ID: {current} -> {app_user_id}")
                    if current is not None:
                        self._clear_caches_for(current)
                self.device_cache.cache_app_user_id(app_user_id)
        if route_to_alias:
            self.create_alias(app_user_id, on_success, on_error)
            return
        on_success()

    def create_alias(self, new_app_user_id: str, on_success: OnSuccess, on_error: OnError) -> None:
        current = self.device_cache.get_cached_app_user_id()
        if current is None:
            on_error(PurchasesError(PurchasesErrorCode.CONFIGURATION_ERROR, "No current App User ID; call configure() first."))
            return
        self.logger.info(f"Creating an alias to {current} from {new_app_user_id}")

        def _aliased() -> None:
            error: Optional[PurchasesError] = None
            try:
                with self._lock:
                    now_current = self.device_cache.get_cached_app_user_id()
                    if now_current == new_app_user_id:
                        # an identical request already switched to the new ID
                        pass
                    elif now_current != current:
                        error = PurchasesError(
                            PurchasesErrorCode.UNKNOWN_ERROR,
                            "App User ID changed while the alias request was in flight.",
                            context={"expected": current, "found": now_current},
                        )
                    else:
                        self.logger.info(f"Alias created. Changing App User ID: {current} -> {new_app_user_id}")
                        self._clear_caches_for(current)
                        self.device_cache.cache_app_user_id(new_app_user_id)
            except Exception as e:  # noqa: BLE001
                error = PurchasesError(PurchasesErrorCode.UNKNOWN_ERROR, str(e), context={"exception": type(e).__name__})
            if error is not None:
                self.logger.error(f"Could not switch to aliased App User ID {new_app_user_id}: {error}")
                on_error(error)
                return
            on_success()

        self.backend.create_alias(current, new_app_user_id, _aliased, on_error)

    def reset(self) -> str:
        with self._lock:
            current = self.device_cache.get_cached_app_user_id()
            self.logger.info(f"Resetting user. Old App User ID: {current}")
            if current is not None:
                self._clear_caches_for(current)
            else:
                self.device_cache.clear_caches_for_app_user_id()
            new_id = generate_anonymous_app_user_id()
            self.device_cache.cache_app_user_id(new_id)
        return new_id

    def current_user_is_anonymous(self) -> bool:
        current = self.device_cache.get_cached_app_user_id()
        if current is None:
            return False
        if is_anonymous_app_user_id(current):
            return True
        # a legacy random ID adopted during migration is still anonymous
        return current == self.device_cache.get_legacy_cached_app_user_id()

    def state(self) -> IdentityState:
        if self.device_cache.get_cached_app_user_id() is None:
            return IdentityState.UNCONFIGURED
        if self.current_user_is_anonymous():
            return IdentityState.ANONYMOUS
        return IdentityState.IDENTIFIED

    def _clear_caches_for(self, app_user_id: str) -> None:
        self.device_cache.clear_caches_for_app_user_id()
        self.subscriber_attributes_cache.clear_subscriber_attributes_if_synced_for_subscriber(app_user_id)

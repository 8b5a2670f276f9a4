from __future__ import annotations

from typing import Callable, Optional, Protocol

from purchases.core.errors import PurchasesError


class DeviceCacheLike(Protocol):
    def get_cached_app_user_id(self) -> Optional[str]: ...

    def get_legacy_cached_app_user_id(self) -> Optional[str]: ...

    def cache_app_user_id(self, app_user_id: str) -> None: ...

    def clear_caches_for_app_user_id(self) -> None: ...


class SubscriberAttributesCacheLike(Protocol):
    def clean_up_subscriber_attribute_cache(self, current_app_user_id: str) -> None: ...

    def clear_subscriber_attributes_if_synced_for_subscriber(self, app_user_id: str) -> None: ...


class AliasBackend(Protocol):
    def create_alias(
        self,
        app_user_id: str,
        new_app_user_id: str,
        on_success: Callable[[], None],
        on_error: Callable[[PurchasesError], None],
    ) -> None: ...

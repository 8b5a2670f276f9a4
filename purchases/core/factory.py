from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from purchases.core.backend import Backend
from purchases.core.caching.device_cache import DeviceCache
from purchases.core.caching.io import JsonFileStore
from purchases.core.config import PurchasesConfig
from purchases.core.identity.manager import IdentityManager
from purchases.core.logger import get_logger
from purchases.core.redaction import mask_api_key
from purchases.subscriber_attributes.cache import SubscriberAttributesCache


@dataclass
class IdentityComponents:
    store: JsonFileStore
    device_cache: DeviceCache
    subscriber_attributes_cache: SubscriberAttributesCache
    backend: Backend
    identity_manager: IdentityManager

    def close(self) -> None:
        self.backend.close()


def build_identity_manager(cfg: PurchasesConfig, *, logger: Any = None, configure: bool = True) -> IdentityComponents:
    """
    Wire the caches, the backend client and the identity manager from config.

    With `configure=True` the manager resolves the current app user ID right away.
    """
    logger = logger or get_logger()
    store = JsonFileStore(cfg.cache_path, logger=logger)
    device_cache = DeviceCache(store, cfg.api_key, customer_info_cache_ttl_seconds=cfg.customer_info_cache_ttl_seconds, logger=logger)
    attributes = SubscriberAttributesCache(device_cache, logger=logger)
    backend = Backend(
        api_key=cfg.api_key,
        base_url=cfg.base_url,
        timeout_seconds=cfg.request_timeout_seconds,
        max_workers=cfg.backend_worker_threads,
        logger=logger,
    )
    manager = IdentityManager(
        device_cache=device_cache,
        subscriber_attributes_cache=attributes,
        backend=backend,
        logger=logger,
    )
    logger.debug(f"Identity components built for API key {mask_api_key(cfg.api_key)}")
    if configure:
        manager.configure(cfg.app_user_id)
    return IdentityComponents(
        store=store,
        device_cache=device_cache,
        subscriber_attributes_cache=attributes,
        backend=backend,
        identity_manager=manager,
    )

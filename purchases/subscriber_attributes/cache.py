from __future__ import annotations

import threading
from typing import Any, Dict, List

from pydantic import ValidationError

from purchases.core.caching.device_cache import DeviceCache
from purchases.subscriber_attributes.models import (
    SubscriberAttribute,
    SubscriberAttributeMap,
    SubscriberAttributesPerUser,
)


class SubscriberAttributesCache:
    """
    Per-user custom attributes stored next to the device cache.

    All users share one entry (`<prefix>.subscriberAttributes`); older SDK
    versions wrote one entry per user (`<prefix>.subscriberAttributes.<id>`),
    which `clean_up_subscriber_attribute_cache` folds into the shared one.
    """

    def __init__(self, device_cache: DeviceCache, *, logger: Any = None):
        self.device_cache = device_cache
        self.store = device_cache.store
        self.logger = logger
        self._lock = threading.RLock()

    @property
    def subscriber_attributes_cache_key(self) -> str:
        return f"{self.device_cache.api_key_prefix}.subscriberAttributes"

    def legacy_subscriber_attributes_cache_key(self, app_user_id: str) -> str:
        return f"{self.subscriber_attributes_cache_key}.{app_user_id}"

    # ---- (de)serialization ----
    def _parse_user(self, raw: Any) -> SubscriberAttributeMap:
        out: SubscriberAttributeMap = {}
        if not isinstance(raw, dict):
            return out
        for key, attr in raw.items():
            try:
                out[str(key)] = SubscriberAttribute.model_validate(attr)
            except ValidationError:
                if self.logger:
                    self.logger.warning(f"Dropping unreadable cached subscriber attribute: {key}")
        return out

    def _read_all_locked(self) -> SubscriberAttributesPerUser:
        raw = self.store.get(self.subscriber_attributes_cache_key) or {}
        users = raw.get("attributes") if isinstance(raw, dict) else None
        if not isinstance(users, dict):
            return {}
        return {str(uid): self._parse_user(attrs) for uid, attrs in users.items()}

    def _write_all_locked(self, per_user: SubscriberAttributesPerUser) -> None:
        payload = {
            "attributes": {
                uid: {k: a.model_dump() for k, a in attrs.items()}
                for uid, attrs in per_user.items()
            }
        }
        self.store.set(self.subscriber_attributes_cache_key, payload)

    # ---- reads ----
    def get_all_stored_subscriber_attributes(self, app_user_id: str) -> SubscriberAttributeMap:
        with self._lock:
            return dict(self._read_all_locked().get(app_user_id, {}))

    def get_unsynced_subscriber_attributes(self, app_user_id: str) -> SubscriberAttributeMap:
        return {k: a for k, a in self.get_all_stored_subscriber_attributes(app_user_id).items() if not a.is_synced}

    def get_all_unsynced_subscriber_attributes(self) -> SubscriberAttributesPerUser:
        with self._lock:
            per_user = self._read_all_locked()
        out: SubscriberAttributesPerUser = {}
        for uid, attrs in per_user.items():
            unsynced = {k: a for k, a in attrs.items() if not a.is_synced}
            if unsynced:
                out[uid] = unsynced
        return out

    # ---- writes ----
    def set_attributes(self, app_user_id: str, attributes: Dict[str, SubscriberAttribute]) -> None:
        with self._lock:
            per_user = self._read_all_locked()
            current = per_user.setdefault(app_user_id, {})
            current.update(attributes)
            self._write_all_locked(per_user)

    def mark_as_synced(self, app_user_id: str, synced_attributes: Dict[str, SubscriberAttribute]) -> None:
        """
        Flag attributes as synced, unless they were set again after the sync began.
        """
        if not synced_attributes:
            return
        with self._lock:
            per_user = self._read_all_locked()
            current = per_user.get(app_user_id)
            if not current:
                return
            for key, sent in synced_attributes.items():
                stored = current.get(key)
                if stored is not None and stored.set_time == sent.set_time and stored.value == sent.value:
                    current[key] = stored.synced()
            self._write_all_locked(per_user)

    def clear_subscriber_attributes_if_synced_for_subscriber(self, app_user_id: str) -> None:
        with self._lock:
            per_user = self._read_all_locked()
            attrs = per_user.get(app_user_id)
            if attrs is None:
                return
            if any(not a.is_synced for a in attrs.values()):
                if self.logger:
                    self.logger.info(f"Keeping unsynced subscriber attributes for App User ID: {app_user_id}")
                return
            del per_user[app_user_id]
            self._write_all_locked(per_user)

    def clean_up_subscriber_attribute_cache(self, current_app_user_id: str) -> None:
        with self._lock:
            self._migrate_legacy_attributes_locked()
            self._delete_synced_attributes_for_other_users_locked(current_app_user_id)

    def _migrate_legacy_attributes_locked(self) -> None:
        prefix = self.subscriber_attributes_cache_key + "."
        legacy_keys: List[str] = list(self.store.keys_with_prefix(prefix))
        if not legacy_keys:
            return
        per_user = self._read_all_locked()
        for legacy_key in legacy_keys:
            app_user_id = legacy_key[len(prefix):]
            legacy = self._parse_user(self.store.get(legacy_key))
            merged = dict(legacy)
            merged.update(per_user.get(app_user_id, {}))
            per_user[app_user_id] = merged
        self._write_all_locked(per_user)
        self.store.remove(*legacy_keys)
        if self.logger:
            self.logger.info(f"Migrated subscriber attributes for {len(legacy_keys)} user(s).")

    def _delete_synced_attributes_for_other_users_locked(self, current_app_user_id: str) -> None:
        per_user = self._read_all_locked()
        changed = False
        for uid in list(per_user.keys()):
            if uid == current_app_user_id:
                continue
            attrs = per_user[uid]
            unsynced = {k: a for k, a in attrs.items() if not a.is_synced}
            if len(unsynced) != len(attrs):
                changed = True
            if unsynced:
                per_user[uid] = unsynced
            else:
                del per_user[uid]
                changed = True
        if changed:
            self._write_all_locked(per_user)

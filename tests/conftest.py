from __future__ import annotations

import pytest

from purchases.core.caching.device_cache import DeviceCache
from purchases.core.caching.io import JsonFileStore
from purchases.core.identity.manager import IdentityManager
from purchases.subscriber_attributes.cache import SubscriberAttributesCache
from tests.helpers.fakes import FakeBackend, FakeDeviceCache, FakeSubscriberAttributesCache


class _L:
    def debug(self, *_a, **_k): ...
    def info(self, *_a, **_k): ...
    def warning(self, *_a, **_k): ...
    def error(self, *_a, **_k): ...


@pytest.fixture
def quiet_logger():
    return _L()


@pytest.fixture
def device_cache():
    return FakeDeviceCache()


@pytest.fixture
def attributes_cache():
    return FakeSubscriberAttributesCache()


@pytest.fixture
def backend():
    return FakeBackend(mode="success")


@pytest.fixture
def identity_manager(device_cache, attributes_cache, backend, quiet_logger):
    return IdentityManager(
        device_cache=device_cache,
        subscriber_attributes_cache=attributes_cache,
        backend=backend,
        logger=quiet_logger,
    )


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(str(tmp_path / "runtime" / "cache.json"))


@pytest.fixture
def real_device_cache(store):
    return DeviceCache(store, "appl_test_key")


@pytest.fixture
def real_attributes_cache(real_device_cache):
    return SubscriberAttributesCache(real_device_cache)

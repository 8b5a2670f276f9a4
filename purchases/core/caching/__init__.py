from purchases.core.caching.device_cache import DeviceCache
from purchases.core.caching.io import JsonFileStore

__all__ = ["DeviceCache", "JsonFileStore"]

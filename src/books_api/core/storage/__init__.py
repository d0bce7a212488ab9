from .cache_storage import (
    CacheStorage,
    InMemoryCacheStorage,
    RedisCacheStorage,
    detect_cache_storage,
)

__all__ = [
    "CacheStorage",
    "InMemoryCacheStorage",
    "RedisCacheStorage",
    "detect_cache_storage",
]

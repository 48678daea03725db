"""Shared Flask extension instances and their backend selection."""

from flask_caching import Cache
from flask_compress import Compress

# Landing stats and reverse-geocoding results live here.
cache = Cache()

compress = Compress()

DEFAULT_CACHE_TIMEOUT = 90


def build_cache_config(redis_url: str | None, default_timeout: int = DEFAULT_CACHE_TIMEOUT) -> dict:
    """Use Redis when a URL is configured so every worker sees the same entries."""

    config = {"CACHE_DEFAULT_TIMEOUT": default_timeout}
    if redis_url:
        config.update({"CACHE_TYPE": "RedisCache", "CACHE_REDIS_URL": redis_url})
    else:
        config["CACHE_TYPE"] = "SimpleCache"
    return config


def init_extensions(app, redis_url: str | None = None) -> None:
    cache.init_app(app, config=build_cache_config(redis_url))
    compress.init_app(app)


__all__ = ["build_cache_config", "cache", "compress", "init_extensions"]

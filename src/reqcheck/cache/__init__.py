"""Content-addressed verdict cache."""

from reqcheck.cache.store import VerdictCache, default_cache_path

__all__ = ["VerdictCache", "default_cache_path"]

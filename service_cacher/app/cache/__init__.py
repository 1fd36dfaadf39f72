"""
Cache package for the Cacher Service.

The store is authoritative for every entry; this package only issues
GET/SET commands with an expiry and maps misses onto ``KeyNotFoundError``.
"""

from .store_cache import StoreCache

__all__ = ["StoreCache"]

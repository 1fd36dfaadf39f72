"""
Queue package for the Queuer Service.
"""

from .store_queue import StoreQueue

__all__ = ["StoreQueue"]

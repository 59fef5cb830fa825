"""In-memory storage for the current chain snapshot."""

from .row_store import RowStore, StoreSnapshot

__all__ = [
    "RowStore",
    "StoreSnapshot",
]

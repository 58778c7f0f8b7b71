"""
Storage layer for crawled pages and the inverted index.
"""

from .database import (
    DatabaseManager, DatabaseError, StoreError, IndexingError, PageRecord,
    StorageBackend, SQLiteStorageBackend
)
from .indexer import count_terms, tokenize

__all__ = [
    'DatabaseManager', 'DatabaseError', 'StoreError', 'IndexingError', 'PageRecord',
    'StorageBackend', 'SQLiteStorageBackend',
    'count_terms', 'tokenize'
]

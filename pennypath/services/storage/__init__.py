"""
Storage Services Package

Provides the abstract storage interfaces and concrete implementations.
The in-memory backend is the default; the JSON file backend is durable.
"""

from pennypath.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from pennypath.services.storage.json_file import JsonFileLedgerStorage
from pennypath.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConflictError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "JsonFileLedgerStorage",
]

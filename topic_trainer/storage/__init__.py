"""
Storage Module - persistence boundary of the trainer.

Components:
- StoragePort: protocol consumed by ContentGraph and AttemptLog
- WriteBatch: atomic set of puts and deletes
- InMemoryStorage: dict-backed adapter
- SqlStorage: SQLAlchemy async adapter (SQLite by default)
"""

from topic_trainer.storage.memory import InMemoryStorage
from topic_trainer.storage.port import StoragePort, WriteBatch
from topic_trainer.storage.sql_store import SqlStorage

__all__ = [
    "StoragePort",
    "WriteBatch",
    "InMemoryStorage",
    "SqlStorage",
]

from group_shield.storage.base_store import BaseStore
from group_shield.storage.postgres_store import PostgresStore

__all__ = ["BaseStore", "PostgresStore"]

"""
Database Package - Models and the durable state store
"""

from .connection_pool import ConnectionPool
from .schema_manager import SchemaManager
from .repositories import StorageRepository

__all__ = ["ConnectionPool", "SchemaManager", "StorageRepository"]

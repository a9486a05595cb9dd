"""
Repositories Package

Repository classes over the storage database.
"""

from .storage_repository import StorageRepository

__all__ = [
    'StorageRepository',
]

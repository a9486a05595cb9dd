"""
Services - Boundaries to the filesystem and to the command backend
"""

from .filesystem import FileSystemGateway, LocalFileSystemGateway
from .commands import CachedIntrospection, CommandBackend

__all__ = [
    "FileSystemGateway",
    "LocalFileSystemGateway",
    "CachedIntrospection",
    "CommandBackend",
]

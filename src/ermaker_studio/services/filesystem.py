"""
Filesystem Gateway - Interface and local implementation

The workspace core never touches the disk directly: every directory or file
operation goes through a FileSystemGateway. Failures are raised as
WorkspaceIOError carrying the offending path.
"""
from pathlib import Path
from typing import List, Optional, Protocol, runtime_checkable
import logging
import shutil

from ..config import AppConfig
from ..constants import PROJECT_FOLDER_LIMIT, PROJECT_FOLDER_PREFIX
from ..database.models import FileEntry
from ..errors import WorkspaceIOError

logger = logging.getLogger(__name__)


@runtime_checkable
class FileSystemGateway(Protocol):
    """
    Protocol for the filesystem boundary.

    Every method may raise WorkspaceIOError.
    """

    def create_directory(self, path: str) -> None:
        """Create a directory and any missing parents."""
        ...

    def write_file(self, path: str, content: str) -> None:
        """Write (create or replace) a text file."""
        ...

    def delete_path(self, path: str) -> None:
        """Delete a file, or a directory recursively."""
        ...

    def rename_path(self, old_path: str, new_path: str) -> None:
        """Rename / move a file or directory."""
        ...

    def read_file(self, path: str) -> str:
        """Read a text file."""
        ...

    def list_directory(self, path: str) -> List[FileEntry]:
        """List the direct entries of a directory."""
        ...

    def path_exists(self, path: str) -> bool:
        """Check whether a path exists."""
        ...

    def get_default_project_root(self) -> str:
        """Base folder under which projects are allocated."""
        ...

    def allocate_next_project_folder(self, base_path: str) -> str:
        """Create and return the first free ``ProjectN`` folder under base_path."""
        ...


class LocalFileSystemGateway:
    """FileSystemGateway backed by the local disk."""

    def __init__(self, home: Optional[Path] = None, encoding: str = "utf-8"):
        """
        Args:
            home: Directory used to compute the default project root
                  (defaults to the user's home)
            encoding: Text encoding for reads and writes
        """
        self.home = Path(home) if home else Path.home()
        self.encoding = encoding

    def create_directory(self, path: str) -> None:
        try:
            Path(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create directory {path}: {e}")
            raise WorkspaceIOError(f"Failed to create directory: {e}", path=path) from e

    def write_file(self, path: str, content: str) -> None:
        try:
            Path(path).write_text(content, encoding=self.encoding)
        except OSError as e:
            logger.error(f"Failed to save file {path}: {e}")
            raise WorkspaceIOError(f"Failed to save file: {e}", path=path) from e

    def delete_path(self, path: str) -> None:
        target = Path(path)
        try:
            if target.is_dir():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as e:
            kind = "directory" if target.is_dir() else "file"
            logger.error(f"Failed to delete {kind} {path}: {e}")
            raise WorkspaceIOError(f"Failed to delete {kind}: {e}", path=path) from e

    def rename_path(self, old_path: str, new_path: str) -> None:
        if Path(new_path).exists():
            raise WorkspaceIOError("Failed to rename: target already exists", path=new_path)
        try:
            Path(old_path).rename(new_path)
        except OSError as e:
            logger.error(f"Failed to rename {old_path} -> {new_path}: {e}")
            raise WorkspaceIOError(f"Failed to rename: {e}", path=old_path) from e

    def read_file(self, path: str) -> str:
        try:
            return Path(path).read_text(encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read file {path}: {e}")
            raise WorkspaceIOError(f"Failed to read file: {e}", path=path) from e

    def list_directory(self, path: str) -> List[FileEntry]:
        try:
            entries = [
                FileEntry(name=child.name, path=str(child), is_directory=child.is_dir())
                for child in Path(path).iterdir()
            ]
        except OSError as e:
            logger.error(f"Failed to read directory {path}: {e}")
            raise WorkspaceIOError(f"Failed to read directory: {e}", path=path) from e
        return sorted(entries, key=lambda entry: entry.name.lower())

    def path_exists(self, path: str) -> bool:
        return Path(path).exists()

    def get_default_project_root(self) -> str:
        return str(AppConfig(home=self.home).project_base)

    def allocate_next_project_folder(self, base_path: str) -> str:
        base = Path(base_path)
        self.create_directory(str(base))

        for counter in range(1, PROJECT_FOLDER_LIMIT + 1):
            project_path = base / f"{PROJECT_FOLDER_PREFIX}{counter}"
            if not project_path.exists():
                self.create_directory(str(project_path))
                logger.info(f"Allocated project folder {project_path}")
                return str(project_path)

        raise WorkspaceIOError("Too many projects", path=base_path)

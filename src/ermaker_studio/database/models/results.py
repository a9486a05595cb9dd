"""
Result models returned by the command boundary
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class DatabaseInfo:
    """A database visible through a connection."""
    name: str
    schemas: Optional[List[Dict[str, Any]]] = None
    tables: Optional[List[Dict[str, Any]]] = None


@dataclass
class QueryResult:
    """Result of a SQL execution."""
    columns: List[str] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    execution_time: float = 0.0
    error: Optional[str] = None


@dataclass
class DiagramRequest:
    """Payload of a diagram generation command."""
    type: str
    connection_string: Optional[str] = None
    sql: Optional[str] = None
    style: str = "chen"
    theme: str = "default"
    curve: str = "basis"


@dataclass
class DiagramResult:
    """Generated Mermaid code plus the schema it was built from."""
    mermaid_code: str
    schema: Any = None


@dataclass
class FileEntry:
    """Directory listing entry returned by the filesystem gateway."""
    name: str
    path: str
    is_directory: bool

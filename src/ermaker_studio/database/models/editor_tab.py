"""
Editor tab models - Open editing sessions for plain files and ER diagrams

A tab is either a FileTab or a DiagramTab; code that needs to tell them apart
dispatches on the class, never on an optional field.
"""
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Optional, Union

from ...constants import (
    DEFAULT_DIAGRAM_BACKGROUND,
    DEFAULT_DIAGRAM_CURVE,
    DEFAULT_DIAGRAM_STYLE,
    DEFAULT_DIAGRAM_THEME,
)

SOURCE_PLAIN_FILE = "plainFile"
SOURCE_DIAGRAM = "diagram"


@dataclass(frozen=True)
class DiagramSettings:
    """Rendering settings of an ER diagram."""
    style: str = DEFAULT_DIAGRAM_STYLE
    theme: str = DEFAULT_DIAGRAM_THEME
    curve: str = DEFAULT_DIAGRAM_CURVE
    background: str = DEFAULT_DIAGRAM_BACKGROUND

    def merged(self, **changes) -> "DiagramSettings":
        """Return a copy with the non-None changes applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


@dataclass
class FileTab:
    """Tab editing a SQL file, optionally linked to a workspace node."""
    id: str
    display_name: str
    content: str = ""
    dirty: bool = False
    file_id: Optional[str] = None
    file_path: Optional[str] = None

    source_kind: ClassVar[str] = SOURCE_PLAIN_FILE


@dataclass
class DiagramTab:
    """Tab showing the ER diagram generated for a connection / database."""
    id: str
    display_name: str
    connection_id: str
    database_name: Optional[str] = None
    content: str = ""
    dirty: bool = False
    settings: DiagramSettings = field(default_factory=DiagramSettings)
    schema: Optional[Any] = None

    source_kind: ClassVar[str] = SOURCE_DIAGRAM

    @property
    def dedup_key(self) -> tuple:
        return (self.connection_id, self.database_name)


EditorTab = Union[FileTab, DiagramTab]

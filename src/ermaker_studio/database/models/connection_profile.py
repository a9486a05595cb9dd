"""
ConnectionProfile model - Named database connection parameters
"""
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional
import uuid

from ...constants import (
    DEFAULT_DIAGRAM_CURVE,
    DEFAULT_DIAGRAM_STYLE,
    DEFAULT_DIAGRAM_THEME,
    default_port,
)

# Persisted (camelCase) key for each attribute that differs from its name
_PERSISTED_KEYS = {
    "db_type": "dbType",
    "connection_mode": "connectionMode",
    "connection_string": "connectionString",
}


@dataclass
class ConnectionProfile:
    """Database connection profile, in ``string`` or ``params`` mode."""
    id: str
    name: str
    db_type: str = "postgresql"
    connection_mode: str = "params"
    connection_string: Optional[str] = None
    host: Optional[str] = None
    port: Optional[str] = None
    database: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    # Stored diagram preferences, used to seed new diagram tabs
    style: Optional[str] = None
    theme: Optional[str] = None
    curve: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            self.id = str(uuid.uuid4())
        if self.connection_mode == "params" and not self.port:
            self.port = default_port(self.db_type)

    @property
    def diagram_style(self) -> str:
        return self.style or DEFAULT_DIAGRAM_STYLE

    @property
    def diagram_theme(self) -> str:
        return self.theme or DEFAULT_DIAGRAM_THEME

    @property
    def diagram_curve(self) -> str:
        return self.curve or DEFAULT_DIAGRAM_CURVE

    def to_dict(self, include_password: bool = True) -> Dict[str, Any]:
        """Serialize with the persisted camelCase keys, omitting unset fields."""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or (f.name == "password" and not include_password):
                continue
            data[_PERSISTED_KEYS.get(f.name, f.name)] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionProfile":
        """Build a profile from its persisted form. Unknown keys are ignored."""
        reverse = {v: k for k, v in _PERSISTED_KEYS.items()}
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = reverse.get(key, key)
            if name in known:
                kwargs[name] = value
        if "id" not in kwargs or "name" not in kwargs:
            raise KeyError("Connection profile requires 'id' and 'name'")
        return cls(**kwargs)

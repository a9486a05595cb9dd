"""
Connection Registry - Keyed store of named database connection profiles.
"""
from dataclasses import fields, replace
from typing import Iterable, List, Optional
import logging
import uuid

from PySide6.QtCore import QObject, Signal

from ..constants import (
    DEFAULT_DIAGRAM_CURVE,
    DEFAULT_DIAGRAM_STYLE,
    DEFAULT_DIAGRAM_THEME,
    LOCAL_SERVER_CONNECTION_NAME,
    LOCAL_SERVER_HOST,
    LOCAL_SERVER_PORT,
    LOCAL_SERVER_USER,
)
from ..database.models import ConnectionProfile
from ..errors import ValidationError
from ..utils.connection_helpers import build_connection_string, validate_profile
from ..utils.credential_manager import CredentialManager

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = {f.name for f in fields(ConnectionProfile)}


class ConnectionRegistry(QObject):
    """
    CRUD over ConnectionProfile, in insertion order.

    Signals:
        connection_added(str): profile id
        connection_updated(str): profile id
        connection_deleted(str): profile id
    """

    connection_added = Signal(str)
    connection_updated = Signal(str)
    connection_deleted = Signal(str)

    def __init__(self, profiles: Optional[Iterable[ConnectionProfile]] = None,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self._profiles: List[ConnectionProfile] = list(profiles or [])

    def __len__(self) -> int:
        return len(self._profiles)

    def all(self) -> List[ConnectionProfile]:
        return list(self._profiles)

    def get(self, connection_id: str) -> Optional[ConnectionProfile]:
        for profile in self._profiles:
            if profile.id == connection_id:
                return profile
        return None

    def require(self, connection_id: str) -> ConnectionProfile:
        profile = self.get(connection_id)
        if profile is None:
            raise ValidationError(f"Connection not found: {connection_id}", field="connectionId")
        return profile

    def find_by_name(self, name: str) -> Optional[ConnectionProfile]:
        """Case-insensitive lookup by name."""
        wanted = (name or "").strip().lower()
        for profile in self._profiles:
            if profile.name.strip().lower() == wanted:
                return profile
        return None

    def add(self, name: str, **values) -> ConnectionProfile:
        """
        Create a profile with a new id.

        The default port for the db type is filled in when none is given.
        """
        values.pop("id", None)
        self._check_fields(values)
        profile = ConnectionProfile(id=str(uuid.uuid4()), name=name, **values)
        self._profiles.append(profile)
        logger.info(f"Connection added: {profile.name}")
        self.connection_added.emit(profile.id)
        return profile

    def update(self, connection_id: str, **changes) -> ConnectionProfile:
        """Merge fields into the profile with this id."""
        changes.pop("id", None)
        self._check_fields(changes)
        index = self._index_of(connection_id)
        profile = replace(self._profiles[index], **changes)
        self._profiles[index] = profile
        self.connection_updated.emit(profile.id)
        return profile

    def delete(self, connection_id: str) -> bool:
        """Remove a profile. Returns False if the id is unknown."""
        profile = self.get(connection_id)
        if profile is None:
            return False
        self._profiles.remove(profile)
        CredentialManager.delete_password(connection_id)
        logger.info(f"Connection deleted: {profile.name}")
        self.connection_deleted.emit(connection_id)
        return True

    def validate(self, profile: ConnectionProfile):
        """Raise ValidationError if the profile cannot be saved."""
        validate_profile(profile)

    def connection_string(self, connection_id: str, database: Optional[str] = None) -> str:
        """URL of a stored profile, optionally pointing at another database."""
        return build_connection_string(self.require(connection_id), database)

    def save_named(self, profile: ConnectionProfile) -> ConnectionProfile:
        """
        Validate and store a profile, overwriting any profile whose name
        matches case-insensitively. The overwritten profile keeps its id.
        """
        validate_profile(profile)
        profile = replace(profile, name=profile.name.strip())
        existing = self.find_by_name(profile.name)
        if existing is not None:
            stored = replace(profile, id=existing.id)
            self._profiles[self._index_of(existing.id)] = stored
            logger.info(f"Connection overwritten: {stored.name}")
            self.connection_updated.emit(stored.id)
            return stored

        stored = replace(profile, id=profile.id or str(uuid.uuid4()))
        if self.get(stored.id) is not None:
            stored = replace(stored, id=str(uuid.uuid4()))
        self._profiles.append(stored)
        self.connection_added.emit(stored.id)
        return stored

    def ensure_local_server_connection(self) -> ConnectionProfile:
        """Return the bundled MariaDB server profile, creating it if missing."""
        port = str(LOCAL_SERVER_PORT)
        for profile in self._profiles:
            if (profile.db_type == "mariadb"
                    and (profile.host or "") == LOCAL_SERVER_HOST
                    and (profile.port or "") == port):
                return profile

        return self.add(
            LOCAL_SERVER_CONNECTION_NAME,
            db_type="mariadb",
            connection_mode="params",
            host=LOCAL_SERVER_HOST,
            port=port,
            database="",
            user=LOCAL_SERVER_USER,
            password="",
            style=DEFAULT_DIAGRAM_STYLE,
            theme=DEFAULT_DIAGRAM_THEME,
            curve=DEFAULT_DIAGRAM_CURVE,
        )

    def _index_of(self, connection_id: str) -> int:
        for index, profile in enumerate(self._profiles):
            if profile.id == connection_id:
                return index
        raise ValidationError(f"Connection not found: {connection_id}", field="connectionId")

    @staticmethod
    def _check_fields(values: dict):
        unknown = set(values) - _PROFILE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown connection field(s): {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0])

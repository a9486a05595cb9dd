"""
Connection helpers - Validation and URL building for connection profiles.
"""

import logging
from typing import Optional
from urllib.parse import quote, urlsplit

from ..constants import CONNECTION_MODES, DB_TYPES, default_port
from ..database.models import ConnectionProfile
from ..errors import ValidationError

logger = logging.getLogger(__name__)

# URL scheme used by the diagram generator for each database type
_URL_SCHEMES = {
    "postgresql": "postgresql",
    "mysql": "mysql",
    "mariadb": "mysql",
    "mssql": "mssql",
}

# Generator "type" field for each database type
_GENERATOR_TYPES = {
    "postgresql": "postgres",
}


def parse_connection_url(url: str) -> dict:
    """
    Split a connection URL into its parts.

    Raises:
        ValidationError: if the URL has no scheme or no host/path
    """
    try:
        parts = urlsplit((url or "").strip())
        port = parts.port
    except ValueError as e:
        raise ValidationError(f"Invalid connection string: {e}", field="connectionString") from e

    if not parts.scheme or not (parts.netloc or parts.path):
        raise ValidationError("Invalid connection string.", field="connectionString")

    return {
        "scheme": parts.scheme,
        "host": parts.hostname,
        "port": str(port) if port else None,
        "user": parts.username,
        "password": parts.password,
        "database": parts.path.lstrip("/") or None,
    }


def validate_profile(profile: ConnectionProfile):
    """
    Check the fields a connection form requires before testing or saving.

    Raises:
        ValidationError: naming the offending field
    """
    if not (profile.name or "").strip():
        raise ValidationError("Name is required", field="name")
    if profile.db_type not in DB_TYPES:
        raise ValidationError(f"Unsupported database type: {profile.db_type}", field="dbType")
    if profile.connection_mode not in CONNECTION_MODES:
        raise ValidationError(
            f"Unknown connection mode: {profile.connection_mode}", field="connectionMode")

    if profile.connection_mode == "string":
        if not (profile.connection_string or "").strip():
            raise ValidationError("Connection string is required", field="connectionString")
        parsed = parse_connection_url(profile.connection_string)
        if profile.db_type == "postgresql" and not parsed["database"]:
            raise ValidationError(
                "Connection string must include a database for PostgreSQL.",
                field="connectionString")
    else:
        if profile.db_type == "sqlite":
            if not (profile.database or "").strip():
                raise ValidationError("Database file is required for SQLite.", field="database")
        elif profile.db_type == "postgresql" and not (profile.database or "").strip():
            raise ValidationError("Database name is required for PostgreSQL.", field="database")
        if profile.port and not str(profile.port).isdigit():
            raise ValidationError("Port must be a number", field="port")


def build_connection_string(profile: ConnectionProfile, database: Optional[str] = None) -> str:
    """
    Build the URL handed to the diagram generator / query runner.

    Args:
        profile: Connection profile
        database: Database overriding the profile's own (diagram per database)
    """
    if profile.connection_mode == "string":
        url = profile.connection_string or ""
        if database:
            parts = urlsplit(url)
            url = parts._replace(path="/" + quote(database, safe="")).geturl()
        return url

    db_name = database or profile.database or ""
    if profile.db_type == "sqlite":
        return f"sqlite:///{db_name}"

    scheme = _URL_SCHEMES.get(profile.db_type, profile.db_type)
    host = profile.host or "localhost"
    port = profile.port or default_port(profile.db_type)
    auth = ""
    if profile.user:
        auth = quote(profile.user, safe="")
        if profile.password:
            auth += ":" + quote(profile.password, safe="")
        auth += "@"
    netloc = f"{auth}{host}:{port}" if port else f"{auth}{host}"
    return f"{scheme}://{netloc}/{quote(db_name, safe='')}"


def generator_type(db_type: str) -> str:
    """Map a profile db_type to the diagram generator's type field."""
    return _GENERATOR_TYPES.get(db_type, db_type)

"""
Remote Error Handler - User-friendly messages for collaborator failures

Translates raw driver / command error messages into a short title, message
and suggestion that a panel or log line can display.
"""

import re
from dataclasses import dataclass


@dataclass
class RemoteErrorInfo:
    """Structured remote error information."""
    title: str
    message: str
    suggestion: str     # empty when there is nothing to suggest
    original_error: str

    def format_full(self) -> str:
        """Multi-line text for a message box."""
        parts = [self.title, "", self.message]
        if self.suggestion:
            parts.extend(["", "Suggestion:", self.suggestion])
        return "\n".join(parts)

    def format_short(self) -> str:
        """One line for a status bar or log."""
        return f"{self.title}: {self.message}"


# Entries are (regex, title, message, suggestion); "{match}" in the message
# is replaced by the first regex group.

POSTGRESQL_PATTERNS = [
    (
        r"password authentication failed for user ['\"]?(\w+)['\"]?",
        "Authentication failed",
        "Wrong password for user '{match}'.",
        "Check the password or ask the administrator to reset it."
    ),
    (
        r"database ['\"]?(\w+)['\"]? does not exist",
        "Unknown database",
        "The database '{match}' does not exist.",
        "Check the database name or create it first."
    ),
    (
        r"role ['\"]?(\w+)['\"]? does not exist",
        "Unknown user",
        "The user '{match}' does not exist on the server.",
        "Check the user name."
    ),
]

MYSQL_PATTERNS = [
    (
        r"access denied for user ['\"]?([\w@.%'-]+?)['\"]?(?:\s|$|\()",
        "Authentication failed",
        "The server rejected the credentials for {match}.",
        "Check the user name and password."
    ),
    (
        r"unknown database ['\"]?(\w+)['\"]?",
        "Unknown database",
        "The database '{match}' does not exist.",
        "Check the database name or leave it empty to browse all databases."
    ),
]

SQLITE_PATTERNS = [
    (
        r"(?:unable to open|no such file)",
        "File not found",
        "The SQLite database file does not exist.",
        "Check the path of the .db / .sqlite file."
    ),
    (
        r"database is locked",
        "Database locked",
        "The database is used by another process.",
        "Close the other applications using this file and retry."
    ),
]

MSSQL_PATTERNS = [
    (
        r"Login failed for user ['\"]?(\w+)['\"]?",
        "Authentication failed",
        "User '{match}' could not log in.",
        "Check the user name and password."
    ),
]

GENERIC_PATTERNS = [
    (
        r"(?:timeout|timed out)",
        "Timeout",
        "The server did not answer in time.",
        "Check the network connection and retry."
    ),
    (
        r"(?:connection refused|actively refused|could not connect)",
        "Connection refused",
        "The server refused the connection.",
        "Check that the database server is running and listening on the right port."
    ),
    (
        r"(?:could not translate host name|host not found|name or service not known)",
        "Host not found",
        "The server host could not be resolved.",
        "Check the host name or IP address."
    ),
]

_PATTERNS_BY_TYPE = {
    "postgresql": POSTGRESQL_PATTERNS,
    "mysql": MYSQL_PATTERNS,
    "mariadb": MYSQL_PATTERNS,
    "sqlite": SQLITE_PATTERNS,
    "mssql": MSSQL_PATTERNS,
}


def parse_remote_error(error, db_type: str = "") -> RemoteErrorInfo:
    """
    Parse a collaborator error and return user-friendly information.

    Args:
        error: The exception (or message) that occurred
        db_type: Database type key, empty to try every pattern table

    Returns:
        RemoteErrorInfo with user-friendly message and suggestion
    """
    original_error = str(error)

    if db_type in _PATTERNS_BY_TYPE:
        patterns = _PATTERNS_BY_TYPE[db_type] + GENERIC_PATTERNS
    else:
        patterns = []
        for table in (POSTGRESQL_PATTERNS, MYSQL_PATTERNS, SQLITE_PATTERNS, MSSQL_PATTERNS):
            patterns.extend(table)
        patterns.extend(GENERIC_PATTERNS)

    for pattern, title, message_template, suggestion in patterns:
        match = re.search(pattern, original_error, re.IGNORECASE)
        if match:
            message = message_template
            if "{match}" in message and match.groups():
                message = message.replace("{match}", match.group(1))
            return RemoteErrorInfo(
                title=title,
                message=message,
                suggestion=suggestion,
                original_error=original_error
            )

    return RemoteErrorInfo(
        title="Command failed",
        message=original_error or "An unknown error occurred.",
        suggestion="",
        original_error=original_error
    )


def format_remote_error(error, db_type: str = "") -> str:
    """Format a collaborator error as a single human-readable message."""
    info = parse_remote_error(error, db_type)
    if info.title == "Command failed":
        return info.message
    return info.format_short()

"""
Credential Manager - Connection passwords kept in the system keyring

Passwords never enter the stored snapshot. They are saved per connection id
in the platform credential store:

- Windows: Windows Credential Manager
- macOS: Keychain
- Linux: Secret Service (freedesktop.org)
"""
from typing import Optional
import logging

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)


class CredentialManager:
    """Static accessors over the keyring, keyed by connection id."""

    SERVICE_NAME = "ermaker-studio"

    @staticmethod
    def _key(connection_id: str) -> str:
        return f"db:{connection_id}:password"

    @staticmethod
    def save_password(connection_id: str, password: str) -> bool:
        """
        Store the password of a connection.

        Returns:
            True if saved, False if the keyring refused it
        """
        try:
            keyring.set_password(CredentialManager.SERVICE_NAME,
                                 CredentialManager._key(connection_id), password)
            logger.debug(f"Password saved for connection {connection_id}")
            return True
        except KeyringError as e:
            logger.error(f"Failed to save password for {connection_id}: {e}")
            return False

    @staticmethod
    def get_password(connection_id: str) -> Optional[str]:
        """Stored password of a connection, or None."""
        try:
            return keyring.get_password(CredentialManager.SERVICE_NAME,
                                        CredentialManager._key(connection_id))
        except KeyringError as e:
            logger.error(f"Failed to read password for {connection_id}: {e}")
            return None

    @staticmethod
    def delete_password(connection_id: str) -> bool:
        """
        Forget the password of a connection.

        Returns:
            True if nothing remains stored, False on keyring failure
        """
        try:
            keyring.delete_password(CredentialManager.SERVICE_NAME,
                                    CredentialManager._key(connection_id))
            logger.debug(f"Password deleted for connection {connection_id}")
        except PasswordDeleteError:
            pass  # nothing stored
        except KeyringError as e:
            logger.error(f"Failed to delete password for {connection_id}: {e}")
            return False
        return True

"""
Application configuration - Locations of durable storage and projects
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import os

from .constants import DEFAULT_PROJECT_BASE_NAME

HOME_ENV_VAR = "ERMAKER_HOME"
APP_CONFIG_DIR = "_AppConfig"
STORAGE_FILE = "storage.db"
LOG_DIR = "logs"


@dataclass
class AppConfig:
    """
    Resolved paths of the application.

    ``home`` defaults to the user's home directory; the ERMAKER_HOME
    environment variable overrides it (portable installs, tests).
    """
    home: Path
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, home: Optional[Path] = None) -> "AppConfig":
        if home is None:
            env_home = os.environ.get(HOME_ENV_VAR)
            home = Path(env_home) if env_home else Path.home()
        log_level = os.environ.get("ERMAKER_LOG_LEVEL", "INFO").upper()
        return cls(home=Path(home), log_level=log_level)

    @property
    def config_dir(self) -> Path:
        return self.home / APP_CONFIG_DIR

    @property
    def storage_path(self) -> Path:
        return self.config_dir / STORAGE_FILE

    @property
    def log_dir(self) -> Path:
        return self.config_dir / LOG_DIR

    @property
    def project_base(self) -> Path:
        """Documents/ERMaker when a Documents folder exists, else ~/ERMaker."""
        documents = self.home / "Documents"
        base = documents if documents.is_dir() else self.home
        return base / DEFAULT_PROJECT_BASE_NAME

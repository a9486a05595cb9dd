"""
ERMaker Studio - SQL editor and ER diagram workspace
PySide6 Edition
"""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("ermaker-studio")
except PackageNotFoundError:
    # Package not installed
    __version__ = "0.3.0"

from .app_state import AppState, get_app_state, reset_app_state

__all__ = ["AppState", "get_app_state", "reset_app_state", "__version__"]

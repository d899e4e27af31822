"""
Name: postflow.client (Package exports)

Responsibilities:
  - Single import point for the asyncio client SDK
"""

from .api_client import AuthApiClient, PasswordSetupRequired
from .config import ClientSettings
from .errors import ApiError, SessionExpiredError
from .monitor import MonitorPolicy, SessionMonitor, SessionPhase
from .session import ClientSession, FileSessionStore, MemorySessionStore

__all__ = [
    "ApiError",
    "AuthApiClient",
    "ClientSession",
    "ClientSettings",
    "FileSessionStore",
    "MemorySessionStore",
    "MonitorPolicy",
    "PasswordSetupRequired",
    "SessionExpiredError",
    "SessionMonitor",
    "SessionPhase",
]

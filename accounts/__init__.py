"""Google account sign-in and credential handling."""

from .models import Credential
from .storage import ITokenStorage, JSONTokenStorage, MemoryTokenStorage
from .manager import AccountManager, DRIVE_SCOPES, load_client_config

__all__ = [
    "AccountManager",
    "Credential",
    "DRIVE_SCOPES",
    "ITokenStorage",
    "JSONTokenStorage",
    "MemoryTokenStorage",
    "load_client_config",
]

"""Auth module - credentials, token lifecycle and secure password storage."""

from .context import AuthContext, Credentials, WhistleShutdownError
from .keychain import KeychainManager
from .manager import AuthManager

__all__ = [
    "AuthContext",
    "AuthManager",
    "Credentials",
    "KeychainManager",
    "WhistleShutdownError",
]

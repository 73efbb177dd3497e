"""Service layer exports."""

from .auth_session import AuthSessionService
from .credential_store import CredentialStore
from .token_cipher import TokenCipherService, TokenDecryptionError

__all__ = [
    "AuthSessionService",
    "CredentialStore",
    "TokenCipherService",
    "TokenDecryptionError",
]

"""Commitment and secret store"""

from .exceptions import SecretDecryptionError, SecretNotInitialized
from .store import EncryptedSecret, SecretKey, SecretStore, commit, random_salt

__all__ = [
    "EncryptedSecret",
    "SecretDecryptionError",
    "SecretKey",
    "SecretNotInitialized",
    "SecretStore",
    "commit",
    "random_salt",
]

# ABOUTME: Exception definitions for the commitment / secret store layer.
# ABOUTME: Decryption failures are fatal for the session and never fall back to defaults.


class SecretDecryptionError(Exception):
    """Raised when an encrypted secret cannot be authenticated or decoded"""

    pass


class SecretNotInitialized(Exception):
    """Raised when the store is read before a secret has been stored"""

    pass

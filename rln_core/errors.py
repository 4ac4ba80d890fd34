"""
rln_core.errors
---------------
Exception types for keystore and membership operations.

Keystore reads raise; coordinator operations catch these and reduce them to
result objects (see rln_core.results).
"""


class RLNError(Exception):
    pass


class KeystoreError(RLNError):
    pass


class DecryptionFailed(KeystoreError):
    """Wrong password or tampered entry.

    Both cases carry the same message; callers must not be able to tell
    them apart.
    """

    def __init__(self, message: str = "Could not decrypt credential. Please check your password and try again."):
        super().__init__(message)


class CredentialNotFound(DecryptionFailed):
    def __init__(self, credential_hash: str = ""):
        super().__init__(f"Credential not found: {credential_hash[:8]}")
        self.credential_hash = credential_hash


class NotInitialized(KeystoreError):
    def __init__(self, message: str = "Keystore not initialized"):
        super().__init__(message)


class StorageCorruption(KeystoreError):
    pass


class KeystoreImportError(KeystoreError):
    pass


class PreconditionNotMet(RLNError):
    pass


class InvalidTransition(RLNError):
    pass


class ChainInteractionError(RLNError):
    pass


class TransactionFailed(ChainInteractionError):
    """Transaction was mined but reverted."""
    pass

"""
RLN Core Package
================
Credential storage and membership lifecycle primitives for rate-limited
anonymous messaging (RLN) on a single configured chain.

Provides:
- Password-encrypted, hash-addressed credential keystore (scrypt + AES-GCM)
- Credential vault with alias labels and single-writer persistence
- Membership lifecycle coordinator (register, extend, erase, withdraw)
- Pluggable key-value storage (SQLite default)
"""

from .errors import (
    RLNError,
    KeystoreError,
    DecryptionFailed,
    CredentialNotFound,
    NotInitialized,
    StorageCorruption,
    KeystoreImportError,
    PreconditionNotMet,
    InvalidTransition,
    ChainInteractionError,
)
from .models import Identity, MembershipRecord, MembershipState, Credential
from .keystore import Keystore
from .vault import CredentialVault
from .coordinator import MembershipCoordinator

__all__ = [
    "RLNError",
    "KeystoreError",
    "DecryptionFailed",
    "CredentialNotFound",
    "NotInitialized",
    "StorageCorruption",
    "KeystoreImportError",
    "PreconditionNotMet",
    "InvalidTransition",
    "ChainInteractionError",
    "Identity",
    "MembershipRecord",
    "MembershipState",
    "Credential",
    "Keystore",
    "CredentialVault",
    "MembershipCoordinator",
]

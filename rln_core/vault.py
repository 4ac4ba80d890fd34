"""
rln_core.vault
--------------
CredentialVault owns the session's Keystore and AliasMap and keeps them in
sync with durable storage.

Every mutation runs under one lock, is staged on a copy, written to storage
in a single call and only then swapped in, so the in-memory state and the
stored form are never observed apart.
"""

from __future__ import annotations
from typing import Dict, List, Optional
import threading

from .aliases import AliasMap
from .config import KdfParams
from .constants import STORAGE_KEY_KEYSTORE, STORAGE_KEY_ALIASES
from .errors import CredentialNotFound, KeystoreError, NotInitialized, StorageCorruption
from .keystore import Keystore
from .logger import get_logger
from .models import Credential
from .storage import StorageProvider
from .utils import short_hash

log = get_logger("RLN.Vault")


class CredentialVault:
    def __init__(self, storage: StorageProvider, kdf_params: Optional[KdfParams] = None):
        self.storage = storage
        self.kdf_params = kdf_params
        self._keystore: Optional[Keystore] = None
        self._aliases = AliasMap()
        self._lock = threading.RLock()
        self.error: Optional[str] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def load(self) -> Keystore:
        """Load from storage; a corrupt stored keystore is replaced by an empty one."""
        with self._lock:
            try:
                keystore = self._read_stored_keystore()
            except StorageCorruption as e:
                log.warning(f"[VAULT] {e}, starting with an empty keystore")
                keystore = Keystore.create(kdf_params=self.kdf_params)

            aliases = AliasMap.from_json(self.storage.get(STORAGE_KEY_ALIASES))
            dropped = aliases.prune(keystore.keys())
            if dropped:
                log.info(f"[VAULT] dropped {dropped} alias(es) for missing credentials")

            self._keystore = keystore
            self._aliases = aliases
            self.error = None
            log.info(f"[VAULT] loaded keystore with {len(keystore)} credential(s)")
            return keystore

    @property
    def is_initialized(self) -> bool:
        return self._keystore is not None

    @property
    def keystore(self) -> Keystore:
        return self._require_keystore()

    @property
    def stored_hashes(self) -> List[str]:
        return self._keystore.keys() if self._keystore else []

    @property
    def has_stored_credentials(self) -> bool:
        return len(self.stored_hashes) > 0

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------
    def save_credentials(self, credential: Credential, password: str) -> str:
        with self._lock:
            keystore = self._require_keystore().copy()
            h = keystore.add_credential(credential, password)
            self._commit(keystore, self._aliases)
            return h

    def get_decrypted_credential(self, credential_hash: str, password: str) -> Credential:
        keystore = self._require_keystore()
        return keystore.read_credential(credential_hash, password)

    def export_credential(self, credential_hash: str, password: str) -> Keystore:
        keystore = self._require_keystore()
        single = keystore.export_credential(credential_hash, password)
        log.info(f"[VAULT] exported credential {short_hash(credential_hash)}")
        return single

    def export_keystore(self, password: str) -> str:
        """Encoded form of the whole keystore, after checking the password on the first entry."""
        keystore = self._require_keystore()
        hashes = keystore.keys()
        if not hashes:
            raise KeystoreError("No credentials to export")
        keystore.read_credential(hashes[0], password)
        return keystore.to_encoded()

    def import_keystore(self, keystore: Keystore) -> bool:
        with self._lock:
            aliases = self._aliases.copy()
            aliases.prune(keystore.keys())
            try:
                self._commit(keystore, aliases)
            except Exception as e:
                log.exception(f"[VAULT] import failed: {e}")
                self.error = str(e) or "Failed to import keystore"
                return False
        log.info(f"[VAULT] imported keystore with {len(keystore)} credential(s)")
        return True

    def remove_credential(self, credential_hash: str) -> None:
        with self._lock:
            keystore = self._require_keystore().copy()
            aliases = self._aliases.copy()
            keystore.remove_credential(credential_hash)
            aliases.remove(credential_hash)
            self._commit(keystore, aliases)

    # ------------------------------------------------------------------
    # Aliases
    # ------------------------------------------------------------------
    def set_alias(self, credential_hash: str, label: str) -> None:
        with self._lock:
            keystore = self._require_keystore()
            if credential_hash not in keystore:
                raise CredentialNotFound(credential_hash)
            aliases = self._aliases.copy()
            aliases.set(credential_hash, label)
            self._commit(keystore, aliases)

    def get_alias(self, credential_hash: str) -> Optional[str]:
        return self._aliases.get(credential_hash)

    def aliases(self) -> Dict[str, str]:
        return self._aliases.as_dict()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _read_stored_keystore(self) -> Keystore:
        raw = self.storage.get(STORAGE_KEY_KEYSTORE)
        if not raw:
            return Keystore.create(kdf_params=self.kdf_params)
        keystore = Keystore.from_encoded(raw, kdf_params=self.kdf_params)
        if keystore is None:
            raise StorageCorruption("stored keystore is corrupt")
        return keystore

    def _require_keystore(self) -> Keystore:
        if self._keystore is None:
            raise NotInitialized()
        return self._keystore

    def _commit(self, keystore: Keystore, aliases: AliasMap) -> None:
        """Write both in one storage call, then swap them in. Nothing changes if the write fails."""
        self.storage.put_many({
            STORAGE_KEY_KEYSTORE: keystore.to_encoded(),
            STORAGE_KEY_ALIASES: aliases.to_json(),
        })
        self._keystore = keystore
        self._aliases = aliases

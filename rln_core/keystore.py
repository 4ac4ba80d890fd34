"""
rln_core.keystore
-----------------
Defines the Keystore: a hash-addressed map of password-encrypted RLN
credentials with a portable JSON encoding.

Encoded form:

    {"application": "waku-rln-relay",
     "appIdentifier": "01234567890abcdef",
     "version": "0.2",
     "credentials": {"<hash>": {"crypto": {...}}}}

Each entry is sealed independently (own salt, own IV), so entries may be
encrypted under different passwords.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Union
import json

from .config import KdfParams
from .constants import (
    KEYSTORE_APPLICATION,
    KEYSTORE_APP_IDENTIFIER,
    KEYSTORE_VERSION,
    SUPPORTED_KEYSTORE_VERSIONS,
)
from .crypto import (
    compute_membership_hash,
    encrypt_credential,
    decrypt_credential,
    is_valid_crypto_section,
    is_valid_membership_hash,
)
from .errors import CredentialNotFound
from .logger import get_logger
from .models import Credential
from .utils import short_hash

log = get_logger("RLN.Keystore")


class Keystore:
    def __init__(self, entries: Optional[Dict[str, Dict[str, Any]]] = None,
                 kdf_params: Optional[KdfParams] = None):
        self._entries: Dict[str, Dict[str, Any]] = dict(entries or {})
        self.kdf_params = kdf_params or KdfParams()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def create(cls, kdf_params: Optional[KdfParams] = None) -> "Keystore":
        return cls(kdf_params=kdf_params)

    @classmethod
    def from_encoded(cls, blob: Union[str, bytes, None],
                     kdf_params: Optional[KdfParams] = None) -> Optional["Keystore"]:
        """
        Parse an encoded keystore. Returns None for anything structurally
        invalid (bad JSON, foreign application, unsupported version,
        malformed entries); never raises.
        """
        if blob is None:
            return None
        try:
            if isinstance(blob, bytes):
                blob = blob.decode("utf-8")
            data = json.loads(blob)
        except (UnicodeDecodeError, ValueError):
            log.warning("[KEYSTORE] encoded keystore is not valid JSON")
            return None

        if not isinstance(data, dict):
            return None
        if data.get("application") != KEYSTORE_APPLICATION:
            log.warning(f"[KEYSTORE] unexpected application: {data.get('application')!r}")
            return None
        if data.get("version") not in SUPPORTED_KEYSTORE_VERSIONS:
            log.warning(f"[KEYSTORE] unsupported version: {data.get('version')!r}")
            return None

        credentials = data.get("credentials")
        if not isinstance(credentials, dict):
            return None
        for h, entry in credentials.items():
            if not is_valid_membership_hash(h):
                log.warning(f"[KEYSTORE] malformed credential key {short_hash(str(h))!r}")
                return None
            if not isinstance(entry, dict) or not is_valid_crypto_section(entry.get("crypto")):
                log.warning(f"[KEYSTORE] malformed entry {short_hash(str(h))}")
                return None

        return cls(entries=credentials, kdf_params=kdf_params)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    def add_credential(self, credential: Credential, password: str) -> str:
        """
        Encrypt and store a credential, returning its hash. A credential that
        is already present under the same hash is overwritten.
        """
        h = compute_membership_hash(credential)
        if h in self._entries:
            log.warning(f"[KEYSTORE] overwriting existing entry {short_hash(h)}")
        crypto = encrypt_credential(credential, password, self.kdf_params, aad=h.encode("utf-8"))
        self._entries[h] = {"crypto": crypto}
        log.info(f"[KEYSTORE] added credential {short_hash(h)}")
        return h

    def read_credential(self, credential_hash: str, password: str) -> Credential:
        entry = self._entries.get(credential_hash)
        if entry is None:
            raise CredentialNotFound(credential_hash)
        return decrypt_credential(entry["crypto"], password, aad=credential_hash.encode("utf-8"))

    def remove_credential(self, credential_hash: str) -> None:
        if self._entries.pop(credential_hash, None) is not None:
            log.info(f"[KEYSTORE] removed credential {short_hash(credential_hash)}")

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def copy(self) -> "Keystore":
        return Keystore(entries=self._entries, kdf_params=self.kdf_params)

    def export_credential(self, credential_hash: str, password: str,
                          new_password: Optional[str] = None) -> "Keystore":
        """Standalone one-entry keystore holding a re-encrypted copy of the credential."""
        credential = self.read_credential(credential_hash, password)
        single = Keystore.create(kdf_params=self.kdf_params)
        single.add_credential(credential, new_password or password)
        return single

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "application": KEYSTORE_APPLICATION,
            "appIdentifier": KEYSTORE_APP_IDENTIFIER,
            "version": KEYSTORE_VERSION,
            "credentials": dict(self._entries),
        }

    def to_encoded(self) -> str:
        return json.dumps(self.to_dict())

    def __str__(self) -> str:
        return self.to_encoded()

    def __contains__(self, credential_hash: object) -> bool:
        return credential_hash in self._entries

    def __len__(self) -> int:
        return len(self._entries)

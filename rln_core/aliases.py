# rln_core/aliases.py
from __future__ import annotations
from typing import Dict, Iterable, Optional
import json

from .logger import get_logger

log = get_logger("RLN.Aliases")


class AliasMap:
    """
    User-chosen display labels keyed by credential hash.

    Persisted as a JSON object next to the encoded keystore. The owner
    (CredentialVault) keeps every key pointing at a hash that is present in
    the keystore.
    """

    def __init__(self, labels: Optional[Dict[str, str]] = None):
        self._labels: Dict[str, str] = dict(labels or {})

    @classmethod
    def from_json(cls, raw: Optional[str]) -> "AliasMap":
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
        except ValueError:
            log.warning("[ALIASES] stored alias map is not valid JSON, starting empty")
            return cls()
        if not isinstance(data, dict):
            log.warning("[ALIASES] stored alias map is not an object, starting empty")
            return cls()
        return cls({str(k): v for k, v in data.items() if isinstance(v, str)})

    def to_json(self) -> str:
        return json.dumps(self._labels, sort_keys=True)

    def get(self, credential_hash: str) -> Optional[str]:
        return self._labels.get(credential_hash)

    def set(self, credential_hash: str, label: str) -> None:
        label = label.strip()
        if label:
            self._labels[credential_hash] = label
        else:
            self._labels.pop(credential_hash, None)

    def remove(self, credential_hash: str) -> None:
        self._labels.pop(credential_hash, None)

    def prune(self, valid_hashes: Iterable[str]) -> int:
        """Drop labels whose hash is not in valid_hashes. Returns the number dropped."""
        valid = set(valid_hashes)
        stale = [h for h in self._labels if h not in valid]
        for h in stale:
            del self._labels[h]
        return len(stale)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._labels)

    def copy(self) -> "AliasMap":
        return AliasMap(self._labels)

    def __contains__(self, credential_hash: object) -> bool:
        return credential_hash in self._labels

    def __len__(self) -> int:
        return len(self._labels)

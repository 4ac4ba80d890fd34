"""
rln_core.exporter
-----------------
Keystore file export/import. A multi-entry keystore is written as
waku-rln-keystore.json; a single credential as
waku-rln-credential-<hash prefix>.json.
"""

from __future__ import annotations
from pathlib import Path
from typing import Union

from .constants import EXPORT_FILENAME_KEYSTORE, EXPORT_FILENAME_CREDENTIAL
from .errors import KeystoreImportError
from .keystore import Keystore
from .logger import get_logger
from .utils import short_hash

log = get_logger("RLN.Exporter")


def export_filename(keystore: Keystore) -> str:
    keys = keystore.keys()
    if len(keys) == 1:
        return EXPORT_FILENAME_CREDENTIAL.format(prefix=short_hash(keys[0]))
    return EXPORT_FILENAME_KEYSTORE


def save_keystore_to_file(keystore: Keystore, directory: Union[str, Path] = ".") -> Path:
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(keystore)
    path.write_text(keystore.to_encoded(), encoding="utf-8")
    log.info(f"[EXPORT] wrote {len(keystore)} credential(s) to {path}")
    return path


def read_keystore_from_file(path: Union[str, Path]) -> Keystore:
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise KeystoreImportError(f"Failed to read file: {e}") from e

    keystore = Keystore.from_encoded(content)
    if keystore is None:
        raise KeystoreImportError(f"Invalid keystore file format: {path.name}")
    return keystore

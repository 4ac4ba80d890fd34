# tests/test_exporter.py

import pytest

from rln_core.errors import KeystoreImportError
from rln_core.exporter import export_filename, read_keystore_from_file, save_keystore_to_file
from rln_core.keystore import Keystore
from fakes import FAST_KDF, make_credential


def test_single_credential_file_name_uses_hash_prefix(tmp_path):
    ks = Keystore.create(kdf_params=FAST_KDF)
    h = ks.add_credential(make_credential(), "pw")

    path = save_keystore_to_file(ks, tmp_path)

    assert path.name == f"waku-rln-credential-{h[:8]}.json"
    assert read_keystore_from_file(path).keys() == [h]


def test_full_keystore_file_name():
    ks = Keystore.create(kdf_params=FAST_KDF)
    ks.add_credential(make_credential("alice", 0), "pw")
    ks.add_credential(make_credential("bob", 1), "pw")
    assert export_filename(ks) == "waku-rln-keystore.json"


def test_saved_file_decrypts(tmp_path):
    ks = Keystore.create(kdf_params=FAST_KDF)
    h = ks.add_credential(make_credential(), "pw1234567")

    restored = read_keystore_from_file(save_keystore_to_file(ks, tmp_path / "out"))

    assert restored.read_credential(h, "pw1234567") == make_credential()


def test_invalid_file_is_rejected(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text('{"application": "something-else"}', encoding="utf-8")

    with pytest.raises(KeystoreImportError, match="Invalid keystore file format"):
        read_keystore_from_file(bad)


def test_missing_file_is_rejected(tmp_path):
    with pytest.raises(KeystoreImportError, match="Failed to read file"):
        read_keystore_from_file(tmp_path / "nope.json")

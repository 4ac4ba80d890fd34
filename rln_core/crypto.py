"""
rln_core.crypto
---------------
Password-based sealing of keystore entries:

- scrypt: memory-hard key derivation, fresh salt per entry
- AES-256-GCM: authenticated encryption, fresh IV per entry; the GCM tag is
  stored separately as "mac"
- compute_membership_hash(): password-independent content hash that addresses
  an entry inside the keystore
"""

from __future__ import annotations
from typing import Tuple, Optional, Dict, Any
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
import os, json, re

from .config import KdfParams
from .constants import CIPHER_NAME, KDF_NAME, KEY_LEN, SALT_LEN, IV_LEN, TAG_LEN
from .errors import DecryptionFailed
from .models import Credential
from .utils import canonical_json, sha256

MEMBERSHIP_HASH_RE = re.compile(r"[0-9a-f]{64}")


# --------- scrypt ----------
def derive_key(password: str, salt: bytes, params: KdfParams, dklen: int = KEY_LEN) -> bytes:
    kdf = Scrypt(salt=salt, length=dklen, n=params.n, r=params.r, p=params.p)
    return kdf.derive(password.encode("utf-8"))


# --------- AES-GCM ----------
def aead_encrypt(key: bytes, plaintext: bytes, aad: Optional[bytes] = None) -> Tuple[bytes, bytes, bytes]:
    """Returns (iv, ciphertext, tag)."""
    aes = AESGCM(key)
    iv = os.urandom(IV_LEN)
    sealed = aes.encrypt(iv, plaintext, aad)
    return iv, sealed[:-TAG_LEN], sealed[-TAG_LEN:]

def aead_decrypt(key: bytes, iv: bytes, ciphertext: bytes, tag: bytes, aad: Optional[bytes] = None) -> bytes:
    aes = AESGCM(key)
    return aes.decrypt(iv, ciphertext + tag, aad)


# --------- Entry helpers ----------
def compute_membership_hash(credential: Credential) -> str:
    """
    Stable lookup key for a credential.

    Covers the identity commitment and the membership slot (chain, contract,
    tree index) and nothing derived from the password, so re-encrypting under
    a new password keeps the same hash.
    """
    m = credential.membership
    return sha256(canonical_json({
        "idCommitment": credential.identity.id_commitment_hex,
        "chainId": int(m.chain_id),
        "address": m.contract_address.lower(),
        "treeIndex": int(m.tree_index),
    }))

def is_valid_membership_hash(value: Any) -> bool:
    """True for the 64-char lowercase hex form compute_membership_hash() produces."""
    return isinstance(value, str) and MEMBERSHIP_HASH_RE.fullmatch(value) is not None

def encrypt_credential(credential: Credential, password: str, params: KdfParams,
                       aad: Optional[bytes] = None) -> Dict[str, Any]:
    salt = os.urandom(SALT_LEN)
    key = derive_key(password, salt, params)
    plaintext = json.dumps(credential.to_dict(), separators=(",", ":")).encode("utf-8")
    iv, ct, tag = aead_encrypt(key, plaintext, aad=aad)
    return {
        "cipher": CIPHER_NAME,
        "cipherparams": {"iv": iv.hex()},
        "ciphertext": ct.hex(),
        "kdf": KDF_NAME,
        "kdfparams": {**params.to_dict(), "dklen": KEY_LEN, "salt": salt.hex()},
        "mac": tag.hex(),
    }

def decrypt_credential(crypto: Dict[str, Any], password: str, aad: Optional[bytes] = None) -> Credential:
    """All-or-nothing: any failure (wrong password, tamper, bad fields) is DecryptionFailed."""
    try:
        kp = crypto["kdfparams"]
        params = KdfParams(n=int(kp["n"]), r=int(kp["r"]), p=int(kp["p"]))
        key = derive_key(password, bytes.fromhex(kp["salt"]), params, dklen=int(kp["dklen"]))
        pt = aead_decrypt(
            key,
            bytes.fromhex(crypto["cipherparams"]["iv"]),
            bytes.fromhex(crypto["ciphertext"]),
            bytes.fromhex(crypto["mac"]),
            aad=aad,
        )
        return Credential.from_dict(json.loads(pt.decode("utf-8")))
    except (InvalidTag, KeyError, TypeError, ValueError) as e:
        raise DecryptionFailed() from e

def is_valid_crypto_section(crypto: Any) -> bool:
    """Structural check used when loading an encoded keystore."""
    if not isinstance(crypto, dict):
        return False
    if crypto.get("cipher") != CIPHER_NAME or crypto.get("kdf") != KDF_NAME:
        return False
    kp = crypto.get("kdfparams")
    cp = crypto.get("cipherparams")
    if not isinstance(kp, dict) or not isinstance(cp, dict):
        return False
    if not all(isinstance(kp.get(k), int) for k in ("n", "r", "p", "dklen")):
        return False
    hex_fields = (kp.get("salt"), cp.get("iv"), crypto.get("ciphertext"), crypto.get("mac"))
    for value in hex_fields:
        if not isinstance(value, str):
            return False
        try:
            bytes.fromhex(value)
        except ValueError:
            return False
    return True

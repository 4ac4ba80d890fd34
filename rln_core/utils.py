"""
rln_core.utils
--------------
Lightweight helpers for hex encoding, timestamps and canonical JSON.
Canonical JSON keeps credential hashes stable across processes.
"""

from __future__ import annotations
import json, time, hashlib
from typing import Any, Dict

def hex_encode(b: bytes) -> str:
    return "0x" + b.hex()

def hex_decode(s: str) -> bytes:
    # accepts both "0xabcd" and "abcd"
    if s.startswith(("0x", "0X")):
        s = s[2:]
    return bytes.fromhex(s)

def now_ms() -> int:
    return int(time.time() * 1000)

def canonical_json(obj: Dict[str, Any]) -> bytes:
    # Deterministic, minimal JSON for hashing
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode("utf-8")

def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()

def short_hash(h: str, n: int = 8) -> str:
    return h[:n]

# rln_core/storage/provider.py
from __future__ import annotations
from typing import Dict, Optional


class StorageProvider:
    """
    Durable key-value store supplied by the host environment.

    Values are strings (the encoded keystore, the JSON alias map). put_many()
    must apply all of its writes or none of them; a value of None in
    put_many() deletes that key.
    """

    def get(self, key: str) -> Optional[str]: ...
    def put(self, key: str, value: str) -> None: ...
    def put_many(self, items: Dict[str, Optional[str]]) -> None: ...
    def delete(self, key: str) -> None: ...
    def close(self) -> None: ...

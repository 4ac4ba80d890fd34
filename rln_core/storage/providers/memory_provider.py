from typing import Dict, Optional
from rln_core.storage.provider import StorageProvider


class InMemoryStorage(StorageProvider):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def put(self, key: str, value: str) -> None:
        self.values[key] = value

    def put_many(self, items: Dict[str, Optional[str]]) -> None:
        staged = dict(self.values)
        for key, value in items.items():
            if value is None:
                staged.pop(key, None)
            else:
                staged[key] = value
        self.values = staged

    def delete(self, key: str) -> None:
        self.values.pop(key, None)

    def close(self) -> None:
        return

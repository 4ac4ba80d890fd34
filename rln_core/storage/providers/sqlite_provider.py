from __future__ import annotations
from typing import Optional, Dict
import sqlite3, os
from rln_core.storage.provider import StorageProvider


class SQLiteStorage(StorageProvider):
    def __init__(self, path="db/rln_keystore.db"):
        # If no directory, default to current working directory
        dir_path = os.path.dirname(path) or "."
        os.makedirs(dir_path, exist_ok=True)
        self.db = sqlite3.connect(path, check_same_thread=False)

        self._init()

    def _init(self) -> None:
        self.db.execute("""CREATE TABLE IF NOT EXISTS kv(
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )""")
        self.db.commit()

    def get(self, key: str) -> Optional[str]:
        cur = self.db.execute("SELECT value FROM kv WHERE key=?", (key,))
        row = cur.fetchone()
        if not row: return None
        return row[0]

    def put(self, key: str, value: str) -> None:
        self.db.execute(
            "INSERT INTO kv(key,value) VALUES(?,?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (key, value)
        )
        self.db.commit()

    def put_many(self, items: Dict[str, Optional[str]]) -> None:
        # one transaction: commits on success, rolls back on error
        with self.db:
            for key, value in items.items():
                if value is None:
                    self.db.execute("DELETE FROM kv WHERE key=?", (key,))
                else:
                    self.db.execute(
                        "INSERT INTO kv(key,value) VALUES(?,?) "
                        "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                        (key, value)
                    )

    def delete(self, key: str) -> None:
        self.db.execute("DELETE FROM kv WHERE key=?", (key,))
        self.db.commit()

    def keys(self):
        cur = self.db.execute("SELECT key FROM kv")
        return [r[0] for r in cur.fetchall()]

    def close(self):
        self.db.close()

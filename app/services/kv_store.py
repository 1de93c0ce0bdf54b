"""Key-value persistence behind the report store.

The report store only needs ``get/set/delete`` plus enumeration by key
prefix, so the storage medium stays swappable: SQLite on disk for the
service, a dict for tests and throwaway sessions.
"""

from typing import Protocol

from app.services.database import DATABASE_URL, get_db


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def items(self, prefix: str = "") -> list[tuple[str, str]]: ...


class MemoryKeyValueStore:
    """Process-local store. Contents vanish with the process."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def items(self, prefix: str = "") -> list[tuple[str, str]]:
        return [(k, v) for k, v in self._data.items() if k.startswith(prefix)]


def _escape_like(prefix: str) -> str:
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqliteKeyValueStore:
    """``kv_store`` table in a local SQLite file. One connection per call."""

    def __init__(self, db_url: str = DATABASE_URL) -> None:
        self.db_url = db_url

    async def get(self, key: str) -> str | None:
        async with get_db(self.db_url) as db:
            async with db.execute("SELECT value FROM kv_store WHERE key = ?", (key,)) as cur:
                row = await cur.fetchone()
        return row["value"] if row else None

    async def set(self, key: str, value: str) -> None:
        # Colliding keys are overwritten: last write wins
        async with get_db(self.db_url) as db:
            await db.execute(
                """INSERT INTO kv_store (key, value) VALUES (?, ?)
                   ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                                  updated_at = datetime('now')""",
                (key, value),
            )
            await db.commit()

    async def delete(self, key: str) -> bool:
        async with get_db(self.db_url) as db:
            cursor = await db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            await db.commit()
        return cursor.rowcount > 0

    async def items(self, prefix: str = "") -> list[tuple[str, str]]:
        async with get_db(self.db_url) as db:
            rows = await db.execute_fetchall(
                "SELECT key, value FROM kv_store WHERE key LIKE ? ESCAPE '\\'",
                (_escape_like(prefix) + "%",),
            )
        return [(r["key"], r["value"]) for r in rows]

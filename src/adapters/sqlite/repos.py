import sqlite3
from datetime import datetime
from typing import Any

from src.adapters.clock import ClockPort, SystemClock
from src.components.redirects import NewRule, Rule, RuleConflictError, RuleStoreError

_COLUMNS = "id, host, source, target, created_at"


# Helper to convert sqlite rows to dicts
def dict_factory(cursor: sqlite3.Cursor, row: Any) -> dict[str, Any]:
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d


class SQLiteRuleStore:
    """
    SQLite-backed rule store.

    Every sqlite3 failure is re-raised as RuleStoreError; a violation of the
    (host, source) unique index is re-raised as RuleConflictError.
    """

    def __init__(self, db_path: str, clock: ClockPort | None = None):
        self.db_path = db_path
        self._clock = clock or SystemClock()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def list_all(self) -> list[Rule]:
        return self._get_many(f"SELECT {_COLUMNS} FROM links ORDER BY created_at DESC, id DESC", ())

    def get_by_id(self, rule_id: int) -> Rule | None:
        return self._get_one(f"SELECT {_COLUMNS} FROM links WHERE id = ?", (rule_id,))

    def insert(self, new_rule: NewRule) -> Rule:
        created_at = self._clock.now_utc()
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise RuleStoreError(str(e)) from e
        try:
            cursor = conn.execute(
                "INSERT INTO links (host, source, target, created_at) VALUES (?, ?, ?, ?)",
                (new_rule.host, new_rule.source, new_rule.target, created_at.isoformat()),
            )
            conn.commit()
            rule_id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            raise RuleConflictError(new_rule.host, new_rule.source) from e
        except sqlite3.Error as e:
            raise RuleStoreError(str(e)) from e
        finally:
            conn.close()

        assert rule_id is not None
        return Rule(
            id=rule_id,
            host=new_rule.host,
            source=new_rule.source,
            target=new_rule.target,
            created_at=created_at,
        )

    def update(self, rule: Rule) -> Rule | None:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise RuleStoreError(str(e)) from e
        try:
            cursor = conn.execute(
                "UPDATE links SET host = ?, source = ?, target = ? WHERE id = ?",
                (rule.host, rule.source, rule.target, rule.id),
            )
            conn.commit()
            updated = cursor.rowcount > 0
        except sqlite3.IntegrityError as e:
            raise RuleConflictError(rule.host, rule.source) from e
        except sqlite3.Error as e:
            raise RuleStoreError(str(e)) from e
        finally:
            conn.close()

        if not updated:
            return None
        return self.get_by_id(rule.id)

    def delete(self, rule_id: int) -> bool:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise RuleStoreError(str(e)) from e
        try:
            cursor = conn.execute("DELETE FROM links WHERE id = ?", (rule_id,))
            conn.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise RuleStoreError(str(e)) from e
        finally:
            conn.close()

    def has_conflict(self, host: str, source: str, exclude_id: int | None = None) -> bool:
        if exclude_id is None:
            row = self._fetch_one(
                "SELECT COUNT(*) AS count FROM links WHERE host = ? AND source = ?",
                (host, source),
            )
        else:
            row = self._fetch_one(
                "SELECT COUNT(*) AS count FROM links WHERE host = ? AND source = ? AND id != ?",
                (host, source, exclude_id),
            )
        return bool(row and row["count"] > 0)

    def list_recent(self, limit: int) -> list[Rule]:
        return self._get_many(
            f"SELECT {_COLUMNS} FROM links ORDER BY created_at DESC, id DESC LIMIT ?",
            (limit,),
        )

    def search(self, query: str, limit: int, offset: int) -> list[Rule]:
        # SQLite LIKE is case-insensitive for ASCII
        pattern = f"%{query}%"
        return self._get_many(
            f"SELECT {_COLUMNS} FROM links "
            "WHERE source LIKE ? OR target LIKE ? OR host LIKE ? "
            "ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            (pattern, pattern, pattern, limit, offset),
        )

    def list_by_target(self, target: str) -> list[Rule]:
        return self._get_many(
            f"SELECT {_COLUMNS} FROM links WHERE target = ? ORDER BY created_at DESC, id DESC",
            (target,),
        )

    def _fetch_one(self, query: str, params: tuple[Any, ...]) -> dict[str, Any] | None:
        try:
            conn = self._get_conn()
            try:
                row: dict[str, Any] | None = conn.execute(query, params).fetchone()
                return row
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise RuleStoreError(str(e)) from e

    def _get_one(self, query: str, params: tuple[Any, ...]) -> Rule | None:
        row = self._fetch_one(query, params)
        if not row:
            return None
        return self._map_row(row)

    def _get_many(self, query: str, params: tuple[Any, ...]) -> list[Rule]:
        try:
            conn = self._get_conn()
            try:
                rows = conn.execute(query, params).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise RuleStoreError(str(e)) from e
        return [self._map_row(r) for r in rows]

    def _map_row(self, row: dict[str, Any]) -> Rule:
        return Rule(
            id=row["id"],
            host=row["host"],
            source=row["source"],
            target=row["target"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

"""
Document store for task records.
Supports both local SQLite and Turso (cloud SQLite over HTTP) backends; which one
is used comes from Settings. Every record is a JSON document addressed by an
opaque handle and scoped to the signed-in owner.
"""

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import requests as http_requests

logger = logging.getLogger(__name__)


# ─── DictRow - Consistent row access ───────────────────────────────────────────

class DictRow(dict):
    """dict subclass so rows look the same whichever backend produced them."""


# ─── Turso HTTP API Helper ──────────────────────────────────────────────────────

def turso_api_url(url: str) -> str:
    url = url.rstrip("/")
    if url.startswith("libsql://"):
        url = url.replace("libsql://", "https://")
    if not url.startswith("https://"):
        url = "https://" + url
    if not url.endswith("/v2/pipeline"):
        url += "/v2/pipeline"
    return url


def turso_args(params: list) -> list:
    api_params = []
    for p in params:
        if p is None:
            api_params.append({"type": "null"})
        elif isinstance(p, bool):
            api_params.append({"type": "integer", "value": str(int(p))})
        elif isinstance(p, int):
            api_params.append({"type": "integer", "value": str(p)})
        elif isinstance(p, float):
            api_params.append({"type": "float", "value": p})
        elif isinstance(p, str):
            api_params.append({"type": "text", "value": p})
        else:
            api_params.append({"type": "text", "value": str(p)})
    return api_params


def turso_value(val):
    if not isinstance(val, dict):
        return val
    kind = val.get("type")
    if kind == "null":
        return None
    if kind == "integer" and val.get("value") is not None:
        try:
            return int(val["value"])
        except (ValueError, TypeError):
            return val.get("value")
    if kind == "float" and val.get("value") is not None:
        try:
            return float(val["value"])
        except (ValueError, TypeError):
            return val.get("value")
    return val.get("value")


class TursoError(Exception):
    pass


class DocumentNotFound(LookupError):
    """No document with that handle for this owner."""


# ─── Schema ────────────────────────────────────────────────────────────────────

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS task_documents (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT UNIQUE NOT NULL,
        owner TEXT NOT NULL,
        data TEXT NOT NULL DEFAULT '{}',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP
    );
    CREATE INDEX IF NOT EXISTS idx_task_documents_owner ON task_documents(owner, seq)
"""


# ─── Document Store ────────────────────────────────────────────────────────────

class DocumentStore:
    """Owner-scoped task documents.

    `list_all()` returns (handle, record) pairs in insertion order; handles are
    stable for the life of a document, unlike the positions in that list.
    """

    def __init__(self, owner: str, *, db_path: str | Path = "taskboard.db",
                 turso_url: str = None, turso_auth_token: str = None,
                 timeout: float = 30.0):
        if not owner:
            raise ValueError("owner is required")
        self.owner = owner
        self.db_path = Path(db_path)
        self.turso_url = turso_url
        self.turso_auth_token = turso_auth_token
        self.timeout = timeout
        self.use_turso = bool(turso_url and turso_auth_token)
        self._session = http_requests.Session() if self.use_turso else None

    @classmethod
    def from_settings(cls, settings, owner: str) -> "DocumentStore":
        return cls(
            owner,
            db_path=settings.db_path,
            turso_url=settings.turso_url if settings.use_turso else None,
            turso_auth_token=settings.turso_auth_token if settings.use_turso else None,
            timeout=settings.http_timeout,
        )

    # ---- backends ----

    @contextmanager
    def get_connection(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _turso_post(self, reqs: list) -> dict:
        body = {"requests": reqs + [{"type": "close"}]}
        headers = {
            "Authorization": f"Bearer {self.turso_auth_token}",
            "Content-Type": "application/json"
        }
        resp = self._session.post(turso_api_url(self.turso_url), json=body,
                                  headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def _turso_execute(self, sql: str, params: list, fetch: str):
        data = self._turso_post([
            {"type": "execute", "stmt": {"sql": sql, "args": turso_args(params)}}
        ])
        result = data.get("results", [{}])[0]
        if result.get("type") == "error":
            raise TursoError(f"Turso error: {result['error']['message']}")

        res = result.get("response", {}).get("result", {})
        if fetch == "rowcount":
            return int(res.get("affected_row_count", 0))
        if fetch == "none":
            return None

        cols = [c["name"] for c in res.get("cols", [])]
        return [DictRow(zip(cols, (turso_value(v) for v in row)))
                for row in res.get("rows", [])]

    def _query(self, sql: str, params: list = None, fetch: str = "all"):
        if params is None:
            params = []
        if self.use_turso:
            return self._turso_execute(sql, params, fetch)
        with self.get_connection() as conn:
            cursor = conn.execute(sql, params)
            if fetch == "rowcount":
                return cursor.rowcount
            if fetch == "all":
                return [DictRow({key: r[key] for key in r.keys()}) for r in cursor.fetchall()]
            return None

    def init_db(self):
        statements = [s.strip() for s in SCHEMA_SQL.split(";") if s.strip()]
        if self.use_turso:
            data = self._turso_post([{"type": "execute", "stmt": {"sql": s}} for s in statements])
            for result in data.get("results", []):
                if result.get("type") == "error":
                    raise TursoError(f"Turso error: {result['error']['message']}")
        else:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self.get_connection() as conn:
                conn.executescript(SCHEMA_SQL)
        logger.info("Document store ready backend=%s owner=%s",
                    "turso" if self.use_turso else self.db_path, self.owner)

    # ---- document operations ----

    def list_all(self) -> list[tuple[str, dict]]:
        rows = self._query(
            "SELECT id, data FROM task_documents WHERE owner = ? ORDER BY seq",
            [self.owner]
        )
        return [(row['id'], json.loads(row['data'] or "{}")) for row in rows]

    def create(self, record: dict) -> str:
        handle = uuid.uuid4().hex
        self._query(
            "INSERT INTO task_documents (id, owner, data) VALUES (?, ?, ?)",
            [handle, self.owner, json.dumps(record, ensure_ascii=False)], fetch="none"
        )
        return handle

    def delete(self, handle: str) -> None:
        count = self._query(
            "DELETE FROM task_documents WHERE id = ? AND owner = ?",
            [handle, self.owner], fetch="rowcount"
        )
        if not count:
            raise DocumentNotFound(f"No document {handle}")

    def update(self, handle: str, fields: dict) -> None:
        rows = self._query(
            "SELECT data FROM task_documents WHERE id = ? AND owner = ?",
            [handle, self.owner]
        )
        if not rows:
            raise DocumentNotFound(f"No document {handle}")
        record = json.loads(rows[0]['data'] or "{}")
        record.update(fields)
        self._query(
            "UPDATE task_documents SET data = ?, updated_at = ? WHERE id = ? AND owner = ?",
            [json.dumps(record, ensure_ascii=False), datetime.now().isoformat(),
             handle, self.owner], fetch="none"
        )

"""Persistencia SQLite: documentos con suscripciones y configuracion de la app."""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    data TEXT NOT NULL,
    revision INTEGER NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY(collection, doc_id)
);

CREATE INDEX IF NOT EXISTS idx_documents_collection
ON documents(collection);
"""

Document = dict[str, Any]
ChangeCallback = Callable[[Any], None]
ErrorCallback = Callable[["StoreError"], None]
Unsubscribe = Callable[[], None]


class StoreError(Exception):
    """Failure reading or writing the document store."""


class StoreUnavailableError(StoreError):
    """The store could not be reached (database missing, locked, ...)."""


class DocumentNotFoundError(StoreError, KeyError):
    """Update on a document that does not exist."""


class _DeleteField:
    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD: Any = _DeleteField()


class DocumentStore(ABC):
    """Document store with push subscriptions.

    Subscriptions fire once with the current value and again after every
    change. Read failures go to ``on_error``.
    """

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Document | None:
        """Return a document, or None if it does not exist."""

    @abstractmethod
    def set(
        self,
        collection: str,
        doc_id: str,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        """Create or replace a document (merge keeps unspecified fields)."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        """Update fields of an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """

    @abstractmethod
    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        """Insert a document with a generated id and return the id."""

    @abstractmethod
    def query_recent(
        self, collection: str, limit: int, order_by: str = "timestamp"
    ) -> list[Document]:
        """Return up to ``limit`` documents, newest ``order_by`` first."""

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        doc_id: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        """Watch one document; ``on_change`` receives the dict or None."""

    @abstractmethod
    def subscribe_recent(
        self,
        collection: str,
        limit: int,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
        order_by: str = "timestamp",
    ) -> Unsubscribe:
        """Watch the newest ``limit`` documents of a collection."""


@dataclass(frozen=True)
class AppConfig:
    """Configuracion persistida de la app."""

    export_dir: str
    appliance_root: str
    history_days: int
    freshness_minutes: int


_CONFIG_DEFAULTS: dict[str, str] = {
    "export_dir": "",
    "appliance_root": "",
    "history_days": "7",
    "freshness_minutes": "5",
}


@dataclass
class _Subscription:
    collection: str
    doc_id: str | None
    limit: int
    order_by: str
    on_change: ChangeCallback
    on_error: ErrorCallback | None


class SQLiteStore(DocumentStore):
    """Repositorio SQLite para documentos y configuracion."""

    def __init__(self, db_path: Path) -> None:
        """Create store and ensure schema exists."""
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._subscriptions: list[_Subscription] = []
        self._seen_revisions: dict[tuple[str, str], int] = {}
        self._init_schema()
        self._seen_revisions = self._read_revisions()

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            raise StoreUnavailableError(str(exc)) from exc
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()

    # --- configuracion ---

    def load_config(self) -> AppConfig:
        """Devuelve configuracion guardada o defaults."""
        with self._connect() as conn:
            rows = conn.execute("SELECT key, value FROM app_config").fetchall()
        values = {row["key"]: row["value"] for row in rows}
        merged = {**_CONFIG_DEFAULTS, **values}
        return AppConfig(
            export_dir=merged["export_dir"],
            appliance_root=merged["appliance_root"],
            history_days=_parse_positive_int(merged["history_days"], 7),
            freshness_minutes=_parse_positive_int(merged["freshness_minutes"], 5),
        )

    def save_config(self, config: AppConfig) -> None:
        """Guarda la configuracion en tabla key/value."""
        payload = {
            "export_dir": config.export_dir,
            "appliance_root": config.appliance_root,
            "history_days": str(config.history_days),
            "freshness_minutes": str(config.freshness_minutes),
        }
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO app_config(key, value) VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                payload.items(),
            )
            conn.commit()

    # --- documentos ---

    def get(self, collection: str, doc_id: str) -> Document | None:
        try:
            with self._connect() as conn:
                return self._get(conn, collection, doc_id)
        except sqlite3.Error as exc:
            raise _store_error(exc) from exc

    def set(
        self,
        collection: str,
        doc_id: str,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        try:
            with self._connect() as conn:
                current = self._get(conn, collection, doc_id) if merge else None
                merged = _apply_fields(current or {}, data)
                self._write(conn, collection, doc_id, merged)
        except sqlite3.Error as exc:
            raise _store_error(exc) from exc
        self._notify(collection, doc_id)

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        try:
            with self._connect() as conn:
                current = self._get(conn, collection, doc_id)
                if current is None:
                    raise DocumentNotFoundError(f"{collection}/{doc_id}")
                self._write(conn, collection, doc_id, _apply_fields(current, fields))
        except sqlite3.Error as exc:
            raise _store_error(exc) from exc
        self._notify(collection, doc_id)

    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, data)
        return doc_id

    def query_recent(
        self, collection: str, limit: int, order_by: str = "timestamp"
    ) -> list[Document]:
        try:
            with self._connect() as conn:
                return self._query_recent(conn, collection, limit, order_by)
        except sqlite3.Error as exc:
            raise _store_error(exc) from exc

    # --- suscripciones ---

    def subscribe(
        self,
        collection: str,
        doc_id: str,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        sub = _Subscription(collection, doc_id, 0, "", on_change, on_error)
        return self._register(sub)

    def subscribe_recent(
        self,
        collection: str,
        limit: int,
        on_change: ChangeCallback,
        on_error: ErrorCallback | None = None,
        order_by: str = "timestamp",
    ) -> Unsubscribe:
        sub = _Subscription(collection, None, limit, order_by, on_change, on_error)
        return self._register(sub)

    def sync(self) -> int:
        """Push changes written by other processes to local subscribers.

        Returns:
            Number of documents that changed since the last look.
        """
        try:
            revisions = self._read_revisions()
        except StoreError as exc:
            for sub in list(self._subscriptions):
                self._report(sub, exc)
            return 0
        changed = [
            key
            for key, revision in revisions.items()
            if self._seen_revisions.get(key) != revision
        ]
        self._seen_revisions = revisions
        for collection, doc_id in changed:
            self._notify(collection, doc_id, refresh_revision=False)
        return len(changed)

    def _register(self, sub: _Subscription) -> Unsubscribe:
        self._subscriptions.append(sub)
        self._deliver(sub)

        def unsubscribe() -> None:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

        return unsubscribe

    def _notify(
        self, collection: str, doc_id: str, *, refresh_revision: bool = True
    ) -> None:
        if refresh_revision:
            self._remember_revision(collection, doc_id)
        for sub in list(self._subscriptions):
            if sub.collection != collection:
                continue
            if sub.doc_id is not None and sub.doc_id != doc_id:
                continue
            self._deliver(sub)

    def _deliver(self, sub: _Subscription) -> None:
        value: Any
        try:
            with self._connect() as conn:
                if sub.doc_id is not None:
                    value = self._get(conn, sub.collection, sub.doc_id)
                else:
                    value = self._query_recent(
                        conn, sub.collection, sub.limit, sub.order_by
                    )
        except sqlite3.Error as exc:
            self._report(sub, _store_error(exc))
            return
        except StoreError as exc:
            self._report(sub, exc)
            return
        sub.on_change(value)

    def _report(self, sub: _Subscription, error: StoreError) -> None:
        if sub.on_error is not None:
            sub.on_error(error)
            return
        target = sub.collection
        if sub.doc_id is not None:
            target = f"{sub.collection}/{sub.doc_id}"
        logger.error("Subscription to %s failed: %s", target, error)

    def _remember_revision(self, collection: str, doc_id: str) -> None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT revision FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id),
            ).fetchone()
        if row is not None:
            self._seen_revisions[(collection, doc_id)] = int(row["revision"])

    def _read_revisions(self) -> dict[tuple[str, str], int]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT collection, doc_id, revision FROM documents"
                ).fetchall()
        except sqlite3.Error as exc:
            raise _store_error(exc) from exc
        return {
            (row["collection"], row["doc_id"]): int(row["revision"]) for row in rows
        }

    # --- helpers SQL ---

    def _get(
        self, conn: sqlite3.Connection, collection: str, doc_id: str
    ) -> Document | None:
        row = conn.execute(
            "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
            (collection, doc_id),
        ).fetchone()
        if row is None:
            return None
        return _decode(row["data"])

    def _query_recent(
        self,
        conn: sqlite3.Connection,
        collection: str,
        limit: int,
        order_by: str,
    ) -> list[Document]:
        rows = conn.execute(
            """
            SELECT data FROM documents
            WHERE collection = ?
            ORDER BY julianday(json_extract(data, ?)) DESC,
                json_extract(data, ?) DESC
            LIMIT ?
            """,
            (collection, f"$.{order_by}", f"$.{order_by}", limit),
        ).fetchall()
        return [_decode(row["data"]) for row in rows]

    def _write(
        self,
        conn: sqlite3.Connection,
        collection: str,
        doc_id: str,
        data: Document,
    ) -> None:
        row = conn.execute(
            "SELECT COALESCE(MAX(revision), 0) + 1 AS next FROM documents"
        ).fetchone()
        conn.execute(
            """
            INSERT INTO documents(collection, doc_id, data, revision, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(collection, doc_id) DO UPDATE SET
                data=excluded.data,
                revision=excluded.revision,
                updated_at=excluded.updated_at
            """,
            (
                collection,
                doc_id,
                _encode(data),
                int(row["next"]),
                datetime.now().isoformat(timespec="seconds"),
            ),
        )
        conn.commit()


def _apply_fields(current: Mapping[str, Any], fields: Mapping[str, Any]) -> Document:
    out = dict(current)
    for key, value in fields.items():
        if value is DELETE_FIELD:
            out.pop(key, None)
        else:
            out[key] = value
    return out


def _json_default(value: object) -> object:
    if isinstance(value, datetime | date):
        return value.isoformat()
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def _encode(data: Mapping[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=True, default=_json_default)


def _decode(raw: str) -> Document:
    try:
        parsed: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StoreError(f"Corrupt document: {exc}") from exc
    if not isinstance(parsed, dict):
        raise StoreError("Corrupt document: not an object")
    return parsed


def _store_error(exc: sqlite3.Error) -> StoreError:
    text = str(exc).lower()
    if "unable to open" in text or "locked" in text or "disk i/o" in text:
        return StoreUnavailableError(str(exc))
    return StoreError(str(exc))


def _parse_positive_int(raw: str, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default

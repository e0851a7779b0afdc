# oncegate/services/grants.py
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from google.api_core.exceptions import Conflict, GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import datastore
from pydantic import BaseModel, Field

from oncegate.services.errors import CollaboratorFailure

# el runner de transacciones de datastore reintenta 3 veces ante contención
TRANSACTION_ATTEMPTS = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GrantRecord(BaseModel):
    country: str = ""
    region: str = ""
    downloaded_at: datetime = Field(default_factory=utcnow)


class GrantStore:
    """Como mucho un GrantRecord por filename.

    `create_if_absent` relee la clave y escribe en una sola transacción:
    devuelve True solo a quien hizo el commit.
    """

    def get(self, filename: str) -> Optional[GrantRecord]:
        raise NotImplementedError

    def create_if_absent(self, filename: str, record: GrantRecord) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        pass


# -----------------------------
# sqlite (local / dev)
# -----------------------------
SCHEMA = """
  CREATE TABLE IF NOT EXISTS grants(
    filename TEXT PRIMARY KEY,
    country TEXT NOT NULL DEFAULT '',
    region TEXT NOT NULL DEFAULT '',
    downloaded_at TEXT NOT NULL
  )
"""


def init_grants_db(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(db_path)
    try:
        con.execute(SCHEMA)
        con.commit()
    finally:
        con.close()


class SqliteGrantStore(GrantStore):
    def __init__(self, db_path: Path, timeout: float = 30.0):
        self.db_path = Path(db_path)
        self.timeout = timeout
        try:
            init_grants_db(self.db_path)
        except (sqlite3.Error, OSError) as e:
            raise CollaboratorFailure("sqlite.connect") from e

    def db(self) -> sqlite3.Connection:
        # autocommit: las transacciones se abren a mano con BEGIN IMMEDIATE
        con = sqlite3.connect(self.db_path, timeout=self.timeout, isolation_level=None)
        con.row_factory = sqlite3.Row
        return con

    def get(self, filename: str) -> Optional[GrantRecord]:
        try:
            con = self.db()
            try:
                row = con.execute(
                    "SELECT country, region, downloaded_at FROM grants WHERE filename = ?",
                    (filename,),
                ).fetchone()
            finally:
                con.close()
        except sqlite3.Error as e:
            raise CollaboratorFailure("sqlite.get") from e
        return _row_to_record(row) if row else None

    def create_if_absent(self, filename: str, record: GrantRecord) -> bool:
        try:
            con = self.db()
            try:
                # BEGIN IMMEDIATE toma el lock de escritura antes de releer
                con.execute("BEGIN IMMEDIATE")
                try:
                    row = con.execute("SELECT 1 FROM grants WHERE filename = ?", (filename,)).fetchone()
                    if row:
                        con.execute("ROLLBACK")
                        return False
                    con.execute(
                        "INSERT INTO grants(filename, country, region, downloaded_at) VALUES(?,?,?,?)",
                        (filename, record.country, record.region, record.downloaded_at.isoformat()),
                    )
                    con.execute("COMMIT")
                except sqlite3.IntegrityError:
                    con.execute("ROLLBACK")
                    return False
                except sqlite3.Error:
                    if con.in_transaction:
                        con.execute("ROLLBACK")
                    raise
            finally:
                con.close()
        except sqlite3.Error as e:
            raise CollaboratorFailure("sqlite.transaction") from e
        return True


def _row_to_record(row: sqlite3.Row) -> GrantRecord:
    return GrantRecord(
        country=row["country"],
        region=row["region"],
        downloaded_at=datetime.fromisoformat(row["downloaded_at"]),
    )


# -----------------------------
# Cloud Datastore (prod)
# -----------------------------
class DatastoreGrantStore(GrantStore):
    def __init__(self, project: str = "", kind: str = "DownloadLogEntry", client=None):
        self.kind = kind
        if client is None:
            try:
                client = datastore.Client(project=project or None)
            except (GoogleAuthError, OSError, ValueError) as e:
                raise CollaboratorFailure("datastore.Client") from e
        self.client = client

    def key(self, filename: str):
        return self.client.key(self.kind, filename)

    def get(self, filename: str) -> Optional[GrantRecord]:
        try:
            entity = self.client.get(self.key(filename))
        except (GoogleAPIError, GoogleAuthError) as e:
            # GoogleAuthError: fallo al refrescar credenciales durante la llamada
            raise CollaboratorFailure("datastore.get") from e
        if entity is None:
            return None
        return GrantRecord(
            country=entity.get("Country") or "",
            region=entity.get("Region") or "",
            downloaded_at=entity.get("DownloadedAt") or utcnow(),
        )

    def create_if_absent(self, filename: str, record: GrantRecord) -> bool:
        key = self.key(filename)
        for attempt in range(1, TRANSACTION_ATTEMPTS + 1):
            try:
                with self.client.transaction():
                    # get/put en este bloque usan la transacción actual
                    if self.client.get(key) is not None:
                        return False
                    entity = datastore.Entity(key=key)
                    entity.update({
                        "Country": record.country,
                        "Region": record.region,
                        "DownloadedAt": record.downloaded_at,
                    })
                    self.client.put(entity)
                return True
            except Conflict as e:
                # otra transacción ganó el commit: el siguiente intento la ve
                if attempt == TRANSACTION_ATTEMPTS:
                    raise CollaboratorFailure("datastore.RunInTransaction") from e
            except (GoogleAPIError, GoogleAuthError) as e:
                raise CollaboratorFailure("datastore.RunInTransaction") from e
        raise CollaboratorFailure("datastore.RunInTransaction")

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            close()

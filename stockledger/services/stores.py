"""
Stores durables du journal.

Chaque backend expose la même surface minimale :
    insert(rows)                              -> une seule requête pour tout le lot
    mark_deleted(batch_id, deleted_at, by)    -> tampon de suppression logique
    load_all()                                -> toutes les lignes (actives + archivées)

Tout échec est converti en PersistenceError ; c'est le repository qui décide
de journaliser et de continuer sur l'état local.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence

import requests
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from stockledger.app.db.models.models_v1 import StockTransaction
from stockledger.app.db.models.core_types import TransactionType
from stockledger.services.errors import PersistenceError

logger = logging.getLogger(__name__)

TABLE_NAME = "stock_transactions"


class DurableStore(Protocol):
    def insert(self, rows: Sequence[dict[str, Any]]) -> None: ...

    def mark_deleted(self, batch_id: str, deleted_at: int, deleted_by: str) -> int: ...

    def load_all(self) -> list[dict[str, Any]]: ...


class MemoryStore:
    """Store sans I/O : mode hors-ligne et tests."""

    def __init__(self, rows: Sequence[dict[str, Any]] | None = None):
        self.rows: list[dict[str, Any]] = [dict(r) for r in rows or []]

    def insert(self, rows: Sequence[dict[str, Any]]) -> None:
        self.rows.extend(dict(r) for r in rows)

    def mark_deleted(self, batch_id: str, deleted_at: int, deleted_by: str) -> int:
        n = 0
        for row in self.rows:
            if row.get("batch_id") == batch_id and row.get("deleted_at") is None:
                row["deleted_at"] = deleted_at
                row["deleted_by"] = deleted_by
                n += 1
        return n

    def load_all(self) -> list[dict[str, Any]]:
        return [dict(r) for r in self.rows]


def _row_from_model(tx: StockTransaction) -> dict[str, Any]:
    return {
        "id": tx.id,
        "batch_id": tx.batch_id,
        "timestamp": tx.timestamp,
        "date": tx.date,
        "branch_id": tx.branch_id,
        "sku_id": tx.sku_id,
        "type": tx.type.value,
        "quantity_pieces": tx.quantity_pieces,
        "image_urls": list(tx.image_urls or []),
        "image_url": tx.image_url,
        "user_id": tx.user_id,
        "user_name": tx.user_name,
        "deleted_at": tx.deleted_at,
        "deleted_by": tx.deleted_by,
    }


class SqlTransactionStore:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def insert(self, rows: Sequence[dict[str, Any]]) -> None:
        db: Session = self.session_factory()
        try:
            db.add_all(
                StockTransaction(
                    id=r["id"],
                    batch_id=r["batch_id"],
                    timestamp=r["timestamp"],
                    date=r["date"],
                    branch_id=r["branch_id"],
                    sku_id=r["sku_id"],
                    type=TransactionType(r["type"]),
                    quantity_pieces=r["quantity_pieces"],
                    image_urls=list(r.get("image_urls") or []),
                    user_id=r.get("user_id"),
                    user_name=r.get("user_name"),
                    deleted_at=r.get("deleted_at"),
                    deleted_by=r.get("deleted_by"),
                )
                for r in rows
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError("insert", exc) from exc
        finally:
            db.close()

    def mark_deleted(self, batch_id: str, deleted_at: int, deleted_by: str) -> int:
        db: Session = self.session_factory()
        try:
            result = db.execute(
                update(StockTransaction)
                .where(StockTransaction.batch_id == batch_id)
                .where(StockTransaction.deleted_at.is_(None))
                .values(deleted_at=deleted_at, deleted_by=deleted_by)
            )
            db.commit()
            return int(result.rowcount or 0)
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError("mark_deleted", exc) from exc
        finally:
            db.close()

    def load_all(self) -> list[dict[str, Any]]:
        db: Session = self.session_factory()
        try:
            rows = (
                db.execute(select(StockTransaction).order_by(StockTransaction.timestamp.desc()))
                .scalars()
                .all()
            )
            return [_row_from_model(tx) for tx in rows]
        except SQLAlchemyError as exc:
            raise PersistenceError("load_all", exc) from exc
        finally:
            db.close()


class RestTransactionStore:
    """
    Backend HTTP compatible PostgREST (ex. Supabase).
    Timeout borné sur chaque requête.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 5.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if api_key:
            self.session.headers.update({"apikey": api_key, "Authorization": f"Bearer {api_key}"})

    @property
    def table_url(self) -> str:
        return f"{self.base_url}/{TABLE_NAME}"

    def insert(self, rows: Sequence[dict[str, Any]]) -> None:
        try:
            resp = self.session.post(
                self.table_url,
                json=list(rows),
                headers={"Prefer": "return=minimal"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise PersistenceError("insert", exc) from exc

    def mark_deleted(self, batch_id: str, deleted_at: int, deleted_by: str) -> int:
        try:
            resp = self.session.patch(
                self.table_url,
                params={"batch_id": f"eq.{batch_id}", "deleted_at": "is.null"},
                json={"deleted_at": deleted_at, "deleted_by": deleted_by},
                headers={"Prefer": "return=representation"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            body = resp.json() if resp.content else []
        except (requests.RequestException, ValueError) as exc:
            raise PersistenceError("mark_deleted", exc) from exc
        return len(body) if isinstance(body, list) else 0

    def load_all(self) -> list[dict[str, Any]]:
        try:
            resp = self.session.get(
                self.table_url,
                params={"select": "*", "order": "timestamp.desc"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise PersistenceError("load_all", exc) from exc
        if not isinstance(body, list):
            raise PersistenceError("load_all", ValueError("unexpected response body"))
        return body


def build_store(settings, session_factory: sessionmaker | None = None) -> DurableStore:
    backend = settings.store_backend
    if backend == "memory":
        return MemoryStore()
    if backend == "rest":
        if not settings.store_rest_url:
            raise ValueError("STORE_BACKEND=rest requires STORE_REST_URL")
        return RestTransactionStore(
            settings.store_rest_url,
            api_key=settings.store_rest_key,
            timeout=settings.store_timeout_seconds,
        )
    if backend == "sql":
        if session_factory is None:
            from stockledger.app.db.session import SessionLocal

            session_factory = SessionLocal
        return SqlTransactionStore(session_factory)
    raise ValueError(f"Unknown STORE_BACKEND: {backend}")

"""
Ledger service : écriture des lots et archive de suppression logique.

Ce module possède le snapshot en mémoire et le store durable.
Toute la logique de regroupement / réconciliation est dans :
    stockledger.services.reconciliation

Règles métier :
- un appel commit_batch = un batch_id + un timestamp pour toutes les lignes
- écriture "write-through" : le snapshot local est mis à jour même si le
  store durable échoue (appareils en branche avec réseau instable)
- suppression = tampon deleted_at / deleted_by, jamais d'effacement physique
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Mapping, Sequence

from stockledger.services.errors import PersistenceError, ValidationError
from stockledger.services.records import (
    Actor,
    LineItem,
    TransactionRecord,
    coerce_line,
    validate_line,
)
from stockledger.services.evidence import normalize_evidence
from stockledger.services.stores import DurableStore

logger = logging.getLogger(__name__)

OFFLINE_WARNING = "Saved to device only; sync with the durable store failed."
OFFLINE_DELETE_WARNING = "Archived on device only; the durable store still lists this batch as active."


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class CommitReceipt:
    batch_id: str
    timestamp: int
    records: tuple[TransactionRecord, ...]
    persisted: bool
    warning: str | None = None


@dataclass(frozen=True)
class DeleteReceipt:
    batch_id: str
    archived_lines: int
    persisted: bool
    warning: str | None = None


class TransactionRepository:
    def __init__(
        self,
        store: DurableStore,
        *,
        clock: Callable[[], int] = _now_ms,
        id_factory: Callable[[], str] = _new_id,
        records: Iterable[TransactionRecord] | None = None,
    ):
        self.store = store
        self._clock = clock
        self._id_factory = id_factory
        self._lock = threading.Lock()
        self._records: list[TransactionRecord] = list(records or [])
        self._last_timestamp = max((r.timestamp for r in self._records), default=0)

    # ---------- Queries ----------
    def snapshot(self) -> list[TransactionRecord]:
        with self._lock:
            return list(self._records)

    def active(self) -> list[TransactionRecord]:
        return [r for r in self.snapshot() if not r.is_deleted]

    def archived(self) -> list[TransactionRecord]:
        return [r for r in self.snapshot() if r.is_deleted]

    def get_batch(self, batch_id: str) -> list[TransactionRecord]:
        return [r for r in self.snapshot() if r.batch_id == batch_id]

    # ---------- Commit ----------
    def _next_timestamp(self) -> int:
        ts = max(int(self._clock()), self._last_timestamp + 1)
        self._last_timestamp = ts
        return ts

    def _prepare(self, lines: Sequence[LineItem | Mapping[str, Any]]) -> list[tuple[LineItem, Any, str]]:
        if not lines:
            raise ValidationError("batch must contain at least one line")

        prepared = []
        for index, raw in enumerate(lines):
            line = coerce_line(raw)
            tx_type, tx_date = validate_line(line, index)
            prepared.append((line, tx_type, tx_date))

        # un lot = une action utilisateur : même date, même branche, même type
        head_line, head_type, head_date = prepared[0]
        for index, (line, tx_type, tx_date) in enumerate(prepared[1:], start=1):
            if tx_date != head_date:
                raise ValidationError("all lines of a batch must share the same date", line_index=index)
            if line.branch_id != head_line.branch_id:
                raise ValidationError("all lines of a batch must share the same branch_id", line_index=index)
            if tx_type != head_type:
                raise ValidationError("all lines of a batch must share the same type", line_index=index)
        return prepared

    def commit_batch(
        self,
        lines: Sequence[LineItem | Mapping[str, Any]],
        actor: Actor | Mapping[str, Any] | None,
    ) -> CommitReceipt:
        prepared = self._prepare(lines)
        actor = _coerce_actor(actor)
        if actor is None:
            raise ValidationError("an actor is required to commit a batch")

        # sous verrou : identifiants, horodatage et snapshot seulement (pas d'I/O)
        with self._lock:
            batch_id = self._id_factory()
            timestamp = self._next_timestamp()
            records = tuple(
                TransactionRecord(
                    id=self._id_factory(),
                    batch_id=batch_id,
                    timestamp=timestamp,
                    date=tx_date,
                    branch_id=str(line.branch_id),
                    sku_id=str(line.sku_id),
                    type=tx_type,
                    quantity_pieces=int(line.quantity_pieces),
                    image_urls=tuple(normalize_evidence(line.image_urls, line.image_url)),
                    user_id=actor.id,
                    user_name=actor.name,
                )
                for line, tx_type, tx_date in prepared
            )
            # mise à jour optimiste, quel que soit le résultat du store
            self._records = list(records) + self._records

        persisted = True
        warning = None
        try:
            self.store.insert([r.to_row() for r in records])
        except PersistenceError as exc:
            persisted = False
            warning = OFFLINE_WARNING
            logger.warning("batch %s kept locally only: %s", batch_id, exc)

        logger.info(
            "committed batch %s (%s, branch=%s, date=%s, lines=%d, persisted=%s)",
            batch_id,
            records[0].type.value,
            records[0].branch_id,
            records[0].date,
            len(records),
            persisted,
        )
        return CommitReceipt(
            batch_id=batch_id,
            timestamp=timestamp,
            records=records,
            persisted=persisted,
            warning=warning,
        )

    # ---------- Soft delete ----------
    def delete_batch(self, batch_id: str, actor_name: str) -> DeleteReceipt:
        """
        Archive un lot entier. Idempotent : un lot déjà archivé (ou inconnu)
        n'est ni re-tamponné ni signalé en erreur.

        Le reçu indique si le tampon a atteint le store durable ; sinon le
        prochain refresh() ferait réapparaître le lot comme actif.
        """
        if not batch_id:
            return DeleteReceipt(batch_id=batch_id, archived_lines=0, persisted=True)

        with self._lock:
            targets = [r for r in self._records if r.batch_id == batch_id and not r.is_deleted]
            if not targets:
                logger.debug("delete_batch %s: nothing active, no-op", batch_id)
                return DeleteReceipt(batch_id=batch_id, archived_lines=0, persisted=True)

            deleted_at = int(self._clock())
            self._records = [
                replace(r, deleted_at=deleted_at, deleted_by=actor_name)
                if r.batch_id == batch_id and not r.is_deleted
                else r
                for r in self._records
            ]

        persisted = True
        warning = None
        try:
            self.store.mark_deleted(batch_id, deleted_at, actor_name)
        except PersistenceError as exc:
            persisted = False
            warning = OFFLINE_DELETE_WARNING
            logger.warning("soft delete of batch %s kept locally only: %s", batch_id, exc)

        logger.info(
            "archived batch %s (%d lines) by %s (persisted=%s)",
            batch_id,
            len(targets),
            actor_name,
            persisted,
        )
        return DeleteReceipt(
            batch_id=batch_id,
            archived_lines=len(targets),
            persisted=persisted,
            warning=warning,
        )

    # ---------- Resync ----------
    def refresh(self) -> bool:
        """
        Resynchronisation complète depuis le store durable.
        En cas d'échec, l'état local est conservé.

        Les lignes créées ou archivées localement pendant la lecture du store
        priment sur la version chargée.
        """
        with self._lock:
            baseline = {r.id: r for r in self._records}

        try:
            rows = self.store.load_all()
        except PersistenceError as exc:
            logger.warning("refresh failed, keeping local snapshot: %s", exc)
            return False

        loaded = []
        for row in rows:
            try:
                loaded.append(TransactionRecord.from_row(row))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("skipping malformed row %s: %s", row.get("id"), exc)

        with self._lock:
            # records immuables : un objet différent = modifié pendant la lecture
            changed = {r.id: r for r in self._records if baseline.get(r.id) is not r}
            records = [changed.pop(r.id, r) for r in loaded]
            records.extend(changed.values())
            records.sort(key=lambda r: r.timestamp, reverse=True)
            self._records = records
            self._last_timestamp = max(
                [self._last_timestamp] + [r.timestamp for r in records]
            )
        logger.info("snapshot refreshed: %d records", len(records))
        return True


def _coerce_actor(actor: Actor | Mapping[str, Any] | None) -> Actor | None:
    if actor is None or isinstance(actor, Actor):
        return actor
    return Actor(id=actor.get("id"), name=actor.get("name") or "Unknown", role=actor.get("role"))

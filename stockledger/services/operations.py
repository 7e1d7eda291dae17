from __future__ import annotations

from datetime import date as date_cls, timedelta
from typing import Iterable

from stockledger.app.db.models.core_types import TransactionType
from stockledger.services.reconciliation import BatchSummary, LedgerView
from stockledger.services.records import TransactionRecord


def checkout_totals(snapshot: Iterable[TransactionRecord], date: str, branch_id: str) -> dict[str, int]:
    """
    Total sorti par SKU pour (date, branche).
    Information seulement : aucun plafond n'est appliqué aux retours.
    """
    totals: dict[str, int] = {}
    for tx in snapshot:
        if tx.is_deleted or tx.type != TransactionType.check_out:
            continue
        if tx.date != date or tx.branch_id != branch_id:
            continue
        totals[tx.sku_id] = totals.get(tx.sku_id, 0) + tx.quantity_pieces
    return totals


def previous_day(date: str) -> str:
    return (date_cls.fromisoformat(date) - timedelta(days=1)).isoformat()


def previous_day_returns(
    snapshot: Iterable[TransactionRecord],
    date: str,
    branch_id: str,
) -> dict[str, dict]:
    """
    Dernier retour (CHECK_IN) de la veille, par SKU, pour la branche.
    Strictement J-1 : un retour plus ancien n'est jamais proposé.
    """
    target = previous_day(date)
    latest: dict[str, TransactionRecord] = {}
    for tx in snapshot:
        if tx.is_deleted or tx.type != TransactionType.check_in:
            continue
        if tx.branch_id != branch_id or tx.date != target:
            continue
        current = latest.get(tx.sku_id)
        if current is None or tx.timestamp > current.timestamp:
            latest[tx.sku_id] = tx
    return {sku_id: {"qty": tx.quantity_pieces, "date": tx.date} for sku_id, tx in latest.items()}


def wastage_gallery(view: LedgerView, branch_id: str | None = None) -> list[BatchSummary]:
    items = [s for s in view.batches if s.type == TransactionType.waste and s.has_evidence]
    if branch_id is not None:
        items = [s for s in items if s.branch_id == branch_id]
    return items

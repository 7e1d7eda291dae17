from __future__ import annotations

import pandas as pd

from stockledger.services.reconciliation import LedgerView

EXPORT_COLUMNS = [
    "group_key",
    "batch_id",
    "date",
    "timestamp",
    "branch_id",
    "branch_name",
    "type",
    "sku_id",
    "sku_name",
    "qty",
    "batch_total_qty",
    "evidence_count",
    "user_name",
    "deleted_at",
    "deleted_by",
]


def batches_frame(view: LedgerView) -> pd.DataFrame:
    """Une ligne par article, dans l'ordre de tri du journal."""
    rows = [
        {
            "group_key": s.group_key,
            "batch_id": s.batch_id,
            "date": s.date,
            "timestamp": s.timestamp,
            "branch_id": s.branch_id,
            "branch_name": s.branch_name,
            "type": s.type.value,
            "sku_id": item.sku_id,
            "sku_name": item.sku_name,
            "qty": item.qty,
            "batch_total_qty": s.total_qty,
            "evidence_count": len(s.evidence),
            "user_name": s.user_name,
            "deleted_at": s.deleted_at,
            "deleted_by": s.deleted_by,
        }
        for s in view.batches
        for item in s.items
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def groups_frame(view: LedgerView) -> pd.DataFrame:
    rows = [
        {
            "date": g.date,
            "branch_id": g.branch_id,
            "branch_name": g.branch_name,
            "status": g.status.value,
            "check_out_batches": len(g.check_outs),
            "check_in_batches": len(g.check_ins),
        }
        for g in view.groups
    ]
    return pd.DataFrame(
        rows,
        columns=["date", "branch_id", "branch_name", "status", "check_out_batches", "check_in_batches"],
    )


def export_csv(view: LedgerView) -> str:
    return batches_frame(view).to_csv(index=False)

"""
Regroupement et réconciliation du journal.

Fonctions pures sur un snapshot de TransactionRecord : aucune I/O, aucun
état partagé, recalculées à chaque lecture.

Étapes de build_view :
    1. agrégation des lignes par lot (derive_group_key)
    2. tri déterministe : date métier desc, puis timestamp desc (stable)
    3. appariement CHECK_OUT / CHECK_IN par (date, branche)
    4. statut : complete / missing_return / only_return (présence seulement)
    5. tri des groupes : date desc
    6. RESTOCK / WASTE / ADJUSTMENT : liste non groupée, même tri

L'appariement ne compare PAS les quantités sorties et retournées.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from stockledger.app.db.models.core_types import (
    MATCHED_TYPES,
    ReconciliationStatus,
    TransactionType,
)
from stockledger.services.catalog import CatalogResolver, StaticCatalog
from stockledger.services.evidence import merge_evidence
from stockledger.services.records import TransactionRecord


@dataclass(frozen=True)
class BatchItem:
    transaction_id: str
    sku_id: str
    sku_name: str
    qty: int


@dataclass
class BatchSummary:
    group_key: str
    batch_id: str | None
    date: str
    timestamp: int
    branch_id: str
    branch_name: str
    type: TransactionType
    items: list[BatchItem] = field(default_factory=list)
    total_qty: int = 0
    evidence: list[str] = field(default_factory=list)
    user_name: str | None = None
    deleted_at: int | None = None
    deleted_by: str | None = None

    @property
    def has_evidence(self) -> bool:
        return bool(self.evidence)


@dataclass
class ReconciliationGroup:
    date: str
    branch_id: str
    branch_name: str
    check_outs: list[BatchSummary] = field(default_factory=list)
    check_ins: list[BatchSummary] = field(default_factory=list)
    status: ReconciliationStatus = ReconciliationStatus.missing_return


@dataclass
class LedgerView:
    batches: list[BatchSummary]
    groups: list[ReconciliationGroup]
    ungrouped: list[BatchSummary]


def derive_group_key(tx: TransactionRecord) -> str:
    """Clé de lot ; repli composite pour les lignes historiques sans batch_id."""
    if tx.batch_id:
        return tx.batch_id
    return f"{tx.timestamp}-{tx.branch_id}-{tx.type.value}"


def aggregate_batches(
    snapshot: Iterable[TransactionRecord],
    catalog: CatalogResolver | None = None,
) -> list[BatchSummary]:
    catalog = catalog or StaticCatalog()
    summaries: dict[str, BatchSummary] = {}
    lines_by_key: dict[str, list[TransactionRecord]] = {}

    for tx in snapshot:
        key = derive_group_key(tx)
        summary = summaries.get(key)
        if summary is None:
            summary = BatchSummary(
                group_key=key,
                batch_id=tx.batch_id,
                date=tx.date,
                timestamp=tx.timestamp,
                branch_id=tx.branch_id,
                branch_name=catalog.resolve_branch_name(tx.branch_id),
                type=tx.type,
                user_name=tx.user_name,
                deleted_at=tx.deleted_at,
                deleted_by=tx.deleted_by,
            )
            summaries[key] = summary
            lines_by_key[key] = []

        summary.items.append(
            BatchItem(
                transaction_id=tx.id,
                sku_id=tx.sku_id,
                sku_name=catalog.resolve_sku_name(tx.sku_id),
                qty=tx.quantity_pieces,
            )
        )
        # signe conservé (ADJUSTMENT)
        summary.total_qty += tx.quantity_pieces
        lines_by_key[key].append(tx)

    for key, summary in summaries.items():
        summary.evidence = merge_evidence(lines_by_key[key])

    return list(summaries.values())


def sort_batches(summaries: Iterable[BatchSummary]) -> list[BatchSummary]:
    # reverse=True garde l'ordre d'origine des clés égales
    return sorted(summaries, key=lambda s: (s.date, s.timestamp), reverse=True)


def classify(check_out_count: int, check_in_count: int) -> ReconciliationStatus:
    if check_out_count and check_in_count:
        return ReconciliationStatus.complete
    if check_out_count:
        return ReconciliationStatus.missing_return
    if check_in_count:
        return ReconciliationStatus.only_return
    raise ValueError("a reconciliation group needs at least one check-out or check-in")


def group_by_date_branch(sorted_summaries: Sequence[BatchSummary]) -> list[ReconciliationGroup]:
    groups: dict[tuple[str, str], ReconciliationGroup] = {}

    for summary in sorted_summaries:
        if summary.type not in MATCHED_TYPES:
            continue
        key = (summary.date, summary.branch_id)
        group = groups.get(key)
        if group is None:
            group = ReconciliationGroup(
                date=summary.date,
                branch_id=summary.branch_id,
                branch_name=summary.branch_name,
            )
            groups[key] = group
        if summary.type == TransactionType.check_out:
            group.check_outs.append(summary)
        else:
            group.check_ins.append(summary)

    for group in groups.values():
        group.status = classify(len(group.check_outs), len(group.check_ins))

    return sorted(groups.values(), key=lambda g: g.date, reverse=True)


def _coerce_type_filter(type_filter: TransactionType | str | None) -> TransactionType | None:
    if type_filter is None:
        return None
    if isinstance(type_filter, str) and type_filter.upper() == "ALL":
        return None
    return TransactionType(type_filter)


def build_view(
    snapshot: Iterable[TransactionRecord],
    type_filter: TransactionType | str | None = None,
    catalog: CatalogResolver | None = None,
) -> LedgerView:
    type_filter = _coerce_type_filter(type_filter)
    ordered = sort_batches(aggregate_batches(snapshot, catalog))

    if type_filter is not None and type_filter not in MATCHED_TYPES:
        # RESTOCK / WASTE / ADJUSTMENT seul : pas de regroupement
        only = [s for s in ordered if s.type == type_filter]
        return LedgerView(batches=only, groups=[], ungrouped=list(only))

    groups = group_by_date_branch(ordered)

    if type_filter is None:
        ungrouped = [s for s in ordered if s.type not in MATCHED_TYPES]
        return LedgerView(batches=ordered, groups=groups, ungrouped=ungrouped)

    # CHECK_OUT ou CHECK_IN : statut calculé sur les deux côtés,
    # seuls les groupes qui contiennent le type demandé sont gardés
    if type_filter == TransactionType.check_out:
        groups = [g for g in groups if g.check_outs]
    else:
        groups = [g for g in groups if g.check_ins]
    batches = [s for s in ordered if s.type == type_filter]
    return LedgerView(batches=batches, groups=groups, ungrouped=[])


def build_archive_view(
    snapshot: Iterable[TransactionRecord],
    type_filter: TransactionType | str | None = None,
    catalog: CatalogResolver | None = None,
) -> LedgerView:
    return build_view([r for r in snapshot if r.is_deleted], type_filter, catalog)


def build_active_view(
    snapshot: Iterable[TransactionRecord],
    type_filter: TransactionType | str | None = None,
    catalog: CatalogResolver | None = None,
) -> LedgerView:
    return build_view([r for r in snapshot if not r.is_deleted], type_filter, catalog)


def filter_snapshot(
    snapshot: Iterable[TransactionRecord],
    *,
    branch_id: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> list[TransactionRecord]:
    """Filtre par branche et plage de dates métier (bornes incluses)."""
    out = []
    for tx in snapshot:
        if branch_id is not None and tx.branch_id != branch_id:
            continue
        if date_from and tx.date < date_from:
            continue
        if date_to and tx.date > date_to:
            continue
        out.append(tx)
    return out


def flatten(summaries: Iterable[BatchSummary]) -> list[tuple[str, str, str, int]]:
    """(group_key, transaction_id, sku_id, qty) pour chaque ligne des lots."""
    return [
        (s.group_key, item.transaction_id, item.sku_id, item.qty)
        for s in summaries
        for item in s.items
    ]

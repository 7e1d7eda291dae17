from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from stockledger.app.api.deps import get_catalog, get_repository, optional_iso_date
from stockledger.app.db.models.core_types import TransactionType
from stockledger.app.schemas.transaction import (
    BatchSummaryRead,
    LedgerViewRead,
    ReconciliationGroupRead,
)
from stockledger.services.catalog import CatalogResolver
from stockledger.services.export import export_csv
from stockledger.services.ledger import TransactionRepository
from stockledger.services.operations import wastage_gallery
from stockledger.services.reconciliation import LedgerView, build_view, filter_snapshot

router = APIRouter(prefix="/ledger")


def _view(
    records,
    type_filter: TransactionType | None,
    branch_id: str | None,
    date_from: str | None,
    date_to: str | None,
    catalog: CatalogResolver,
) -> LedgerView:
    scoped = filter_snapshot(
        records,
        branch_id=branch_id,
        date_from=optional_iso_date(date_from),
        date_to=optional_iso_date(date_to),
    )
    return build_view(scoped, type_filter, catalog)


@router.get("", response_model=LedgerViewRead)
def get_ledger_view(
    type_filter: TransactionType | None = Query(default=None, alias="type"),
    branch_id: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    repo: TransactionRepository = Depends(get_repository),
    catalog: CatalogResolver = Depends(get_catalog),
):
    return _view(repo.active(), type_filter, branch_id, date_from, date_to, catalog)


@router.get("/archive", response_model=LedgerViewRead)
def get_archive_view(
    type_filter: TransactionType | None = Query(default=None, alias="type"),
    branch_id: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    repo: TransactionRepository = Depends(get_repository),
    catalog: CatalogResolver = Depends(get_catalog),
):
    """Même forme que la vue active, sourcée uniquement sur les lignes archivées."""
    return _view(repo.archived(), type_filter, branch_id, date_from, date_to, catalog)


@router.get("/reconciliation", response_model=list[ReconciliationGroupRead])
def get_reconciliation(
    branch_id: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    repo: TransactionRepository = Depends(get_repository),
    catalog: CatalogResolver = Depends(get_catalog),
):
    return _view(repo.active(), None, branch_id, date_from, date_to, catalog).groups


@router.get("/wastage-gallery", response_model=list[BatchSummaryRead])
def get_wastage_gallery(
    branch_id: str | None = None,
    repo: TransactionRepository = Depends(get_repository),
    catalog: CatalogResolver = Depends(get_catalog),
):
    view = build_view(repo.active(), TransactionType.waste, catalog)
    return wastage_gallery(view, branch_id=branch_id)


@router.get("/export.csv")
def export_ledger_csv(
    type_filter: TransactionType | None = Query(default=None, alias="type"),
    branch_id: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    archived: bool = False,
    repo: TransactionRepository = Depends(get_repository),
    catalog: CatalogResolver = Depends(get_catalog),
):
    records = repo.archived() if archived else repo.active()
    view = _view(records, type_filter, branch_id, date_from, date_to, catalog)
    return Response(
        content=export_csv(view),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="ledger.csv"'},
    )

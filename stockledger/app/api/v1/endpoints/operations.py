from __future__ import annotations

from fastapi import APIRouter, Depends

from stockledger.app.api.deps import get_repository, require_iso_date
from stockledger.app.schemas.transaction import PreviousReturnRead
from stockledger.services.ledger import TransactionRepository
from stockledger.services.operations import checkout_totals, previous_day_returns

router = APIRouter(prefix="/operations")


@router.get("/checkout-totals", response_model=dict[str, int])
def get_checkout_totals(
    date: str,
    branch_id: str,
    repo: TransactionRepository = Depends(get_repository),
):
    return checkout_totals(repo.active(), require_iso_date(date), branch_id)


@router.get("/previous-returns", response_model=dict[str, PreviousReturnRead])
def get_previous_returns(
    date: str,
    branch_id: str,
    repo: TransactionRepository = Depends(get_repository),
):
    """Retours de la veille (J-1 strict) pour pré-remplir la sortie du jour."""
    return previous_day_returns(repo.active(), require_iso_date(date), branch_id)

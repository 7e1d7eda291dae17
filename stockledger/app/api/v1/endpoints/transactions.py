from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from stockledger.app.api.deps import get_actor, get_repository, require_admin
from stockledger.app.schemas.transaction import (
    CommitBatchRequest,
    CommitBatchResponse,
    DeleteBatchResponse,
    RefreshResponse,
    TransactionRead,
)
from stockledger.services.errors import ValidationError
from stockledger.services.ledger import TransactionRepository
from stockledger.services.records import Actor

router = APIRouter(prefix="/transactions")


@router.get("", response_model=list[TransactionRead])
def list_transactions(repo: TransactionRepository = Depends(get_repository)):
    return repo.active()


@router.get("/archive", response_model=list[TransactionRead])
def list_archived_transactions(repo: TransactionRepository = Depends(get_repository)):
    """Archive d'audit : lignes supprimées logiquement, jamais effacées."""
    return repo.archived()


@router.post("/batches", response_model=CommitBatchResponse, status_code=201)
def commit_batch(
    payload: CommitBatchRequest,
    repo: TransactionRepository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    try:
        receipt = repo.commit_batch([line.model_dump() for line in payload.lines], actor)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    return CommitBatchResponse(
        batch_id=receipt.batch_id,
        timestamp=receipt.timestamp,
        line_count=len(receipt.records),
        persisted=receipt.persisted,
        warning=receipt.warning,
    )


@router.get("/batches/{batch_id}", response_model=list[TransactionRead])
def get_batch(batch_id: str, repo: TransactionRepository = Depends(get_repository)):
    rows = repo.get_batch(batch_id)
    if not rows:
        raise HTTPException(status_code=404, detail="Batch not found")
    return rows


@router.delete("/batches/{batch_id}", response_model=DeleteBatchResponse)
def delete_batch(
    batch_id: str,
    repo: TransactionRepository = Depends(get_repository),
    actor: Actor = Depends(require_admin),
):
    # idempotent : un lot déjà archivé ou inconnu répond 200 sans effet
    receipt = repo.delete_batch(batch_id, actor.name)
    archived = [r for r in repo.get_batch(batch_id) if r.is_deleted]
    return DeleteBatchResponse(
        batch_id=batch_id,
        archived_lines=len(archived),
        persisted=receipt.persisted,
        warning=receipt.warning,
    )


@router.post("/refresh", response_model=RefreshResponse)
def refresh_snapshot(repo: TransactionRepository = Depends(get_repository)):
    ok = repo.refresh()
    return RefreshResponse(refreshed=ok, records=len(repo.snapshot()))

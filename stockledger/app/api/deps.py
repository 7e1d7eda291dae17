from __future__ import annotations

from datetime import date as date_cls
from typing import Generator

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from stockledger.app.db.session import SessionLocal
from stockledger.app.db.models.core_types import ActorRole
from stockledger.services.catalog import CatalogResolver, load_catalog
from stockledger.services.ledger import TransactionRepository
from stockledger.services.records import Actor


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_repository(request: Request) -> TransactionRepository:
    return request.app.state.repository


def get_catalog(db: Session = Depends(get_db)) -> CatalogResolver:
    return load_catalog(db)


def get_actor(
    actor_id: str | None = Header(default=None, alias="X-Actor-Id"),
    actor_name: str | None = Header(default=None, alias="X-Actor-Name"),
    actor_role: str | None = Header(default=None, alias="X-Actor-Role"),
) -> Actor:
    name = (actor_name or "").strip() or "Unknown"
    role = (actor_role or "").strip().upper() or None
    return Actor(id=(actor_id or "").strip() or None, name=name, role=role)


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    # autorisation côté appelant : le moteur ne vérifie aucun rôle
    if actor.role != ActorRole.admin.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return actor


def require_iso_date(value: str) -> str:
    # "2024-5-1" ne doit pas passer : les dates sont comparées comme chaînes
    try:
        parsed = date_cls.fromisoformat(value)
    except ValueError:
        parsed = None
    if parsed is None or parsed.isoformat() != value:
        raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD")
    return value


def optional_iso_date(value: str | None) -> str | None:
    return None if value is None else require_iso_date(value)

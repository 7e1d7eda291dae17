from __future__ import annotations

import logging
from typing import Mapping, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockledger.app.db.models.models_v1 import Branch, Sku
from stockledger.app.db.models.core_types import CENTRAL_STORE_ID, CENTRAL_STORE_NAME

logger = logging.getLogger(__name__)


class CatalogResolver(Protocol):
    def resolve_sku_name(self, sku_id: str) -> str: ...

    def resolve_branch_name(self, branch_id: str) -> str: ...


class StaticCatalog:
    """Noms de référence ; repli sur l'id brut, jamais d'exception."""

    def __init__(
        self,
        skus: Mapping[str, str] | None = None,
        branches: Mapping[str, str] | None = None,
    ):
        self.skus = dict(skus or {})
        self.branches = {CENTRAL_STORE_ID: CENTRAL_STORE_NAME}
        self.branches.update(branches or {})

    def resolve_sku_name(self, sku_id: str) -> str:
        return self.skus.get(sku_id) or str(sku_id)

    def resolve_branch_name(self, branch_id: str) -> str:
        return self.branches.get(branch_id) or str(branch_id)


def load_catalog(db: Session) -> StaticCatalog:
    try:
        skus = {s.id: s.name for s in db.execute(select(Sku)).scalars().all()}
        branches = {b.id: b.name for b in db.execute(select(Branch)).scalars().all()}
    except SQLAlchemyError as exc:
        logger.warning("catalog lookup failed, falling back to raw ids: %s", exc)
        return StaticCatalog()
    return StaticCatalog(skus=skus, branches=branches)

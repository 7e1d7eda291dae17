from __future__ import annotations

import logging

from sqlalchemy import select

from stockledger.app.core.log import configure_logging
from stockledger.app.db.models.models_v1 import Base, Branch, Sku
from stockledger.app.db.models.core_types import CENTRAL_STORE_ID, CENTRAL_STORE_NAME
from stockledger.app.db.session import SessionLocal, engine

logger = logging.getLogger(__name__)

DEFAULT_BRANCHES = [
    (CENTRAL_STORE_ID, CENTRAL_STORE_NAME),
    ("b1", "Branch 1"),
    ("b2", "Branch 2"),
]

DEFAULT_SKUS = [
    # (id, name, category, pieces_per_packet, sort_order)
    ("sku-veg-steam", "Veg Steam Momo", "Steam", 50, 1),
    ("sku-chicken-steam", "Chicken Steam Momo", "Steam", 50, 2),
    ("sku-paneer-kurkure", "Paneer Kurkure Momo", "Kurkure", 40, 3),
    ("sku-wheat-veg", "Wheat Veg Momo", "Wheat", 50, 4),
]


def run_seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        # 1) Branches (dont le fridge central)
        for branch_id, name in DEFAULT_BRANCHES:
            if not db.scalar(select(Branch).where(Branch.id == branch_id)):
                db.add(Branch(id=branch_id, name=name, active=True))

        # 2) SKUs
        for sku_id, name, category, per_packet, order in DEFAULT_SKUS:
            if not db.scalar(select(Sku).where(Sku.id == sku_id)):
                db.add(
                    Sku(
                        id=sku_id,
                        name=name,
                        category=category,
                        pieces_per_packet=per_packet,
                        sort_order=order,
                    )
                )
        db.commit()
        logger.info("seed ok: %d branches, %d skus", len(DEFAULT_BRANCHES), len(DEFAULT_SKUS))
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run_seed()

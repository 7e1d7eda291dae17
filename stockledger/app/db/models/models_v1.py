from __future__ import annotations

from sqlalchemy import (
    String,
    Integer,
    BigInteger,
    Boolean,
    Text,
    Enum,
    JSON,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.app.db.base import Base
from stockledger.app.db.models.core_types import TransactionType

__all__ = ["Base", "Branch", "Sku", "StockTransaction"]


# ---------- REFERENCE DATA (lecture seule pour le moteur) ----------
class Branch(Base):
    __tablename__ = "branches"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Sku(Base):
    __tablename__ = "skus"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(64))
    pieces_per_packet: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (CheckConstraint("pieces_per_packet > 0", name="ck_sku_pieces_per_packet_pos"),)


# ---------- LEDGER ----------
class StockTransaction(Base):
    """
    Une ligne du journal de mouvements.

    Jamais modifiée après écriture, sauf le tampon de suppression logique
    (deleted_at / deleted_by). Jamais supprimée physiquement.
    """

    __tablename__ = "stock_transactions"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # NULL pour les lignes historiques écrites avant les lots
    batch_id: Mapped[str | None] = mapped_column(String(64), index=True)

    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch ms
    date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD (date métier)

    branch_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sku_id: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, name="transaction_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    quantity_pieces: Mapped[int] = mapped_column(Integer, nullable=False)

    image_urls: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    # ancienne colonne photo unique, lue mais jamais écrite
    image_url: Mapped[str | None] = mapped_column(Text)

    user_id: Mapped[str | None] = mapped_column(String(64))
    user_name: Mapped[str | None] = mapped_column(String(200))

    deleted_at: Mapped[int | None] = mapped_column(BigInteger)
    deleted_by: Mapped[str | None] = mapped_column(String(200))

    __table_args__ = (
        Index("ix_stock_transactions_date_branch", "date", "branch_id"),
        Index("ix_stock_transactions_deleted_at", "deleted_at"),
    )

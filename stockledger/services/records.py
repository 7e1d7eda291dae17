from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import date as date_cls
from typing import Any, Mapping

from stockledger.app.db.models.core_types import TransactionType
from stockledger.services.errors import ValidationError
from stockledger.services.evidence import normalize_evidence

REQUIRED_LINE_FIELDS = ("branch_id", "sku_id", "type", "quantity_pieces", "date")


@dataclass(frozen=True)
class Actor:
    id: str | None
    name: str
    role: str | None = None


@dataclass
class LineItem:
    """Une ligne saisie par l'utilisateur, avant attribution du lot."""

    branch_id: str | None
    sku_id: str | None
    type: TransactionType | str | None
    quantity_pieces: int | None
    date: str | date_cls | None
    image_urls: list[str] = field(default_factory=list)
    image_url: str | None = None  # ancien format, replié dans image_urls


@dataclass(frozen=True)
class TransactionRecord:
    id: str
    batch_id: str | None
    timestamp: int
    date: str
    branch_id: str
    sku_id: str
    type: TransactionType
    quantity_pieces: int
    image_urls: tuple[str, ...] = ()
    user_id: str | None = None
    user_name: str | None = None
    deleted_at: int | None = None
    deleted_by: str | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_row(self) -> dict[str, Any]:
        row = asdict(self)
        row["type"] = self.type.value
        row["image_urls"] = list(self.image_urls)
        return row

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TransactionRecord":
        """Frontière d'ingestion : toute ligne du store passe par ici."""
        return cls(
            id=str(row["id"]),
            batch_id=row.get("batch_id") or None,
            timestamp=int(row["timestamp"]),
            date=str(row["date"]),
            branch_id=str(row["branch_id"]),
            sku_id=str(row["sku_id"]),
            type=TransactionType(row["type"]),
            quantity_pieces=int(row["quantity_pieces"]),
            image_urls=tuple(normalize_evidence(row.get("image_urls"), row.get("image_url"))),
            user_id=row.get("user_id"),
            user_name=row.get("user_name"),
            deleted_at=int(row["deleted_at"]) if row.get("deleted_at") is not None else None,
            deleted_by=row.get("deleted_by"),
        )


def coerce_line(raw: LineItem | Mapping[str, Any]) -> LineItem:
    if isinstance(raw, LineItem):
        return raw
    if isinstance(raw, Mapping):
        return LineItem(
            branch_id=raw.get("branch_id"),
            sku_id=raw.get("sku_id"),
            type=raw.get("type"),
            quantity_pieces=raw.get("quantity_pieces"),
            date=raw.get("date"),
            image_urls=list(raw.get("image_urls") or []),
            image_url=raw.get("image_url"),
        )
    raise ValidationError(f"unsupported line item: {type(raw).__name__}")


def validate_line(line: LineItem, index: int) -> tuple[TransactionType, str]:
    for name in REQUIRED_LINE_FIELDS:
        value = getattr(line, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"missing required field '{name}'", line_index=index)

    try:
        tx_type = TransactionType(line.type)
    except ValueError:
        raise ValidationError(f"unknown transaction type '{line.type}'", line_index=index)

    qty = line.quantity_pieces
    if isinstance(qty, bool) or not isinstance(qty, int):
        raise ValidationError("quantity_pieces must be an integer", line_index=index)
    if tx_type == TransactionType.adjustment:
        if qty == 0:
            raise ValidationError("adjustment quantity must be non-zero", line_index=index)
    elif qty <= 0:
        raise ValidationError("quantity_pieces must be > 0", line_index=index)

    raw_date = line.date.isoformat() if isinstance(line.date, date_cls) else str(line.date).strip()
    try:
        parsed = date_cls.fromisoformat(raw_date)
    except ValueError:
        raise ValidationError(f"date must be YYYY-MM-DD (got '{line.date}')", line_index=index)
    # fromisoformat accepte aussi "20240501" ; on impose la forme étendue
    if parsed.isoformat() != raw_date:
        raise ValidationError(f"date must be YYYY-MM-DD (got '{line.date}')", line_index=index)

    return tx_type, raw_date

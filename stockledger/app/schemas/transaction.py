from pydantic import BaseModel, ConfigDict, Field

from stockledger.app.db.models.core_types import ReconciliationStatus, TransactionType


class LineItemIn(BaseModel):
    branch_id: str = Field(min_length=1, max_length=64)
    sku_id: str = Field(min_length=1, max_length=64)
    type: TransactionType
    quantity_pieces: int
    date: str = Field(description="Operational date, YYYY-MM-DD")
    image_urls: list[str] = Field(default_factory=list)
    image_url: str | None = Field(default=None, description="Deprecated single photo field")


class CommitBatchRequest(BaseModel):
    lines: list[LineItemIn]


class CommitBatchResponse(BaseModel):
    batch_id: str
    timestamp: int
    line_count: int
    persisted: bool
    warning: str | None = None


class DeleteBatchResponse(BaseModel):
    batch_id: str
    archived_lines: int
    persisted: bool = True
    warning: str | None = None


class RefreshResponse(BaseModel):
    refreshed: bool
    records: int


class TransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    batch_id: str | None
    timestamp: int
    date: str
    branch_id: str
    sku_id: str
    type: TransactionType
    quantity_pieces: int
    image_urls: list[str]
    user_id: str | None
    user_name: str | None
    deleted_at: int | None  # lecture seule, tampon de suppression logique
    deleted_by: str | None


class BatchItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: str
    sku_id: str
    sku_name: str
    qty: int


class BatchSummaryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    group_key: str
    batch_id: str | None
    date: str
    timestamp: int
    branch_id: str
    branch_name: str
    type: TransactionType
    items: list[BatchItemRead]
    total_qty: int
    evidence: list[str]
    user_name: str | None
    deleted_at: int | None
    deleted_by: str | None


class ReconciliationGroupRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: str
    branch_id: str
    branch_name: str
    status: ReconciliationStatus
    check_outs: list[BatchSummaryRead]
    check_ins: list[BatchSummaryRead]


class LedgerViewRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batches: list[BatchSummaryRead]
    groups: list[ReconciliationGroupRead]
    ungrouped: list[BatchSummaryRead]


class PreviousReturnRead(BaseModel):
    qty: int
    date: str

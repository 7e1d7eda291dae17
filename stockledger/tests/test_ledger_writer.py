import threading

import pytest

from stockledger.app.db.models.core_types import TransactionType
from stockledger.services.errors import ValidationError
from stockledger.services.ledger import OFFLINE_WARNING, TransactionRepository
from stockledger.services.records import Actor, LineItem

from conftest import BlockingStore, FailingStore


def test_commit_shares_one_batch_id_and_timestamp(repository, actor, make_line):
    receipt = repository.commit_batch(
        [make_line(sku_id="s1"), make_line(sku_id="s2", quantity_pieces=4), make_line(sku_id="s3")],
        actor,
    )

    assert len(receipt.records) == 3
    assert {r.batch_id for r in receipt.records} == {receipt.batch_id}
    assert {r.timestamp for r in receipt.records} == {receipt.timestamp}
    assert len({r.id for r in receipt.records}) == 3
    assert receipt.persisted is True
    assert receipt.warning is None


def test_commit_persists_all_lines_in_one_request(store, repository, actor, make_line):
    repository.commit_batch([make_line(), make_line(sku_id="s2")], actor)

    assert len(store.rows) == 2
    assert store.rows[0]["type"] == "CHECK_OUT"
    assert store.rows[0]["deleted_at"] is None
    assert store.rows[0]["image_urls"] == []


def test_commit_stamps_actor_identity(repository, make_line):
    receipt = repository.commit_batch([make_line()], Actor(id="u9", name="Ravi", role="MANAGER"))
    rec = receipt.records[0]
    assert rec.user_id == "u9"
    assert rec.user_name == "Ravi"


def test_new_records_are_prepended(repository, clock, actor, make_line):
    first = repository.commit_batch([make_line()], actor)
    clock.advance()
    second = repository.commit_batch([make_line(type="CHECK_IN", quantity_pieces=3)], actor)

    snap = repository.snapshot()
    assert snap[0].batch_id == second.batch_id
    assert snap[-1].batch_id == first.batch_id


def test_timestamps_are_monotonic_even_with_a_frozen_clock(repository, actor, make_line):
    a = repository.commit_batch([make_line()], actor)
    b = repository.commit_batch([make_line()], actor)
    assert b.timestamp > a.timestamp
    assert a.batch_id != b.batch_id


def test_empty_batch_is_rejected_before_persistence():
    store = FailingStore()
    repo = TransactionRepository(store)
    with pytest.raises(ValidationError):
        repo.commit_batch([], None)
    assert store.insert_calls == 0
    assert repo.snapshot() == []


@pytest.mark.parametrize("field", ["branch_id", "sku_id", "type", "quantity_pieces", "date"])
def test_missing_required_field_rejects_whole_batch(field, store, repository, actor, make_line):
    bad = make_line()
    bad[field] = None

    with pytest.raises(ValidationError) as exc:
        repository.commit_batch([make_line(), bad], actor)

    assert "line 1" in str(exc.value)
    assert store.rows == []
    assert repository.snapshot() == []


@pytest.mark.parametrize(
    "overrides",
    [
        {"type": "TELEPORT"},
        {"quantity_pieces": "ten"},
        {"quantity_pieces": 0},
        {"quantity_pieces": -5},
        {"date": "01/05/2024"},
        {"date": "20240501"},
    ],
)
def test_invalid_line_values_are_rejected(overrides, repository, actor, make_line):
    with pytest.raises(ValidationError):
        repository.commit_batch([make_line(**overrides)], actor)
    assert repository.snapshot() == []


def test_adjustment_accepts_signed_quantity(repository, actor, make_line):
    receipt = repository.commit_batch(
        [make_line(type="ADJUSTMENT", quantity_pieces=-7, branch_id="FRIDGE")], actor
    )
    assert receipt.records[0].quantity_pieces == -7
    assert receipt.records[0].type == TransactionType.adjustment


def test_lines_of_one_batch_must_share_date_branch_and_type(repository, actor, make_line):
    with pytest.raises(ValidationError):
        repository.commit_batch([make_line(), make_line(date="2024-05-02")], actor)
    with pytest.raises(ValidationError):
        repository.commit_batch([make_line(), make_line(branch_id="b2")], actor)
    with pytest.raises(ValidationError):
        repository.commit_batch([make_line(), make_line(type="CHECK_IN")], actor)


def test_persistence_failure_keeps_local_snapshot_and_warns(clock, actor, make_line, caplog):
    store = FailingStore()
    repo = TransactionRepository(store, clock=clock)

    with caplog.at_level("WARNING", logger="stockledger.services.ledger"):
        receipt = repo.commit_batch([make_line(), make_line(sku_id="s2")], actor)

    assert store.insert_calls == 1
    assert receipt.persisted is False
    assert receipt.warning == OFFLINE_WARNING
    assert [r.batch_id for r in repo.active()] == [receipt.batch_id] * 2
    assert "kept locally only" in caplog.text


def test_retry_after_failure_gets_a_new_batch_id(clock, actor, make_line):
    repo = TransactionRepository(FailingStore(), clock=clock)
    first = repo.commit_batch([make_line()], actor)
    second = repo.commit_batch([make_line()], actor)
    # pas de dédoublonnage : les deux lots coexistent
    assert first.batch_id != second.batch_id
    assert len(repo.active()) == 2


def test_line_item_objects_and_legacy_image_url(repository, actor):
    line = LineItem(
        branch_id="b1",
        sku_id="s1",
        type=TransactionType.waste,
        quantity_pieces=3,
        date="2024-05-01",
        image_urls=["a.jpg"],
        image_url="legacy.jpg",
    )
    receipt = repository.commit_batch([line], actor)
    assert receipt.records[0].image_urls == ("a.jpg", "legacy.jpg")


def test_commit_requires_an_actor(repository, make_line):
    with pytest.raises(ValidationError):
        repository.commit_batch([make_line()], None)
    assert repository.snapshot() == []


def test_readers_do_not_wait_behind_a_slow_insert(clock, actor, make_line):
    store = BlockingStore()
    repo = TransactionRepository(store, clock=clock)
    receipts, seen = [], []

    writer = threading.Thread(target=lambda: receipts.append(repo.commit_batch([make_line()], actor)))
    writer.start()
    try:
        assert store.entered.wait(timeout=5)
        reader = threading.Thread(target=lambda: seen.append(repo.snapshot()))
        reader.start()
        reader.join(timeout=2)
        assert not reader.is_alive()
        # déjà visible localement pendant que le store écrit encore
        assert len(seen[0]) == 1
    finally:
        store.release.set()
        writer.join(timeout=5)

    assert receipts[0].persisted is True
    assert len(store.rows) == 1

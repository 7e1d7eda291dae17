import dataclasses
import json

import pytest
import requests
from sqlalchemy import select

from stockledger.app.db.models.models_v1 import StockTransaction
from stockledger.app.db.models.core_types import TransactionType
from stockledger.app.db.session import SessionLocal
from stockledger.services.errors import PersistenceError
from stockledger.services.ledger import TransactionRepository
from stockledger.app.core.config import settings
from stockledger.services.stores import (
    MemoryStore,
    RestTransactionStore,
    SqlTransactionStore,
    build_store,
)


def _row(**overrides):
    row = {
        "id": "t1",
        "batch_id": "B1",
        "timestamp": 1_714_550_400_000,
        "date": "2024-05-01",
        "branch_id": "b1",
        "sku_id": "s1",
        "type": "CHECK_OUT",
        "quantity_pieces": 10,
        "image_urls": [],
        "user_id": "u1",
        "user_name": "Asha",
        "deleted_at": None,
        "deleted_by": None,
    }
    row.update(overrides)
    return row


# ---------- SQL ----------
def test_sql_store_round_trip(db_session):
    store = SqlTransactionStore(SessionLocal)
    store.insert([_row(), _row(id="t2", sku_id="s2", image_urls=["a.jpg"])])

    rows = db_session.execute(select(StockTransaction).order_by(StockTransaction.id)).scalars().all()
    assert [r.id for r in rows] == ["t1", "t2"]
    assert rows[0].type == TransactionType.check_out
    assert rows[1].image_urls == ["a.jpg"]

    loaded = {r["id"]: r for r in store.load_all()}
    assert loaded["t2"]["image_urls"] == ["a.jpg"]
    assert loaded["t1"]["deleted_at"] is None


def test_sql_mark_deleted_only_stamps_active_rows(db_session):
    store = SqlTransactionStore(SessionLocal)
    store.insert([_row(), _row(id="t2"), _row(id="t3", batch_id="OTHER")])

    assert store.mark_deleted("B1", 111, "Admin") == 2
    assert store.mark_deleted("B1", 222, "Again") == 0

    rows = {r["id"]: r for r in store.load_all()}
    assert rows["t1"]["deleted_at"] == 111
    assert rows["t2"]["deleted_by"] == "Admin"
    assert rows["t3"]["deleted_at"] is None


def test_sql_insert_failure_is_wrapped(db_session):
    store = SqlTransactionStore(SessionLocal)
    store.insert([_row()])
    with pytest.raises(PersistenceError) as exc:
        store.insert([_row()])  # clé primaire en double
    assert exc.value.operation == "insert"


def test_repository_refresh_from_sql_folds_legacy_image_url(db_session):
    db_session.add(
        StockTransaction(
            id="legacy-1",
            batch_id=None,
            timestamp=1_600_000_000_000,
            date="2020-09-13",
            branch_id="b1",
            sku_id="s1",
            type=TransactionType.waste,
            quantity_pieces=4,
            image_urls=[],
            image_url="old-photo.jpg",
        )
    )
    db_session.commit()

    repo = TransactionRepository(SqlTransactionStore(SessionLocal))
    assert repo.refresh() is True

    [rec] = repo.snapshot()
    assert rec.batch_id is None
    assert rec.image_urls == ("old-photo.jpg",)


def test_repository_commit_and_delete_through_sql(db_session, clock, actor, make_line):
    repo = TransactionRepository(SqlTransactionStore(SessionLocal), clock=clock)
    receipt = repo.commit_batch([make_line(), make_line(sku_id="s2")], actor)
    assert receipt.persisted is True

    repo.delete_batch(receipt.batch_id, "Admin")

    fresh = TransactionRepository(SqlTransactionStore(SessionLocal))
    fresh.refresh()
    assert fresh.active() == []
    assert {r.deleted_by for r in fresh.archived()} == {"Admin"}


def test_refresh_failure_keeps_local_state(actor, make_line):
    from conftest import FailingStore

    repo = TransactionRepository(FailingStore())
    repo.commit_batch([make_line()], actor)
    assert repo.refresh() is False
    assert len(repo.snapshot()) == 1


# ---------- REST ----------
def _response(status, body=None):
    resp = requests.Response()
    resp.status_code = status
    resp._content = json.dumps(body).encode() if body is not None else b""
    resp.url = "http://store.test/rest/v1/stock_transactions"
    return resp


def test_rest_insert_posts_one_request_with_timeout(monkeypatch):
    calls = []

    def fake_post(self, url, **kwargs):
        calls.append((url, kwargs))
        return _response(201)

    monkeypatch.setattr(requests.Session, "post", fake_post)
    store = RestTransactionStore("http://store.test/rest/v1/", api_key="k", timeout=2.5)
    store.insert([_row(), _row(id="t2")])

    [(url, kwargs)] = calls
    assert url == "http://store.test/rest/v1/stock_transactions"
    assert len(kwargs["json"]) == 2
    assert kwargs["timeout"] == 2.5
    assert store.session.headers["apikey"] == "k"


def test_rest_errors_become_persistence_errors(monkeypatch):
    def refused(self, url, **kwargs):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(requests.Session, "post", refused)
    monkeypatch.setattr(requests.Session, "get", lambda self, url, **kw: _response(503, {"message": "down"}))

    store = RestTransactionStore("http://store.test/rest/v1")
    with pytest.raises(PersistenceError):
        store.insert([_row()])
    with pytest.raises(PersistenceError):
        store.load_all()


def test_rest_mark_deleted_filters_active_rows_of_batch(monkeypatch):
    seen = {}

    def fake_patch(self, url, **kwargs):
        seen.update(kwargs)
        return _response(200, [_row(deleted_at=5, deleted_by="Admin")])

    monkeypatch.setattr(requests.Session, "patch", fake_patch)
    store = RestTransactionStore("http://store.test/rest/v1")

    assert store.mark_deleted("B1", 5, "Admin") == 1
    assert seen["params"] == {"batch_id": "eq.B1", "deleted_at": "is.null"}
    assert seen["json"] == {"deleted_at": 5, "deleted_by": "Admin"}


def test_rest_backed_repository_survives_outage(monkeypatch, clock, actor, make_line):
    def timed_out(self, url, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(requests.Session, "post", timed_out)
    repo = TransactionRepository(RestTransactionStore("http://store.test/rest/v1"), clock=clock)

    receipt = repo.commit_batch([make_line()], actor)
    assert receipt.persisted is False
    assert len(repo.active()) == 1


def test_build_store_picks_backend_from_settings():
    assert isinstance(build_store(dataclasses.replace(settings, store_backend="memory")), MemoryStore)
    assert isinstance(
        build_store(dataclasses.replace(settings, store_backend="sql"), SessionLocal),
        SqlTransactionStore,
    )

    rest = build_store(
        dataclasses.replace(
            settings,
            store_backend="rest",
            store_rest_url="https://example.test/rest/v1/",
            store_timeout_seconds=2.0,
        )
    )
    assert isinstance(rest, RestTransactionStore)
    assert rest.base_url == "https://example.test/rest/v1"
    assert rest.timeout == 2.0


def test_build_store_rejects_incomplete_config():
    with pytest.raises(ValueError):
        build_store(dataclasses.replace(settings, store_backend="rest", store_rest_url=""))
    with pytest.raises(ValueError):
        build_store(dataclasses.replace(settings, store_backend="mongo"))


class _SlowLoadStore(MemoryStore):
    """load_all copie les lignes puis laisse passer des écritures avant de répondre."""

    during_load = None

    def load_all(self):
        rows = super().load_all()
        if self.during_load is not None:
            hook, self.during_load = self.during_load, None
            hook()
        return rows


def test_refresh_keeps_writes_made_while_loading(clock, actor, make_line):
    store = _SlowLoadStore()
    repo = TransactionRepository(store, clock=clock)
    first = repo.commit_batch([make_line()], actor)
    later = {}

    def concurrent_writes():
        clock.advance()
        later["receipt"] = repo.commit_batch([make_line(sku_id="s2")], actor)
        repo.delete_batch(first.batch_id, "Admin")

    store.during_load = concurrent_writes

    assert repo.refresh() is True
    assert [r.batch_id for r in repo.active()] == [later["receipt"].batch_id]
    assert [r.batch_id for r in repo.archived()] == [first.batch_id]

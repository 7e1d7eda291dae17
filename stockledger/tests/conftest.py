import os
import threading

# base en mémoire pour toute la session de tests (avant tout import du projet)
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["STORE_BACKEND"] = "memory"
os.environ["AUTO_CREATE_SCHEMA"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from stockledger.app.api.deps import get_catalog, get_repository
from stockledger.app.db.session import SessionLocal, engine
from stockledger.app.db.models.models_v1 import Base
from stockledger.app.main import app
from stockledger.services.catalog import StaticCatalog
from stockledger.services.errors import PersistenceError
from stockledger.services.ledger import TransactionRepository
from stockledger.services.records import Actor
from stockledger.services.stores import MemoryStore

START_MS = 1_714_550_400_000  # 2024-05-01T08:00:00Z


class FakeClock:
    """Horloge contrôlée : chaque appel renvoie `now`, avance à la main."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1000) -> int:
        self.now += ms
        return self.now


class FailingStore(MemoryStore):
    """Store injoignable : chaque écriture échoue."""

    def __init__(self):
        super().__init__()
        self.insert_calls = 0
        self.delete_calls = 0

    def insert(self, rows):
        self.insert_calls += 1
        raise PersistenceError("insert", ConnectionError("store unreachable"))

    def mark_deleted(self, batch_id, deleted_at, deleted_by):
        self.delete_calls += 1
        raise PersistenceError("mark_deleted", ConnectionError("store unreachable"))

    def load_all(self):
        raise PersistenceError("load_all", ConnectionError("store unreachable"))


class BlockingStore(MemoryStore):
    """Store lent : chaque écriture attend `release` (signale `entered` en entrant)."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def insert(self, rows):
        self.entered.set()
        self.release.wait(timeout=5)
        super().insert(rows)

    def mark_deleted(self, batch_id, deleted_at, deleted_by):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().mark_deleted(batch_id, deleted_at, deleted_by)


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Session DB isolée par test.

    Schéma créé avant le test et supprimé après : la base sqlite en mémoire
    est partagée (StaticPool), rien ne fuit d'un test à l'autre.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def repository(store, clock) -> TransactionRepository:
    return TransactionRepository(store, clock=clock)


@pytest.fixture
def actor() -> Actor:
    return Actor(id="u1", name="Asha", role="STAFF")


@pytest.fixture
def catalog() -> StaticCatalog:
    return StaticCatalog(
        skus={"s1": "Veg Steam Momo", "s2": "Chicken Steam Momo", "s3": "Paneer Kurkure Momo"},
        branches={"b1": "Branch 1", "b2": "Branch 2"},
    )


@pytest.fixture
def make_line():
    def _make(**overrides):
        line = {
            "branch_id": "b1",
            "sku_id": "s1",
            "type": "CHECK_OUT",
            "quantity_pieces": 10,
            "date": "2024-05-01",
        }
        line.update(overrides)
        return line

    return _make


@pytest.fixture
def client(repository, catalog):
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_catalog] = lambda: catalog
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

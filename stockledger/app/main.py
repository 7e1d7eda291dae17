import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from stockledger.app.api.v1.router import router as v1_router
from stockledger.app.core.config import Settings, settings
from stockledger.app.core.log import configure_logging
from stockledger.app.db.models.models_v1 import Base
from stockledger.app.db.session import SessionLocal, engine
from stockledger.services.ledger import TransactionRepository
from stockledger.services.stores import build_store

logger = logging.getLogger(__name__)


def build_repository(cfg: Settings) -> TransactionRepository:
    if cfg.store_backend == "sql" and cfg.auto_create_schema:
        try:
            Base.metadata.create_all(bind=engine)
        except SQLAlchemyError as exc:
            logger.warning("schema bootstrap skipped, database unreachable: %s", exc)

    repo = TransactionRepository(build_store(cfg, SessionLocal))
    # chargement initial ; en cas d'échec on démarre sur un snapshot vide
    repo.refresh()
    return repo


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    app.state.repository = build_repository(settings)
    logger.info("stock ledger started (store=%s)", settings.store_backend)
    yield


app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(v1_router, prefix="/v1")

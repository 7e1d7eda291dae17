from fastapi import APIRouter

from stockledger.app.api.v1.endpoints.health import router as health_router
from stockledger.app.api.v1.endpoints.transactions import router as transactions_router
from stockledger.app.api.v1.endpoints.ledger import router as ledger_router
from stockledger.app.api.v1.endpoints.operations import router as operations_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(transactions_router, tags=["transactions"])
router.include_router(ledger_router, tags=["ledger"])
router.include_router(operations_router, tags=["operations"])

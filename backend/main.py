"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import alerts, holdings, portfolio, scheduler
from api.scheduler import get_scheduler
from config import settings
from database import init_db
from logging_config import setup_logging
from services.evaluation_scheduler import (
    EvaluationScheduler,
    close_evaluation_scheduler,
    get_evaluation_scheduler,
)

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and run the evaluation scheduler for the app's lifetime."""
    init_db()

    if settings.SCHEDULER_ENABLED:
        try:
            get_evaluation_scheduler().start()
        except Exception:
            logger.warning("Evaluation scheduler failed to start", exc_info=True)
    else:
        logger.info("Evaluation scheduler disabled; cycles run only on demand")

    yield

    close_evaluation_scheduler()


app = FastAPI(
    title="Cryptofolio",
    description="Crypto holdings valuation and price alerts",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(holdings.router)
app.include_router(alerts.router)
app.include_router(portfolio.router)
app.include_router(scheduler.router)


@app.get("/health")
def health_check(evaluation_scheduler: EvaluationScheduler = Depends(get_scheduler)):
    """Liveness plus whether periodic evaluation cycles are running."""
    return {"status": "ok", "scheduler_running": evaluation_scheduler.is_running}

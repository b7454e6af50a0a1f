"""
FastAPI app entrypoint.

Notifier service: HTTP trigger + diagnostics, and an APScheduler interval job that runs
the notifier cycle in-process when SCHEDULER_ENABLED.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from parkwatch.api.routes import notifications, notify
from parkwatch.config import settings
from parkwatch.core.constants import NOTIFY_JOB_ID
from parkwatch.scheduler.notify_job import run_notify_job

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.scheduler_enabled:
        _scheduler.add_job(
            run_notify_job,
            "interval",
            seconds=settings.notify_interval_seconds,
            id=NOTIFY_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        _scheduler.start()
        app.state.scheduler = _scheduler
        logger.info("Notify job scheduled every %ss", settings.notify_interval_seconds)
    else:
        logger.info("Scheduler disabled; trigger runs with POST /notify/run")
    yield
    if _scheduler.running:
        _scheduler.shutdown(wait=False)


app = FastAPI(title="Parkwatch Notifier", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notify.router, tags=["notify"])
app.include_router(notifications.router, tags=["notifications"])


@app.get("/", include_in_schema=False)
def root():
    return {"message": "Parkwatch notifier", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}

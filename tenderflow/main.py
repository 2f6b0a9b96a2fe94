"""
TenderFlow - Procurement lifecycle service

Main application entry point with FastAPI and APScheduler.
"""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tenderflow.api import api_router
from tenderflow.api.health import router as health_router
from tenderflow.config import settings
from tenderflow.scheduler import (
    close_expired_tenders_job,
    deadline_reminders_job,
    job_stats,
    retry_outbox_job,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

# Initialize scheduler
scheduler = AsyncIOScheduler()


def setup_scheduler():
    """Configure scheduled jobs."""
    scheduler.add_job(
        close_expired_tenders_job,
        trigger=IntervalTrigger(minutes=settings.close_expired_interval_minutes),
        id="close_expired_tenders",
        name="Close Expired Tenders",
        replace_existing=True,
    )

    scheduler.add_job(
        deadline_reminders_job,
        trigger=IntervalTrigger(hours=settings.reminder_interval_hours),
        id="deadline_reminders",
        name="Deadline Reminders",
        replace_existing=True,
    )

    scheduler.add_job(
        retry_outbox_job,
        trigger=IntervalTrigger(minutes=settings.outbox_interval_minutes),
        id="retry_outbox",
        name="Retry Failed Emails",
        replace_existing=True,
    )

    logger.info("Scheduler jobs configured")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("Starting TenderFlow application...")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Base URL: {settings.app_base_url}")
    if not settings.email_enabled:
        logger.warning("Email sending is disabled")

    setup_scheduler()
    scheduler.start()
    logger.info("Scheduler started")

    yield

    logger.info("Shutting down TenderFlow application...")
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")


app = FastAPI(
    title="TenderFlow",
    description="Procurement lifecycle: tenders, bids, award, standstill and contracts",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if not settings.is_production else [settings.app_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health routes at root for platform probes
app.include_router(health_router, tags=["Health"])

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {
        "service": "TenderFlow",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs" if not settings.is_production else None,
    }


@app.get("/scheduler/status")
async def scheduler_status():
    """Get scheduler jobs status."""
    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger),
        })
    return {"jobs": jobs, "running": scheduler.running, "stats": job_stats.all_to_dict()}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tenderflow.main:app",
        host="0.0.0.0",
        port=8080,
        reload=not settings.is_production,
    )

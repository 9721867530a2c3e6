import logging
from fastapi import FastAPI
from apscheduler.schedulers.background import BackgroundScheduler

from investor_sync.core.config import load_config
from investor_sync.core.errors import SyncAlreadyRunning
from investor_sync.observability.logger import init_sentry, timing
from investor_sync.routes.contacts import router as contacts_router
from investor_sync.routes.health import router as health_router, update_last_run
from investor_sync.routes.sync import router as sync_router
from investor_sync.sync.orchestrator import execute_sync, get_run_guard

logger = logging.getLogger("investor_sync")
logging.basicConfig(level=logging.INFO)

app = FastAPI(title="Investor Contact Sync")

config = load_config()

# Scheduler (runs in-process)
scheduler = BackgroundScheduler(timezone=config.timezone)
SCHEDULER_JOB_ID = "contact_sync"


def sync_job():
    try:
        with timing("scheduled_sync") as timer:
            result = execute_sync(get_run_guard())
        update_last_run(result, trigger="scheduler", duration_ms=timer.get_duration_ms())
        if result.success:
            logger.info(
                "Scheduled sync %s done: %d contacts, %d events",
                result.run_id, result.contacts_processed, result.events_processed,
            )
        else:
            logger.error("Scheduled sync %s failed in %s: %s", result.run_id, result.failed_state, result.error)
    except SyncAlreadyRunning:
        logger.warning("Scheduled sync skipped: a run is already in progress")
    except Exception as e:
        logger.exception(f"sync_job failed: {e}")


@app.on_event("startup")
def _startup():
    init_sentry()
    if config.run_scheduler:
        scheduler.add_job(
            sync_job,
            "cron",
            id=SCHEDULER_JOB_ID,
            hour=config.sync_cron_hour,
            minute=config.sync_cron_minute,
            replace_existing=True,
        )
        scheduler.start()
        logger.info(
            f"Scheduler started (RUN_SCHEDULER=1) at {config.sync_cron_hour:02d}:{config.sync_cron_minute:02d} "
            f"{config.timezone}"
        )
    else:
        logger.info("Scheduler disabled (RUN_SCHEDULER=0)")


@app.on_event("shutdown")
def _shutdown():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")


# Routes
app.include_router(sync_router, tags=["sync"])
app.include_router(contacts_router, tags=["contacts"])
app.include_router(health_router, tags=["health"])


@app.get("/")
def health():
    return {"status": "ok"}

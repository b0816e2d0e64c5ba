from apscheduler.schedulers.asyncio import AsyncIOScheduler
import logging
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from nodewar.db import init_db
from nodewar.dependencies import get_income_reconciler, get_notifier
from nodewar.errors import GraphError, ReconciliationInProgress
from nodewar.load_secrets import income_interval_minutes, log_level
from nodewar.routers import actions
from nodewar.routers import graph

scheduler = AsyncIOScheduler()
logging.basicConfig(level=log_level)


async def scheduled_reconcile():
    """Scheduler tick: settle idle income, skipping if a pass is still running."""
    try:
        result = await get_income_reconciler().reconcile()
    except ReconciliationInProgress:
        logging.warning("Previous reconciliation still running; skipping this tick")
        return
    except GraphError as e:
        logging.error(f"Scheduled reconciliation failed: {e}")
        return
    logging.info(f"Scheduled reconciliation processed {result.processed} players")


@asynccontextmanager
async def lifespan(app):
    """Create tables and start the income reconciliation job.
    This function is called to start the server.
    """
    await init_db()

    scheduler.add_job(
        scheduled_reconcile,
        "interval",
        minutes=income_interval_minutes,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    try:
        yield
    finally:
        scheduler.shutdown()
        await get_notifier().close()
        logging.info("Stop Server")


app = FastAPI(lifespan=lifespan)
app.include_router(actions.action_router)
app.include_router(graph.graph_router)


@app.exception_handler(GraphError)
async def graph_error_handler(request, exc: GraphError):
    logging.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"error": exc.code, "message": str(exc)}},
    )

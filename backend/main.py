"""
relaybot - WhatsApp Web automation workers
FastAPI control surface + worker startup
"""

from contextlib import asynccontextmanager
import asyncio
import logging
import uuid

from fastapi import Depends, FastAPI

from routers import settings, workers
from logging_config import setup_logging
from config import runtime_config
from worker.models import ConnectionState
from worker.orchestrator import WorkerManager, get_worker_manager

setup_logging(logging.DEBUG if runtime_config.debug else logging.INFO, log_dir=runtime_config.log_dir)
logger = logging.getLogger(__name__)

# Instance ID - changes on every startup
INSTANCE_ID = str(uuid.uuid4())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown events"""
    # Startup
    manager = get_worker_manager()
    mode = "sequential" if runtime_config.sequential_startup else "concurrent"
    logger.info(f"Starting {len(manager.workers)} worker(s) for account '{manager.account_id}' ({mode})")

    # Workers may wait minutes for a QR scan; the API is served meanwhile
    startup_task = asyncio.create_task(manager.start_all())

    yield

    # Shutdown
    if not startup_task.done():
        startup_task.cancel()
        try:
            await startup_task
        except asyncio.CancelledError:
            pass

    await manager.stop_all()
    logger.info("relaybot signing off")


app = FastAPI(
    title="relaybot",
    description="Automated replies for WhatsApp Web sessions",
    version="1.0.0",
    lifespan=lifespan,
)

# API Routers
app.include_router(workers.router, prefix="/api", tags=["workers"])
app.include_router(settings.router, prefix="/api", tags=["settings"])


@app.get("/health")
async def health(manager: WorkerManager = Depends(workers.get_manager)):
    """Health check - worker states at a glance."""
    states = {worker_id: worker.state.value for worker_id, worker in manager.workers.items()}
    ready = sum(1 for state in states.values() if state == ConnectionState.READY.value)
    return {
        "status": "ok" if ready == len(states) else "degraded",
        "instance_id": INSTANCE_ID,
        "workers": states,
        "ready": ready,
        "total": len(states),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

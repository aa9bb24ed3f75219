import asyncio
from datetime import timedelta
from fastapi import FastAPI
from contextlib import asynccontextmanager, suppress

from blob_store import blob_store
from cleanup import run_periodic_cleanup
from database import engine, AsyncSessionLocal
from models import Base
from routers import files as files_router
from routers import maintenance as maintenance_router
from routers import objects as objects_router
from logging_config import get_logger
from config import settings

logger = get_logger(__name__)

async def create_db_and_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created or already exist.")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("File Sharing Service starting up...")
    await create_db_and_tables()
    logger.info(f"Blob storage path configured at: {settings.STORAGE_BASE_PATH}")

    cleanup_task = None
    if settings.CLEANUP_INTERVAL_SECONDS > 0:
        cleanup_task = asyncio.create_task(run_periodic_cleanup(
            blob_store,
            AsyncSessionLocal,
            interval_seconds=settings.CLEANUP_INTERVAL_SECONDS,
            orphan_max_age=timedelta(seconds=settings.ORPHAN_BLOB_MAX_AGE_SECONDS)
        ))
    else:
        logger.info("Periodic cleanup disabled; use POST /api/cleanup")
    yield
    logger.info("File Sharing Service shutting down...")
    if cleanup_task is not None:
        cleanup_task.cancel()
        with suppress(asyncio.CancelledError):
            await cleanup_task
    await engine.dispose()

app = FastAPI(
    title="File Sharing Service",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(files_router.router)
app.include_router(objects_router.router)
app.include_router(maintenance_router.router)

@app.get("/ping")
async def ping():
    return {"ping": "pong! from file sharing service"}

@app.get("/")
async def read_root():
    return {"message": "Welcome to the File Sharing Service API"}

if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting file sharing service on {settings.SHARE_HOST}:{settings.SHARE_PORT}")
    uvicorn.run("main:app", host=settings.SHARE_HOST, port=settings.SHARE_PORT, reload=True)

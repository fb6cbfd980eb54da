"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from src.config import configure_logging, get_settings
from src.db.session import dispose_engine
from src.taskiq_app.broker import broker
from src.web.router import router as push_router


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Initialize and close Taskiq broker for API process only."""

    configure_logging(get_settings())
    if not broker.is_worker_process:
        await broker.startup()
    yield
    if not broker.is_worker_process:
        await broker.shutdown()
    await dispose_engine()


app = FastAPI(title=get_settings().app_name, lifespan=lifespan)
app.include_router(push_router)


@app.get("/health")
async def health() -> dict[str, str]:
    """Basic health endpoint."""

    return {"status": "ok"}

"""Taskiq broker and scheduler configuration.

Run the worker with ``taskiq worker src.taskiq_app.broker:broker`` and the
scheduler that drives the push flush with
``taskiq scheduler src.taskiq_app.broker:scheduler``.
"""

import importlib

import taskiq_fastapi
from taskiq import InMemoryBroker, TaskiqEvents, TaskiqScheduler, TaskiqState
from taskiq.schedule_sources import LabelScheduleSource
from taskiq_redis import RedisAsyncResultBackend, RedisStreamBroker

from src.config import configure_logging, get_settings
from src.db.session import dispose_engine

settings = get_settings()

if settings.taskiq_testing:
    broker = InMemoryBroker()
else:
    result_backend = RedisAsyncResultBackend(
        redis_url=settings.redis_url,
        result_ex_time=settings.task_result_ttl_seconds,
    )
    broker = RedisStreamBroker(url=settings.redis_url).with_result_backend(
        result_backend
    )

taskiq_fastapi.init(broker, "src.main:app")

scheduler = TaskiqScheduler(
    broker=broker,
    sources=[LabelScheduleSource(broker)],
)


@broker.on_event(TaskiqEvents.WORKER_STARTUP)
async def _on_worker_startup(_state: TaskiqState) -> None:
    configure_logging(settings)


@broker.on_event(TaskiqEvents.WORKER_SHUTDOWN)
async def _on_worker_shutdown(_state: TaskiqState) -> None:
    await dispose_engine()


def _register_tasks() -> None:
    importlib.import_module("src.taskiq_app.tasks")


_register_tasks()

__all__ = ["broker", "scheduler"]

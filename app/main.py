import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from app.core.config import settings
from app.core.db import engine
from app.core.runtime import runtime
from app.repositories.topic import DatabaseTopic
from app.utils.exception_handlers import (
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.utils.router_discovery import register_routers


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncGenerator[None, FastAPI]:
    rare_events = runtime.rare_events
    await rare_events.start()
    await rare_events.replay_latest()

    loops = [
        asyncio.create_task(
            rare_events.run_sweeper(settings.rare_event_sweep_interval_seconds),
            name="rare_event.sweeper",
        )
    ]
    if isinstance(runtime.topic, DatabaseTopic):
        loops.append(asyncio.create_task(runtime.topic.run(), name="topic.poller"))
    logger.info("Roll engine started")

    yield

    for task in loops:
        task.cancel()
    await asyncio.gather(*loops, return_exceptions=True)
    await runtime.jobs.drain()
    await engine.dispose()


app = FastAPI(
    title="Lootspin API",
    lifespan=app_lifespan,
    servers=[{"url": "http://localhost:3011", "description": "Local server"}],
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


register_routers(app)

app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


@app.get("/")
async def healthz() -> str:
    return "OK"

"""FastAPI application entrypoint (browser preview of a sketch)."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from posesketch.api.routes import config, health, keys, stats, stream


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler.

    Ensures the background engine (camera, model, render thread) is stopped when
    the app shuts down.
    """

    from posesketch.api.services.state import stop_engine

    yield
    stop_engine()


app = FastAPI(title="posesketch preview API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(config.router)
app.include_router(stats.router)
app.include_router(keys.router)
app.include_router(stream.router)


if __name__ == "__main__":
    uvicorn.run("posesketch.api.main:app", host="127.0.0.1", port=8000)

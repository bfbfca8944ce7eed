"""FastAPI host: command RPC endpoint, progress event feed, lifecycle hooks."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from errors import WorkbenchError
from events import ProgressFeed
from session import COMMANDS, Session

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

session = Session(settings)
feed = ProgressFeed(capacity=settings.EVENT_BUFFER_SIZE)


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    # Window close: release cursors, roll back, close the connection.
    logger.info("[APP] Shutting down session")
    session.close()


app = FastAPI(title="Tabular Workbench", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",")],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Commands ──


@app.get("/api/commands")
def list_commands():
    return {"commands": sorted(COMMANDS)}


@app.post("/api/commands/{command}")
def invoke_command(command: str, args: dict[str, Any] | None = Body(default=None)):
    try:
        return session.invoke(command, args or {}, sink=feed.publish)
    except WorkbenchError as e:
        raise HTTPException(e.status_code, str(e))


# ── Events ──


@app.get("/api/events")
def poll_events(since: int = Query(0, ge=0)):
    return feed.since(since)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host="127.0.0.1", port=8000, reload=True)

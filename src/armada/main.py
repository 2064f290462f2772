"""Agent Armada ASGI entrypoint."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import FastAPI

from armada.api.routes.game import router as game_router
from armada.core.config import APP_VERSION, LOG_LEVEL

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Agent Armada", version=APP_VERSION)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "ts": datetime.now(UTC).isoformat()}


app.include_router(game_router)

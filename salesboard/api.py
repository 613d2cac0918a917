"""FastAPI surface for on-demand store-sales extraction."""

from __future__ import annotations

import os

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from salesboard import pipeline
from salesboard.logging_config import get_logger

LOGGER = get_logger(__name__)

app = FastAPI(title="Salesboard UpSeller Extractor")


@app.get("/healthz")
def healthcheck() -> dict[str, str]:
    """Return application health information."""

    return {"status": "ok"}


@app.get("/api/upseller")
async def api_upseller(
    d: str | None = Query(None, description="Day of month (1-31)."),
    m: str | None = Query(None, description="Month (1-12)."),
    y: str | None = Query(None, description="Four-digit year."),
    mode: str = Query("", description="Empty/normal, ping or html."),
) -> JSONResponse:
    """Run one extraction; failures are reported in-band with ``ok: false``."""

    payload = await pipeline.run_invocation(d, m, y, mode)
    if not payload.get("ok"):
        LOGGER.info("Request finished with ok=false: %s", payload.get("error"))
    return JSONResponse(content=payload, status_code=200)


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("salesboard.api:app", host="0.0.0.0", port=port, reload=False)

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .blocking import run_blocking
from .config import reload_settings, settings
from .json_filter import FilterParams, json_filter
from .logging_setup import RequestLogMiddleware, init_logging
from .metrics import LAT, REQS, router as metrics_router
from .responses import error_response, to_http
from .s3 import fetch_s3

logger = logging.getLogger(__name__)


class Health(BaseModel):
    status: str
    time: str


def _error(msg: str, status: int) -> Response:
    logger.error(msg)
    return to_http(error_response(status, msg))


@asynccontextmanager
async def lifespan(app: FastAPI):
    reload_settings()
    yield


init_logging(settings.LOG_LEVEL)

app = FastAPI(title="SheetFilter", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLogMiddleware)
app.include_router(metrics_router())

origins = [o.strip() for o in settings.CORS_ALLOW_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
    expose_headers=["x-error", "x-helix-data-type", "x-helix-data-version", "x-helix-sheet-names"],
)


def _route_label(request: Request) -> str:
    # the matched template, so the catch-all route stays a single series
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


@app.middleware("http")
async def _metrics(request: Request, call_next):
    method = request.method
    start = time.time()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        duration = time.time() - start
        path = _route_label(request)
        REQS.labels(method, path, str(status_code)).inc()
        LAT.labels(method, path).observe(duration)


@app.get("/health", response_model=Health)
def health():
    return Health(status="ok", time=datetime.utcnow().isoformat())


@app.get("/{suffix:path}")
async def filter_sheet(
    suffix: str,
    content_bus_id: Optional[str] = Query(None, alias="contentBusId"),
    content_bus_partition: Optional[str] = Query(None, alias="contentBusPartition"),
    limit: Optional[int] = Query(None, ge=0),
    offset: Optional[int] = Query(None, ge=0),
    sheet: Optional[List[str]] = Query(None, description="repeatable sheet name"),
):
    if not content_bus_id:
        return _error("missing contentBusId", 400)
    if not suffix.endswith(".json"):
        return _error("only json resources supported.", 400)
    if limit is None and offset is None and not sheet:
        return _error("no filter params specified. use direct access.", 400)

    params = FilterParams(limit=limit, offset=offset, sheet=sheet)
    filter_ = json_filter(params, logger, settings.DATA_METADATA)

    partition = content_bus_partition or settings.CONTENT_BUS_PARTITION
    key = f"{content_bus_id}/{partition}/{suffix.lstrip('/')}"
    data_response = await run_blocking(fetch_s3, settings.CONTENT_BUS_BUCKET, key)
    if data_response.status != 200:
        return to_http(data_response)

    return to_http(filter_(data_response))

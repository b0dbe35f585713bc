from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQS = Counter(
    "sheetfilter_requests_total",
    "Requests",
    ["method", "path", "status"],
)
LAT = Histogram(
    "sheetfilter_latency_seconds",
    "Latency",
    ["method", "path"],
)
FETCHES = Counter(
    "sheetfilter_fetch_total",
    "Content bus fetches by resulting status",
    ["status"],
)


def router() -> APIRouter:
    r = APIRouter()

    @r.get("/metrics", include_in_schema=False)
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return r

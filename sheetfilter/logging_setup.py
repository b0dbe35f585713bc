import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def init_logging(level: str = "INFO"):
    logging.basicConfig(
        format=LOG_FORMAT,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    # botocore is chatty at INFO about credential lookup
    logging.getLogger("botocore").setLevel(logging.WARNING)


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000
        logging.getLogger("sheetfilter.access").info(
            "%s %s %s %.2fms x-error=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            response.headers.get("x-error", "-"),
        )
        return response

"""Response value shared by the fetcher and the filter."""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import BaseModel, Field
from starlette.responses import Response

ERROR_HEADER = "x-error"

_ILLEGAL_HEADER_CHARS = re.compile(r"[^\t -~\u0080-\u00ff]")


class DataResponse(BaseModel):
    status: int = 200
    body: bytes = b""
    headers: dict[str, str] = Field(default_factory=dict)

    def parse_json(self) -> Any:
        return json.loads(self.body)


def cleanup_header_value(value: str) -> str:
    """Return ``value`` reduced to characters that are legal in a header."""

    return _ILLEGAL_HEADER_CHARS.sub(" ", value)[:1024]


def error_response(status: int, message: str | None = None) -> DataResponse:
    headers = {}
    if message:
        headers[ERROR_HEADER] = cleanup_header_value(message)
    return DataResponse(status=status, headers=headers)


def to_http(response: DataResponse) -> Response:
    return Response(
        content=response.body,
        status_code=response.status,
        headers=response.headers,
    )

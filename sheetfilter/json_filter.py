"""Windowing and sheet selection over fetched sheet documents."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .config import MetadataMode
from .document import (
    DATA_VERSION,
    NAMES_KEY,
    TYPE_KEY,
    VERSION_KEY,
    InvalidDocument,
    MultiSheetDocument,
    Table,
    parse_document,
)
from .responses import DataResponse, error_response

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


class FilterParams(BaseModel):
    limit: Optional[int] = Field(default=None, ge=0)
    offset: int = Field(default=0, ge=0)
    sheet: list[str] = Field(default_factory=list)

    @field_validator("offset", mode="before")
    @classmethod
    def _offset_default(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("sheet", mode="before")
    @classmethod
    def _sheet_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class _FilterError(Exception):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


def _select(
    document: MultiSheetDocument, params: FilterParams
) -> tuple[list[str], dict[str, Table]]:
    wanted = set(params.sheet)
    names = [n for n in document.names if not wanted or n in wanted]
    sheets: dict[str, Table] = {}
    for name in names:
        raw = document.sheets.get(name)
        invalid = f'multisheet data invalid. sheet "{name}" is not a table.'
        if not isinstance(raw, dict):
            raise _FilterError(502, invalid)
        try:
            table = Table.from_source(raw)
        except ValidationError as exc:
            raise _FilterError(502, invalid) from exc
        sheets[name] = table.window(params.limit, params.offset)
    return names, sheets


def _envelope(payload: Any, params: FilterParams) -> tuple[dict[str, Any], str, list[str]]:
    document = parse_document(payload)
    if isinstance(document, InvalidDocument):
        raise _FilterError(502, document.reason)
    if not isinstance(document, MultiSheetDocument):
        # a plain sheet ignores any sheet selection
        table = document.table.window(params.limit, params.offset)
        return table.model_dump(), "sheet", []

    names, sheets = _select(document, params)
    if not names:
        raise _FilterError(
            404,
            "filtered result does not contain selected sheet(s): "
            + ",".join(params.sheet),
        )
    if len(names) == 1:
        return sheets[names[0]].model_dump(), "sheet", names
    body = {name: table.model_dump() for name, table in sheets.items()}
    return body, "multi-sheet", names


def json_filter(
    params: FilterParams,
    log: Optional[logging.Logger] = None,
    metadata: MetadataMode = "envelope",
) -> Callable[[DataResponse], DataResponse]:
    """Create a filter that applies ``params`` to one fetched sheet document.

    ``metadata`` selects how the sheet type, version and names are reported:
    inline as ``:type``/``:version``/``:names`` fields (``envelope``), as
    ``x-helix-*`` response headers (``headers``), or both.
    """

    log = log or logger

    def _filter(data_response: DataResponse) -> DataResponse:
        try:
            payload = data_response.parse_json()
        except ValueError as exc:
            log.info("unable to parse sheet data: %s", exc)
            return error_response(502, f"invalid json: {exc}")

        try:
            body, data_type, names = _envelope(payload, params)
        except _FilterError as exc:
            log.info("%s", exc.message)
            return error_response(exc.status, exc.message)

        headers = {"content-type": JSON_CONTENT_TYPE}
        if metadata in ("envelope", "both"):
            if data_type == "multi-sheet":
                body[VERSION_KEY] = DATA_VERSION
                body[NAMES_KEY] = names
            body[TYPE_KEY] = data_type
        if metadata in ("headers", "both"):
            headers["x-helix-data-type"] = data_type
            headers["x-helix-data-version"] = str(DATA_VERSION)
            headers["x-helix-sheet-names"] = ",".join(names)

        return DataResponse(
            status=200,
            body=json.dumps(body, separators=(",", ":")).encode("utf-8"),
            headers=headers,
        )

    return _filter

"""Sheet documents as stored on the content bus.

A document is either a single sheet (a top-level ``data`` array) or a
multi-sheet bundle whose ``:names`` list points at the fields holding each
sheet. The shape is resolved once by :func:`parse_document`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

TYPE_KEY = ":type"
VERSION_KEY = ":version"
NAMES_KEY = ":names"

DATA_VERSION = 3

MISSING_NAMES = 'multisheet data invalid. missing ":names" property.'
INVALID_NAMES = 'multisheet data invalid. ":names" must be a list of sheet names.'
INVALID_SHEET = "sheet data invalid."


class Table(BaseModel):
    total: int = Field(default=0, ge=0)
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=0, ge=0)
    data: list[Any] = Field(default_factory=list)

    @classmethod
    def from_source(cls, payload: dict[str, Any]) -> "Table":
        """Build a table from stored sheet data, ignoring its stored window."""

        data = payload.get("data")
        total = payload.get("total")
        if total is None and isinstance(data, list):
            total = len(data)
        return cls.model_validate({"total": total or 0, "data": data})

    def window(self, limit: Optional[int] = None, offset: int = 0) -> "Table":
        """Return the rows in ``[offset, offset + limit)``, or from ``offset`` on."""

        if limit is None:
            rows = self.data[offset:]
        else:
            rows = self.data[offset : offset + limit]
        return Table(total=self.total, offset=offset, limit=len(rows), data=rows)


@dataclass(frozen=True)
class SingleSheetDocument:
    table: Table


@dataclass(frozen=True)
class MultiSheetDocument:
    names: list[str]
    sheets: dict[str, Any]


@dataclass(frozen=True)
class InvalidDocument:
    reason: str


Document = Union[SingleSheetDocument, MultiSheetDocument, InvalidDocument]


def parse_document(payload: Any) -> Document:
    if not isinstance(payload, dict):
        return InvalidDocument(MISSING_NAMES)
    if isinstance(payload.get("data"), list):
        try:
            return SingleSheetDocument(Table.from_source(payload))
        except ValidationError:
            return InvalidDocument(INVALID_SHEET)
    names = payload.get(NAMES_KEY)
    if names is None:
        return InvalidDocument(MISSING_NAMES)
    if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
        return InvalidDocument(INVALID_NAMES)
    # sheets are only validated once selected
    return MultiSheetDocument(
        names=list(names),
        sheets={name: payload.get(name) for name in names},
    )

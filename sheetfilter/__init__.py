"""SheetFilter: windowed and sheet-selected views of content bus JSON."""

from typing import TYPE_CHECKING

from .json_filter import FilterParams, json_filter
from .responses import DataResponse
from .s3 import ConfigurationError, fetch_s3

__version__ = "0.1.0"

if TYPE_CHECKING:  # pragma: no cover - import-time convenience for type checkers
    from .main import app as app

__all__ = [
    "app",
    "ConfigurationError",
    "DataResponse",
    "FilterParams",
    "fetch_s3",
    "json_filter",
    "__version__",
]


def __getattr__(name: str):
    # the app pulls in settings and middleware; only build it on demand
    if name == "app":
        from .main import app as _app
        return _app
    raise AttributeError(f"module 'sheetfilter' has no attribute {name!r}")

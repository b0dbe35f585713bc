from __future__ import annotations

import functools
import gzip
import logging
import zlib
from contextlib import closing
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Optional

import boto3.session
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import settings
from .metrics import FETCHES
from .responses import DataResponse, error_response

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404", "AccessDenied"}


class ConfigurationError(ValueError):
    """Raised when the fetcher is called without a bucket or key."""


@functools.lru_cache(maxsize=4)
def _cached_client(
    region: Optional[str], endpoint_url: Optional[str], timeout: float
) -> Any:
    config = Config(connect_timeout=timeout, read_timeout=timeout)
    # a private session; the default boto3 session is not thread-safe
    session = boto3.session.Session()
    return session.client(
        "s3",
        region_name=region,
        endpoint_url=endpoint_url,
        config=config,
    )


def s3_client() -> Any:
    """Return the shared S3 client for the current settings."""

    return _cached_client(
        settings.AWS_REGION,
        settings.S3_ENDPOINT_URL,
        settings.FETCH_TIMEOUT_SECONDS,
    )


def _http_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def _error_cause(exc: ClientError) -> str:
    code = exc.response.get("Error", {}).get("Code")
    if code:
        return str(code)
    return str(exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", "unknown"))


def _failed(bucket_id: str, key: str, cause: str) -> DataResponse:
    logger.error("Error while fetching file from %s/%s: %s", bucket_id, key, cause)
    FETCHES.labels("502").inc()
    return error_response(502, f"error while fetching: {cause}")


def fetch_s3(bucket_id: str, key: str, client: Optional[Any] = None) -> DataResponse:
    """Fetch ``key`` from ``bucket_id``, gunzipping the body when needed.

    Storage failures never raise: a missing or forbidden object yields a 404
    response, anything else a 502 carrying the cause in ``x-error``.
    """

    if not bucket_id:
        raise ConfigurationError("Unknown bucketId, cannot fetch content")
    if not key:
        raise ConfigurationError("Unknown key, cannot fetch content")

    s3 = client or s3_client()
    try:
        res = s3.get_object(Bucket=bucket_id, Key=key)
        with closing(res["Body"]) as stream:
            body = stream.read()
    except ClientError as exc:
        cause = _error_cause(exc)
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if cause in NOT_FOUND_CODES or status == 404:
            logger.info("Could not find file at %s/%s: %s", bucket_id, key, cause)
            FETCHES.labels("404").inc()
            return DataResponse(status=404)
        return _failed(bucket_id, key, cause)
    except BotoCoreError as exc:
        return _failed(bucket_id, key, str(exc))

    if res.get("ContentEncoding") == "gzip":
        try:
            body = gzip.decompress(body)
        except (OSError, EOFError, zlib.error) as exc:
            return _failed(bucket_id, key, f"invalid gzip content ({exc})")

    headers: dict[str, str] = {}
    if res.get("LastModified"):
        headers["last-modified"] = _http_date(res["LastModified"])
    if res.get("ContentType"):
        headers["content-type"] = res["ContentType"]
    FETCHES.labels("200").inc()
    return DataResponse(status=200, body=body, headers=headers)

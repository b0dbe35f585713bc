from __future__ import annotations

import os
from typing import Any, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

MetadataMode = Literal["envelope", "headers", "both"]


class Settings(BaseModel):
    CONTENT_BUS_BUCKET: str = Field(
        default="helix-content-bus", description="S3 bucket holding the content bus"
    )
    CONTENT_BUS_PARTITION: str = Field(default="live")
    AWS_REGION: Optional[str] = Field(default=None)
    S3_ENDPOINT_URL: Optional[str] = Field(default=None)
    FETCH_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    DATA_METADATA: MetadataMode = Field(
        default="envelope",
        description="where sheet metadata goes: inline fields, x-helix-* headers or both",
    )
    LOG_LEVEL: str = Field(default="INFO")
    CORS_ALLOW_ORIGINS: str = Field(default="*")


def _load_settings(existing: Settings | None = None) -> Settings:
    """Read overrides from the environment; unset names keep ``existing`` values.

    An invalid value raises pydantic's ``ValidationError`` naming the field.
    """

    values: dict[str, Any] = {}
    for name in Settings.model_fields:
        env_value = os.getenv(name)
        if env_value is not None:
            values[name] = env_value
        elif existing is not None:
            values[name] = getattr(existing, name)
    return Settings(**values)


settings = _load_settings()


def reload_settings() -> Settings:
    global settings
    fresh = _load_settings(settings)
    settings.__dict__.update(fresh.__dict__)
    return settings

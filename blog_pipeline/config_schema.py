from __future__ import annotations

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

MIB = 1024 * 1024


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


PositiveInt = Annotated[int, Field(ge=1)]
UnitFloat = Annotated[float, Field(gt=0.0, le=1.0)]


class ApiConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str | None = None
    base_url_env: str = "BLOG_API_URL"
    token_env: str = "BLOG_API_TOKEN"
    timeout_seconds: float = Field(15.0, gt=0.0)
    max_attempts: PositiveInt = 3

    @field_validator("base_url_env", "token_env")
    @classmethod
    def _env_names_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)

    @field_validator("base_url")
    @classmethod
    def _strip_base_url(cls, v: str | None) -> str | None:
        if v is None:
            return None
        value = v.strip().rstrip("/")
        return value or None


class ContentConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    preview_words: PositiveInt = 50
    words_per_minute: PositiveInt = 200


class UploadsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    target_max_bytes: PositiveInt = 10 * MIB
    max_client_bytes: PositiveInt = 20 * MIB
    max_video_mb: PositiveInt = 200
    max_width: PositiveInt = 1600
    max_height: PositiveInt = 1600

    @model_validator(mode="after")
    def _hard_limit_must_cover_target(self) -> "UploadsConfig":
        if self.max_client_bytes < self.target_max_bytes:
            raise ValueError("max_client_bytes must be >= target_max_bytes")
        return self

    @property
    def max_video_bytes(self) -> int:
        return self.max_video_mb * MIB


class CompressionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    initial_quality: UnitFloat = 0.92
    min_quality: UnitFloat = 0.5
    quality_step: UnitFloat = 0.07
    quality_bump: float = Field(0.05, ge=0.0, le=1.0)
    dimension_shrink: float = Field(0.8, gt=0.0, lt=1.0)
    min_dimension: PositiveInt = 400

    @model_validator(mode="after")
    def _floor_must_not_exceed_start(self) -> "CompressionConfig":
        if self.min_quality > self.initial_quality:
            raise ValueError("min_quality must be <= initial_quality")
        return self


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    api: ApiConfig = Field(default_factory=ApiConfig)
    content: ContentConfig = Field(default_factory=ContentConfig)
    uploads: UploadsConfig = Field(default_factory=UploadsConfig)
    compression: CompressionConfig = Field(default_factory=CompressionConfig)

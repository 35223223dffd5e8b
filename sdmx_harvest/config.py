import re
from functools import lru_cache
from typing import Annotated, Any, List
from urllib.parse import urlparse

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .exceptions import ConfigurationError


EUROSTAT_SDMX_BASE_URL = "https://ec.europa.eu/eurostat/api/dissemination/sdmx/2.1"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Harvester configuration loaded from environment variables."""

    # Structural Data Exchange Message (SDEM) listing every dataflow
    sdem_url: str = Field(
        default=f"{EUROSTAT_SDMX_BASE_URL}/dataflow/ESTAT/all/latest",
        alias="SDEM_URL",
    )
    datastructure_url_format: str = Field(
        default=f"{EUROSTAT_SDMX_BASE_URL}/datastructure/ESTAT/{{structure_id}}",
        alias="DATASTRUCTURE_URL_FORMAT",
        description="Structure query URL; {structure_id} is substituted per dataflow",
    )
    rest_base_url: str = Field(
        default="https://ec.europa.eu/eurostat/api/dissemination/statistics/1.0/data",
        alias="REST_URL_BASE",
        description="Base of the data access links used as record identifiers",
    )
    logo_url: str = Field(default="", alias="LOGO_URL")

    # Record defaults
    publisher: str = Field(default="Eurostat", alias="RECORD_PUBLISHER")
    language: str = Field(default="en", alias="RECORD_LANGUAGE")
    format: str = Field(default="application/json", alias="RECORD_FORMAT")
    rights_name: str = Field(default="Eurostat License", alias="RIGHTS_NAME")
    rights_uri: str = Field(
        default="https://ec.europa.eu/eurostat/about/policies/copyright",
        alias="RIGHTS_URI",
    )

    # Expansion
    allowed_dimensions: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["NA_ITEM", "GEO", "UNIT", "FREQ", "INDICATORS", "PARTNER"],
        alias="ALLOWED_DIMENSIONS",
    )
    dataflow_pattern: str = Field(
        default=".*",
        alias="DATAFLOW_PATTERN",
        description="Regular expression a dataflow or structure id must fully match",
    )
    geo_dimension: str = Field(default="GEO", alias="GEO_DIMENSION")

    # Registry access
    request_timeout: float = Field(default=90.0, alias="REQUEST_TIMEOUT")
    max_retries: int = Field(default=3, ge=1, alias="MAX_RETRIES")
    retry_backoff: float = Field(default=1.0, ge=0.0, alias="RETRY_BACKOFF")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        populate_by_name=True,
    )

    @field_validator("allowed_dimensions", mode="before")
    @classmethod
    def parse_dimensions(cls, v: Any):
        """Parse ALLOWED_DIMENSIONS from comma-separated string or list"""
        if isinstance(v, str):
            v = v.split(",")
        seen = []
        for dimension in v or []:
            dimension = str(dimension).strip()
            if dimension and dimension not in seen:
                seen.append(dimension)
        return seen

    @field_validator("dataflow_pattern")
    @classmethod
    def check_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"DATAFLOW_PATTERN is not a valid regular expression: {e}") from e
        return v

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        level = str(v).strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got '{v}'")
        return level

    @field_validator("sdem_url", "rest_base_url")
    @classmethod
    def check_url(cls, v: str) -> str:
        if not _is_http_url(v):
            raise ValueError(f"'{v}' is not an absolute http(s) URL")
        return v.rstrip("/")

    @model_validator(mode="after")
    def check_structure_url_format(self):
        """The structure URL must be a template over the structure id."""
        if "{structure_id}" not in self.datastructure_url_format:
            raise ValueError("DATASTRUCTURE_URL_FORMAT must contain '{structure_id}'")
        if not _is_http_url(self.datastructure_url_format.replace("{structure_id}", "X")):
            raise ValueError(
                f"'{self.datastructure_url_format}' is not an absolute http(s) URL template"
            )
        return self

    @property
    def dataflow_regex(self) -> re.Pattern:
        return re.compile(self.dataflow_pattern)


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def load_settings(**overrides: Any) -> Settings:
    """Build settings, reporting invalid values as a ConfigurationError.

    Keyword overrides take precedence over the environment.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise ConfigurationError(
            f"Invalid harvester configuration: {e.error_count()} error(s)",
            details={"fields": fields, "errors": [err["msg"] for err in e.errors()]},
        ) from e


@lru_cache
def get_settings() -> Settings:
    return load_settings()

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", populate_by_name=True)

    service_name: str = Field(default="api-service", alias="SERVICE_NAME")
    service_version: str = Field(default="1.0.0", alias="SERVICE_VERSION")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", alias="LOG_LEVEL")

    request_id_header: str = Field(default="X-Request-ID", alias="REQUEST_ID_HEADER")
    echo_request_id: bool = Field(default=True, alias="ECHO_REQUEST_ID")

    histogram_buckets: list[float] = Field(default=[0.1, 0.2, 0.5, 1.0, 3.0], alias="HISTOGRAM_BUCKETS")
    metrics_excluded_paths: list[str] = Field(default=["/metrics"], alias="METRICS_EXCLUDED_PATHS")

    peer_base_url: str = Field(default="http://api-service-2", alias="PEER_BASE_URL")
    peer_timeout_seconds: float = Field(default=10.0, alias="PEER_TIMEOUT_SECONDS")

    tracing_enabled: bool = Field(default=False, alias="TRACING_ENABLED")
    otlp_endpoint: str = Field(default="", alias="OTLP_ENDPOINT")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

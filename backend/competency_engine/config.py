import logging
import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    openai_api_key: Optional[str] = Field(None, alias="OPENAI_API_KEY")
    evaluator_model: str = Field("gpt-4o-mini", alias="COMPETENCY_EVALUATOR_MODEL")
    evaluator_temperature: float = Field(0.3, alias="COMPETENCY_EVALUATOR_TEMPERATURE")
    evaluator_max_output_tokens: int = Field(500, alias="COMPETENCY_EVALUATOR_MAX_OUTPUT_TOKENS")
    evaluator_timeout_seconds: float = Field(30.0, alias="COMPETENCY_EVALUATOR_TIMEOUT_SECONDS")
    evaluator_max_retries: int = Field(2, ge=0, alias="COMPETENCY_EVALUATOR_MAX_RETRIES")
    evaluator_retry_delay_seconds: float = Field(1.0, ge=0.0, alias="COMPETENCY_EVALUATOR_RETRY_DELAY_SECONDS")
    question_concurrency: int = Field(4, ge=1, alias="COMPETENCY_QUESTION_CONCURRENCY")
    batch_concurrency: int = Field(4, ge=1, alias="COMPETENCY_BATCH_CONCURRENCY")
    batch_size: int = Field(10, ge=1, alias="COMPETENCY_BATCH_SIZE")
    max_evaluation_passes: int = Field(3, ge=0, alias="COMPETENCY_MAX_EVALUATION_PASSES")
    database_url: Optional[str] = Field(None, alias="COMPETENCY_DATABASE_URL")
    database_pool_size: int = Field(10, alias="COMPETENCY_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="COMPETENCY_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="COMPETENCY_DATABASE_ECHO")
    log_level: str = Field("INFO", alias="COMPETENCY_LOG_LEVEL")
    engine_log_level: Optional[str] = Field(None, alias="COMPETENCY_ENGINE_LOG_LEVEL")
    telemetry_log_level: str = Field("INFO", alias="COMPETENCY_TELEMETRY_LOG_LEVEL")
    debug_http: bool = Field(False, alias="COMPETENCY_DEBUG_HTTP")

    @field_validator("log_level", "engine_log_level", "telemetry_log_level")
    @classmethod
    def _known_level(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level '{value}'")
        return level

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    try:
        settings = Settings()  # type: ignore[arg-type]
        if settings.openai_api_key and not os.getenv("OPENAI_API_KEY"):
            os.environ["OPENAI_API_KEY"] = settings.openai_api_key
        return settings
    except ValidationError as exc:
        raise RuntimeError(f"Invalid engine configuration: {exc}") from exc

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GenerationSettings(BaseSettings):
    """Explicit configuration for the workout plan generation pipeline.

    Loaded once by the application factory and handed to every component that needs it.
    """

    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    llm_base_url: str = Field(
        default="https://api.openai.com/v1",
        validation_alias="LLM_BASE_URL",
        description="Base URL of an OpenAI-compatible chat-completion API",
    )
    llm_model: str = Field(
        default="gpt-3.5-turbo-1106",  # Supports the json_object response format
        validation_alias="LLM_MODEL",
    )
    llm_temperature: float = Field(default=0.7, validation_alias="LLM_TEMPERATURE")
    llm_max_tokens: int | None = Field(default=None, validation_alias="LLM_MAX_TOKENS")
    request_timeout_seconds: float = Field(
        default=60.0,
        validation_alias="LLM_REQUEST_TIMEOUT_SECONDS",
        description="Upper bound for a single provider attempt",
    )
    max_attempts: int = Field(default=3, validation_alias="LLM_MAX_ATTEMPTS")
    retry_base_delay_seconds: float = Field(default=1.0, validation_alias="LLM_RETRY_BASE_DELAY_SECONDS")
    retry_max_delay_seconds: float = Field(default=10.0, validation_alias="LLM_RETRY_MAX_DELAY_SECONDS")
    health_timeout_seconds: float = Field(default=5.0, validation_alias="LLM_HEALTH_TIMEOUT_SECONDS")
    max_concurrent_requests: int = Field(
        default=0,
        validation_alias="LLM_MAX_CONCURRENT_REQUESTS",
        description="Bound on simultaneous outbound provider calls (0 = unbounded)",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("openai_api_key")
    @classmethod
    def validate_api_key(cls, value: str) -> str:
        """Allow an empty key for local development, but say so loudly."""
        if not value:
            logger.warning(
                "⚠️ OPENAI_API_KEY is not set. Workout plan generation will fail with a provider "
                "configuration error until it is provided."
            )
        return value

    @field_validator("llm_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("llm_temperature")
    @classmethod
    def validate_temperature(cls, value: float) -> float:
        if not 0.0 <= value <= 2.0:
            raise ValueError(f"LLM_TEMPERATURE must be between 0 and 2, got {value}")
        return value

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError(f"LLM_MAX_ATTEMPTS must be at least 1, got {value}")
        return value

    @field_validator("request_timeout_seconds", "health_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"Timeouts must be positive, got {value}")
        return value

    @field_validator("max_concurrent_requests")
    @classmethod
    def validate_concurrency(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"LLM_MAX_CONCURRENT_REQUESTS must be >= 0, got {value}")
        return value

    @model_validator(mode="after")
    def validate_backoff(self) -> "GenerationSettings":
        if self.retry_base_delay_seconds < 0 or self.retry_max_delay_seconds < 0:
            raise ValueError("Retry delays must not be negative")
        if self.retry_base_delay_seconds > self.retry_max_delay_seconds:
            raise ValueError(
                f"LLM_RETRY_BASE_DELAY_SECONDS ({self.retry_base_delay_seconds}) must not exceed "
                f"LLM_RETRY_MAX_DELAY_SECONDS ({self.retry_max_delay_seconds})"
            )
        return self

    @property
    def chat_completions_url(self) -> str:
        return f"{self.llm_base_url}/chat/completions"


def load_settings() -> GenerationSettings:
    """Read settings from the environment (and .env, when present)."""
    return GenerationSettings()

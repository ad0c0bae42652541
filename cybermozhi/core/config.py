from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    app_name: str = Field(default="CyberMozhi API", alias="APP_NAME")
    environment: Literal["development", "staging", "production"] = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    mongo_uri: str = Field(default="mongodb://localhost:27017", alias="MONGO_URI")
    mongo_db_name: str = Field(default="cybermozhi", alias="MONGO_DB_NAME")

    # Comma-separated; kept as a plain string so pydantic-settings doesn't try to JSON-decode it.
    gemini_api_keys: str = Field(default="", alias="GEMINI_API_KEYS")
    gemini_model: str = Field(default="gemini-2.5-flash-lite", alias="GEMINI_MODEL")
    llm_max_output_tokens: int = Field(default=2048, alias="LLM_MAX_OUTPUT_TOKENS")
    llm_temperature: float = Field(default=0.5, alias="LLM_TEMPERATURE")
    llm_max_tool_rounds: int = Field(default=3, alias="LLM_MAX_TOOL_ROUNDS")

    chat_history_window: int = Field(default=10, alias="CHAT_HISTORY_WINDOW")
    generate_chat_titles: bool = Field(default=False, alias="GENERATE_CHAT_TITLES")

    jwt_secret_key: str = Field(default="change-me", alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_days: int = Field(default=7, alias="REFRESH_TOKEN_EXPIRE_DAYS")

    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"], alias="CORS_ALLOW_ORIGINS")

    api_prefix: str = Field(default="/api", alias="API_PREFIX")
    docs_url: Optional[str] = Field(default="/docs", alias="DOCS_URL")

    @field_validator("chat_history_window")
    @classmethod
    def clamp_history_window(cls, v: int) -> int:
        return max(1, min(v, 50))

    @property
    def api_keys(self) -> list[str]:
        """The configured Gemini credentials, in declaration order, blanks dropped."""
        return [key.strip() for key in self.gemini_api_keys.split(",") if key.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()  # type: ignore[call-arg]

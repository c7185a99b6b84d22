from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = "sqlite:///./career_ai.db"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    public_app_base_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    anthropic_api_base: str = "https://api.anthropic.com/v1"
    anthropic_version: str = "2023-06-01"
    openai_api_key: str | None = None
    openai_model: str = "gpt-5-mini"
    openai_api_base: str = "https://api.openai.com/v1"
    agent_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 60.0

    session_secret: str = "default-secret-change-me"
    session_ttl_seconds: int = 60 * 60 * 24
    session_cookie_name: str = "career-ai-session"
    session_cookie_secure: bool = False
    admin_username: str | None = None
    admin_password: str | None = None

    pdf_font_path: str | None = None

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_database_url(cls, value: str) -> str:
        # Render/Postgres providers often expose postgres:// URLs.
        if isinstance(value, str) and value.startswith("postgres://"):
            return "postgresql://" + value[len("postgres://"):]
        return value


settings = Settings()

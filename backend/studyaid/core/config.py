import json

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Resolve backend root (.../backend/) regardless of current working directory
BASE_DIR = Path(__file__).resolve().parents[2]
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Study Aid API"
    # dev | prod. Outside dev, raw diagnostics never reach the client.
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # One origin or several, comma separated or as a JSON list.
    # Example: "http://localhost:5173,https://example.com"
    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    DATABASE_URL: str = "sqlite:///./studyaid.db"

    # ===== Auth =====
    JWT_SECRET_KEY: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # ===== LLM (any OpenAI-compatible chat completions endpoint) =====
    # Defaults target Groq's OpenAI-compatible API.
    LLM_API_KEY: str | None = None
    LLM_BASE_URL: str | None = "https://api.groq.com/openai/v1"
    LLM_MODEL: str = "llama-3.3-70b-versatile"
    LLM_TEMPERATURE: float = 1.0
    LLM_TOP_P: float = 1.0
    LLM_MAX_TOKENS: int = 1024
    LLM_TIMEOUT_SEC: int = 60
    LLM_MAX_RETRIES: int = 1

    # Document excerpt sent to the model is cut to this many characters.
    LLM_MAX_CONTEXT_CHARS: int = 6000

    # When true, the greedy "[...]" fallback extraction is skipped and any
    # completion that does not parse after cleanup is rejected.
    NORMALIZER_STRICT: bool = False

    # ===== Extracted text cache =====
    TEXT_CACHE_BACKEND: str = "memory"  # memory | redis
    # 0 disables expiry.
    TEXT_CACHE_TTL_SECONDS: int = 3600
    TEXT_CACHE_MAX_ENTRIES: int = 256
    REDIS_URL: str = "redis://localhost:6379/0"

    MAX_UPLOAD_MB: int = 20

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        if v is None or v == "":
            return []

        if isinstance(v, list):
            return v

        # JSON list first, comma separated otherwise
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                try:
                    return json.loads(s)
                except ValueError:
                    pass
            return [item.strip() for item in s.split(",") if item.strip()]

        return v

    @property
    def is_dev(self) -> bool:
        return (self.ENV or "").strip().lower() in {"dev", "development", "local", "test"}


settings = Settings()

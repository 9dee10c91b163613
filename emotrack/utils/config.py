"""Configuration and environment settings."""
from pydantic_settings import BaseSettings
from pydantic import Field


DEFAULT_CHAT_MODELS = [
    "gemini-2.0-flash-lite",
    "gemini-2.0-flash-lite-001",
    "gemini-flash-lite-latest",
    "gemini-2.5-flash-lite",
    "gemini-2.0-flash",
    "gemini-pro-latest",
]


class Settings(BaseSettings):
    """App settings from env or .env."""

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", env="MONGODB_URI")
    mongodb_db: str = Field(default="emotrack", env="MONGODB_DB")

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", env="REDIS_URL")
    redis_ttl_seconds: int = Field(default=300, env="REDIS_TTL_SECONDS")

    # SQLite (chat run lineage)
    sqlite_path: str = Field(default="data/analytics.db", env="SQLITE_PATH")

    # Gemini chat backends, tried in order
    gemini_api_key: str = Field(default="", env="GEMINI_API_KEY")
    chat_models: list[str] = Field(default_factory=lambda: list(DEFAULT_CHAT_MODELS), env="CHAT_MODELS")
    chat_temperature: float = Field(default=0.8, env="CHAT_TEMPERATURE")
    chat_max_output_tokens: int = Field(default=120, env="CHAT_MAX_OUTPUT_TOKENS")
    chat_timeout_seconds: float = Field(default=20.0, env="CHAT_TIMEOUT_SECONDS")
    chat_max_reply_chars: int = Field(default=400, env="CHAT_MAX_REPLY_CHARS")

    # Auth
    jwt_secret: str = Field(default="change-me", env="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", env="JWT_ALGORITHM")

    # Rate limiting on the chat endpoint
    chat_rate_limit: int = Field(default=30, env="CHAT_RATE_LIMIT")
    chat_rate_window_seconds: int = Field(default=60, env="CHAT_RATE_WINDOW_SECONDS")

    # API
    api_host: str = Field(default="0.0.0.0", env="API_HOST")
    api_port: int = Field(default=5001, env="API_PORT")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5174"],
        env="CORS_ORIGINS",
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()

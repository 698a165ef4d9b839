from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    environment: str = "development"
    log_level: str = "info"

    # CORS
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Rate limiting (slowapi syntax)
    rate_limit: str = "60/minute"

    # Authoritative RFQ backend
    backend_base_url: str = "http://localhost:8000/api"
    backend_api_token: str = ""
    backend_timeout_seconds: float = 30.0

    # Retries apply to idempotent reads only; transitions are never retried
    backend_max_retries: int = 2
    backend_backoff_seconds: float = 0.5

    # Workflow views held in memory by the HTTP surface
    max_open_views: int = 1000

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()

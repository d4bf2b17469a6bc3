from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Platform read APIs
    user_service_url: str = "http://localhost:3001"
    restaurant_service_url: str = "http://localhost:3002"
    order_service_url: str = "http://localhost:3003"
    upstream_timeout_seconds: float = 30.0

    # Intent resolver (Ollama-compatible chat endpoint)
    ollama_url: str = "http://localhost:11434"
    llm_model: str = "qwen3:8b"
    resolver_timeout_seconds: float = 60.0

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # App
    secret_key: str = "dev-secret-key-change-in-production"
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "text"  # text | json
    query_history_size: int = 10

    # Security
    allowed_origins: str = "http://localhost:3000,http://localhost:80,http://localhost"
    rate_limit_per_minute: int = 60
    access_token_expire_minutes: int = 30

    model_config = {"env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _validate_production(self):
        if self.environment == "production":
            if self.secret_key == "dev-secret-key-change-in-production":
                raise ValueError(
                    "Production requires a non-default SECRET_KEY"
                )
            if self.log_format not in ("text", "json"):
                raise ValueError(
                    f"Unsupported LOG_FORMAT {self.log_format!r}"
                )
        return self


settings = Settings()

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./harmony.db"
    test_database_url: str = "sqlite://"
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    refresh_token_expire_days: int = 7
    cors_origins: list[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    # Client-side sync engine
    api_base_url: str = "http://localhost:8000"
    request_timeout: float = 10.0
    summary_poll_interval: float = 10.0
    thread_poll_interval: float = 5.0
    optimistic_max_cycles: int = 3
    max_message_length: int = 5000

    model_config = {"env_prefix": "HARMONY_", "env_file": ".env"}


settings = Settings()

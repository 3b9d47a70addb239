from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide settings sourced from .env and CORRECTOR_* environment variables."""

    config_path: str = "configs/project.yml"

    log_level: str = "INFO"
    log_format: str = "rich"

    http_timeout_seconds: float = 30.0

    token_expiry_margin_seconds: float = 60.0
    default_token_lifetime_seconds: float = 3600.0

    allow_none_auth_override: bool = True

    model_config = SettingsConfigDict(
        env_prefix="CORRECTOR_",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()

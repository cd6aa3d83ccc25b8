"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = "panic-button"
    debug: bool = False
    database_url: str = "sqlite:///./panic_button.db"

    # Remote alert backend
    api_base_url: str = "https://sigap-api-5hk6r.ondigitalocean.app/api"
    request_timeout_seconds: float = 15.0

    # Button timing
    confirm_window_seconds: float = 3.0
    countdown_start: int = 3
    countdown_tick_seconds: float = 1.0

    # Geolocation
    permission_timeout_seconds: float = 15.0
    location_timeout_seconds: float = 10.0
    position_source: str = "static"  # static | http
    position_url: str = ""
    static_latitude: float | None = None
    static_longitude: float | None = None
    static_accuracy: float | None = None
    location_permission: str = "prompt"  # granted | prompt | denied


settings = Settings()

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized configuration.

    Loaded from:
    - environment variables
    - .env file (if present)

    Nothing is required: the app runs against a local SQLite file and the
    key-less Open-Meteo endpoints out of the box.
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Fish Log"

    # Full SQLAlchemy URL wins over the SQLite file path when set
    database_url: Optional[str] = None
    sqlite_path: str = "fishlog.sqlite3"

    # Optional OpenWeatherMap key; when set it replaces Open-Meteo for
    # today/future outings. Past outings always use the Open-Meteo archive.
    weather_api_key: Optional[str] = None
    http_timeout_s: float = 10.0

    log_level: str = "INFO"

    # Species used by /best_spots when the query string names none
    default_species: str = "Rainbow Trout"

    max_upload_bytes: int = 10 * 1024 * 1024

    cors_origins: list[str] = ["*"]

    @property
    def sqlalchemy_url(self) -> str:
        return self.database_url or f"sqlite:///{self.sqlite_path}"


settings = Settings()

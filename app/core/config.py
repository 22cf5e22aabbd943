# app/core/config.py
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuración de la aplicación.
    Se lee de variables de entorno o del fichero .env (DATABASE_URL, SECRET_KEY...)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Base de datos
    database_url: str = "sqlite:///./pitwall.db"
    database_echo: bool = False

    # Tokens del proveedor de identidad
    secret_key: str = "cambia-esto-en-produccion"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    # Proveedor de datos de carreras
    race_data_provider: Literal["fastf1", "openf1"] = "fastf1"
    fastf1_cache_dir: str = "cache"
    openf1_base_url: str = "https://api.openf1.org/v1"
    http_timeout_seconds: float = 15.0

    # Poller de resultados
    poller_enabled: bool = False
    poll_interval_seconds: int = 3600
    race_duration_hours: float = 2.0
    results_grace_hours: float = 1.0
    inter_race_delay_seconds: float = 1.0

    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    log_level: str = "INFO"


settings = Settings()

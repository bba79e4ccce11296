# config/settings.py
"""
Configuración centralizada de la aplicación usando Pydantic Settings.
Las variables se cargan desde el archivo .env
"""

from datetime import date
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuración de la aplicación"""

    # Base de datos
    DATABASE_URL: str

    # CORS
    CORS_ALLOW_ORIGINS: List[str] = ["http://localhost:3000"]

    # Celery / Redis
    REDIS_URL: str | None = None

    # Logging
    LOG_LEVEL: str = "INFO"

    # Conciliación de cosechas
    # Cosechas anteriores a esta fecha no se concilian contra el libro de cosechas;
    # los muestreos previos conservan el valor capturado a mano.
    HARVEST_TRUST_CUTOVER_DATE: date = date(2025, 11, 5)

    # Snapshots de inventario proyectado
    SNAPSHOT_BATCH_SIZE: int = 100
    SNAPSHOT_RETENTION_DAYS: int = 30
    SNAPSHOT_HORIZON_WEEKS_BACK: int = 1
    SNAPSHOT_HORIZON_WEEKS_AHEAD: int = 16
    SNAPSHOT_STALE_AFTER_DAYS: int = 7
    SNAPSHOT_MIN_COVERAGE_PCT: float = 80.0

    # Modelo de crecimiento logístico
    GROWTH_RATE_K: float = 0.5
    DEFAULT_CYCLE_WEEKS: int = 12

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

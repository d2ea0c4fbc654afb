"""
Configuration centrale de l'application via variables d'environnement.
Charger depuis un fichier .env en développement.
"""

from typing import Dict

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Base de données locale (cache + registre des séances)
    DATABASE_URL: str = "sqlite:///bunkmate_cache.db"

    # API distante des présences
    API_BASE_URL: str = "http://localhost:8080/api/v1"
    ATTENDANCE_DETAILED_PATH: str = "/attendancereports/student/detailed"
    API_ACCESS_TOKEN: str = ""
    API_TIMEOUT_SECONDS: float = 60.0

    # Durées de vie du cache (millisecondes)
    CACHE_DEFAULT_TTL_MS: int = 5 * 60 * 1000
    ATTENDANCE_TTL_MS: int = 10 * 60 * 1000

    # Seuils de statut (pourcentage de présence)
    DANGER_THRESHOLD: float = 75.0
    WARNING_THRESHOLD: float = 80.0

    # Identifiant de séance serveur → heure de cours (1..6)
    SESSION_HOUR_MAP: Dict[str, int] = {
        "261": 1, "262": 2, "263": 3,
        "264": 4, "265": 5, "266": 6,
    }

    # Synchronisation en arrière-plan
    SYNC_ENABLED: bool = True
    SYNC_INTERVAL_MINUTES: int = 30

    # Environnement
    ENV: str = "development"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()

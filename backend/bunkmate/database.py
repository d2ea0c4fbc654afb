"""
Configuration de la base de données locale (SQLite).
Le cache TTL, l'instantané structuré et le registre des séances y sont stockés.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

from bunkmate.config import settings

# check_same_thread=False : le scheduler APScheduler écrit depuis un autre thread
engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {},
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db() -> None:
    """Crée les tables manquantes (aucune migration : les données sont reconstructibles)."""
    import bunkmate.models  # noqa: F401 (enregistre les modèles dans Base.metadata)

    Base.metadata.create_all(bind=engine)


def get_db():
    """Dépendance FastAPI : fournit une session BDD et la ferme après usage."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

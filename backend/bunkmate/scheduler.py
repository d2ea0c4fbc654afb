"""
Planificateur APScheduler pour la synchronisation des présences en arrière-plan.

Le job force un rafraîchissement depuis l'API toutes les SYNC_INTERVAL_MINUTES
puis signale le nombre de conflits ouverts. Une synchronisation en arrière-plan
est silencieuse : les erreurs sont journalisées, jamais propagées.
"""

import logging
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from bunkmate.config import settings
from bunkmate.database import SessionLocal
from bunkmate.services.attendance_client import AttendanceApiClient

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def sync_attendance(
    session_factory: Callable = SessionLocal,
    client_factory: Callable = AttendanceApiClient,
) -> Optional[int]:
    """
    Tâche planifiée : rafraîchit les présences et retourne le nombre de conflits ouverts.
    Import local pour éviter les imports circulaires.
    """
    from bunkmate.services import attendance_service, reconciliation_service

    db = session_factory()
    client = client_factory()
    try:
        attendance_service.fetch_detailed_attendance(db, client, force_refresh=True)
        conflicts = reconciliation_service.get_conflicts(db)
        if conflicts:
            logger.info("%d conflit(s) de présence à résoudre", len(conflicts))
        return len(conflicts)
    except Exception as exc:
        logger.error("Erreur lors de la synchronisation des présences : %s", exc)
        return None
    finally:
        client.close()
        db.close()


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    scheduler.add_job(
        sync_attendance,
        trigger="interval",
        minutes=settings.SYNC_INTERVAL_MINUTES,
        id="attendance_background_sync",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler démarré, synchronisation des présences toutes les %d minutes.",
        settings.SYNC_INTERVAL_MINUTES,
    )


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")

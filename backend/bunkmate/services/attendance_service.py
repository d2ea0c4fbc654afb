"""
Orchestration récupération / cache des présences détaillées.

Ordre de lecture :
1. Cache TTL (sauf force_refresh) → retour immédiat, aucun appel réseau
2. API distante → ingestion enseignant, synthèse, instantané et cache reconstruits
3. Échec réseau → instantané structuré (sans expiration)
4. Rien de disponible → NetworkError propagée (jamais de synthèse vide ambiguë)

Les totaux servis depuis le cache ou l'instantané sont recalculés sur le registre :
le cache évite l'appel réseau, pas la prise en compte des saisies étudiant.
"""

import logging
import threading
from typing import Optional, Protocol

from pydantic import ValidationError
from sqlalchemy.orm import Session

from bunkmate.config import settings
from bunkmate.exceptions import NetworkError
from bunkmate.schemas.attendance import AttendanceSummary, SubjectAttendance
from bunkmate.schemas.remote import AttendanceApiResponse
from bunkmate.services import (
    cache_service,
    reconciliation_service,
    schedule_parser,
    snapshot_service,
    stats_service,
)

logger = logging.getLogger(__name__)

ATTENDANCE_CACHE_KEY = "attendance_detailed"
COURSE_SCHEDULE_CACHE_KEY = "course_schedule"

# Un seul rafraîchissement à la fois ; les lectures du cache ne prennent pas le verrou
_refresh_lock = threading.Lock()


class AttendanceSource(Protocol):
    def fetch_attendance_detailed(self) -> AttendanceApiResponse: ...


def _read_cached_summary(db: Session) -> Optional[AttendanceSummary]:
    cached = cache_service.get_cache(db, ATTENDANCE_CACHE_KEY)
    if cached is None:
        return None
    try:
        summary = AttendanceSummary.model_validate(cached)
    except ValidationError:
        logger.warning("Synthèse en cache illisible, traitée comme absente")
        cache_service.delete_cache(db, ATTENDANCE_CACHE_KEY)
        return None
    return stats_service.recompute_summary(db, summary.model_copy(update={"source": "cache"}))


def fetch_detailed_attendance(
    db: Session,
    client: AttendanceSource,
    force_refresh: bool = False,
) -> AttendanceSummary:
    """Synthèse des présences : cache TTL, puis réseau, puis instantané hors-ligne."""
    if not force_refresh:
        summary = _read_cached_summary(db)
        if summary is not None:
            logger.debug("Synthèse servie depuis le cache TTL")
            return summary

    return refresh_attendance(db, client)


def refresh_attendance(db: Session, client: AttendanceSource) -> AttendanceSummary:
    """
    Récupère l'instantané enseignant et reconstruit toutes les projections locales.
    Idempotent : deux rafraîchissements sur les mêmes données donnent le même état.
    """
    with _refresh_lock:
        try:
            raw = client.fetch_attendance_detailed()
        except NetworkError as exc:
            snapshot = snapshot_service.get_snapshot(db)
            if snapshot is None:
                logger.error("API indisponible et aucun instantané local : %s", exc)
                raise
            logger.warning("API indisponible (%s), repli sur l'instantané local", exc)
            return stats_service.recompute_summary(db, snapshot)

        schedule = schedule_parser.parse_course_schedule(raw)
        reconciliation_service.ingest_course_schedule(db, schedule)

        summary = stats_service.build_summary(db, raw.courses.values())
        snapshot_service.store_snapshot(db, summary)

        cache_service.set_cache(
            db, ATTENDANCE_CACHE_KEY, summary.model_dump(mode="json"), settings.ATTENDANCE_TTL_MS
        )
        cache_service.set_cache(
            db,
            COURSE_SCHEDULE_CACHE_KEY,
            {
                subject_id: [entry.model_dump(mode="json") for entry in entries]
                for subject_id, entries in schedule.items()
            },
            settings.ATTENDANCE_TTL_MS,
        )

    logger.info(
        "Présences rafraîchies : %d matières, %.2f %% global",
        summary.total_subjects, summary.overall_percentage,
    )
    return summary


def get_subject_attendance(db: Session, subject_id: str) -> Optional[SubjectAttendance]:
    """Totaux d'une matière connue de l'instantané, recalculés sur le registre (lecture locale)."""
    known = snapshot_service.get_subject_snapshot(db, subject_id)
    if known is None:
        return None
    return stats_service.subject_attendance(db, known.subject, known.last_updated)


def clear_attendance_cache(db: Session) -> None:
    """Vide l'instantané et les entrées TTL ; le registre des séances est conservé."""
    snapshot_service.clear_snapshot(db)
    cache_service.delete_cache(db, ATTENDANCE_CACHE_KEY)
    cache_service.delete_cache(db, COURSE_SCHEDULE_CACHE_KEY)
    logger.info("Cache des présences vidé")

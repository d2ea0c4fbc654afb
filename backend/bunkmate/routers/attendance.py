"""
Router de lecture des présences : synthèse, matière, statistiques, calendrier.
Sert l'interface mobile, en ligne comme hors-ligne (cache TTL + instantané).
"""

from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from bunkmate.database import get_db
from bunkmate.exceptions import NetworkError
from bunkmate.schemas.attendance import (
    AttendanceSummary,
    SessionRecordResponse,
    SubjectAttendance,
    SubjectStats,
)
from bunkmate.services import attendance_service, reconciliation_service, stats_service
from bunkmate.services.attendance_client import AttendanceApiClient, get_attendance_client

router = APIRouter(prefix="/api/v1/attendance", tags=["Présences"])


@router.get(
    "",
    response_model=AttendanceSummary,
    summary="Synthèse détaillée des présences",
)
def get_attendance(
    force_refresh: bool = Query(False, description="Ignore le cache TTL et interroge l'API"),
    db: Session = Depends(get_db),
    client: AttendanceApiClient = Depends(get_attendance_client),
):
    """
    Retourne la synthèse des présences par matière et globale.

    Le champ `source` indique la provenance : network, cache (TTL) ou snapshot
    (instantané hors-ligne). Retourne 503 si l'API est injoignable et qu'aucune
    donnée locale n'existe.
    """
    try:
        return attendance_service.fetch_detailed_attendance(db, client, force_refresh=force_refresh)
    except NetworkError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get(
    "/subjects/{subject_id}",
    response_model=SubjectAttendance,
    summary="Totaux de présence d'une matière",
)
def get_subject_attendance(subject_id: str, db: Session = Depends(get_db)):
    """Lecture locale de l'instantané. Retourne 404 si la matière est inconnue."""
    subject = attendance_service.get_subject_attendance(db, subject_id)
    if subject is None:
        raise HTTPException(status_code=404, detail=f"Matière {subject_id} introuvable.")
    return subject


@router.get(
    "/subjects/{subject_id}/stats",
    response_model=SubjectStats,
    summary="Statistiques réconciliées d'une matière",
)
def get_subject_stats(subject_id: str, db: Session = Depends(get_db)):
    """Statistiques calculées sur le registre local, surcharges étudiant incluses."""
    return stats_service.calculate_subject_stats(db, subject_id)


@router.get(
    "/schedule",
    response_model=Dict[str, List[SessionRecordResponse]],
    summary="Séances par matière (calendrier)",
)
def get_schedule(
    subject_id: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
):
    """Séances réconciliées groupées par matière, filtrables par matière et période."""
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="La date de début doit précéder la date de fin.")
    return reconciliation_service.get_course_schedule(db, subject_id=subject_id, start=start, end=end)


@router.delete(
    "/cache",
    status_code=204,
    summary="Vider le cache des présences",
)
def clear_cache(db: Session = Depends(get_db)):
    """Vide le cache TTL et l'instantané. Les saisies étudiant sont conservées."""
    attendance_service.clear_attendance_cache(db)

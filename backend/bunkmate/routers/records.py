"""
Router des saisies étudiant et des conflits de présence.
Surcharges manuelles, annulation, résolution, vérification de créneau.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session

from bunkmate.database import get_db
from bunkmate.exceptions import ConflictNotFoundError, TimeConflictError
from bunkmate.schemas.attendance import (
    ResolveConflictRequest,
    SessionRecordResponse,
    TimeConflictResponse,
    UserAttendanceRequest,
)
from bunkmate.services import reconciliation_service

router = APIRouter(prefix="/api/v1/attendance", tags=["Saisies étudiant"])


@router.put(
    "/records",
    response_model=SessionRecordResponse,
    summary="Saisir une présence manuellement",
)
def set_user_attendance(data: UserAttendanceRequest, db: Session = Depends(get_db)):
    """
    Enregistre la présence saisie par l'étudiant ; elle devient immédiatement
    la valeur finale, même si elle contredit la saisie enseignant (conflit signalé).

    Retourne 409 si une autre matière occupe déjà ce créneau.
    """
    try:
        return reconciliation_service.set_user_attendance(
            db, data.subject_id, data.year, data.month, data.day, data.hour, data.attendance
        )
    except TimeConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete(
    "/records/{subject_id}/{year}/{month}/{day}/{hour}",
    status_code=204,
    summary="Annuler une saisie étudiant",
)
def delete_user_override(
    subject_id: str,
    year: int,
    month: int = Path(ge=1, le=12),
    day: int = Path(ge=1, le=31),
    hour: int = Path(ge=1, le=12),
    db: Session = Depends(get_db),
):
    """
    Revient à la valeur enseignant, ou supprime la séance si l'enseignant
    n'a rien saisi. Retourne 404 si le créneau n'existe pas.
    """
    if not reconciliation_service.delete_user_override(db, subject_id, year, month, day, hour):
        raise HTTPException(status_code=404, detail="Séance introuvable.")


@router.post(
    "/records/resolve",
    response_model=SessionRecordResponse,
    summary="Résoudre un conflit enseignant / étudiant",
)
def resolve_conflict(data: ResolveConflictRequest, db: Session = Depends(get_db)):
    """
    accept_teacher : la valeur enseignant devient finale.
    keep_user : la saisie étudiant est conservée.

    Retourne 404 si la séance n'est pas en conflit.
    """
    try:
        return reconciliation_service.resolve_conflict(
            db, data.subject_id, data.year, data.month, data.day, data.hour, data.resolution
        )
    except ConflictNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get(
    "/conflicts",
    response_model=List[SessionRecordResponse],
    summary="Lister les conflits ouverts",
)
def get_conflicts(subject_id: Optional[str] = None, db: Session = Depends(get_db)):
    return reconciliation_service.get_conflicts(db, subject_id)


@router.get(
    "/time-conflict",
    response_model=TimeConflictResponse,
    summary="Vérifier qu'un créneau est libre",
)
def check_time_conflict(
    exclude_subject_id: str,
    year: int,
    month: int = Query(ge=1, le=12),
    day: int = Query(ge=1, le=31),
    hour: int = Query(ge=1, le=12),
    db: Session = Depends(get_db),
):
    """Vrai si une autre matière a déjà une présence sur ce créneau."""
    return TimeConflictResponse(
        has_conflict=reconciliation_service.check_time_conflict(
            db, exclude_subject_id, year, month, day, hour
        )
    )

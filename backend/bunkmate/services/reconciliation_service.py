"""
Moteur de réconciliation des présences enseignant / étudiant.

Deux flux indépendants alimentent le registre course_schedule :
- Ingestion enseignant : valeurs remontées par l'API à chaque récupération
- Saisie étudiant      : valeurs entrées manuellement dans l'app (surcharges)

Règles :
- La saisie étudiant l'emporte immédiatement pour l'affichage et les statistiques,
  même en conflit (le conflit est une notification, pas un blocage)
- Conflit = valeurs enseignant et étudiant présentes, différentes, non résolues
- final_attendance est toujours recalculée par derive_final(), jamais fournie par l'appelant
- Chaque mutation est une lecture-modification-écriture sur un seul créneau, commitée en une fois
"""

import logging
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from bunkmate.exceptions import ConflictNotFoundError, TimeConflictError
from bunkmate.models.attendance import AttendanceValue, SessionRecord
from bunkmate.schemas.attendance import ConflictResolution, ScheduleEntry

logger = logging.getLogger(__name__)


# ============================================================
# Dérivation (fonctions pures)
# ============================================================

def derive_final(record: SessionRecord) -> Optional[AttendanceValue]:
    """Valeur retenue : la saisie étudiant si la surcharge est active, sinon celle de l'enseignant."""
    if record.is_user_override and record.user_attendance is not None:
        return record.user_attendance
    return record.teacher_attendance


def detect_conflict(record: SessionRecord) -> bool:
    """
    Conflit si la surcharge étudiant est active et contredit la valeur enseignant,
    sauf si cette même valeur enseignant a déjà été acquittée (résolution keep_user).
    """
    if not record.is_user_override:
        return False
    if record.teacher_attendance is None or record.user_attendance is None:
        return False
    if record.teacher_attendance == record.user_attendance:
        return False
    return record.teacher_attendance != record.resolved_teacher_attendance


def _recompute(record: SessionRecord) -> None:
    record.is_conflict = detect_conflict(record)
    record.final_attendance = derive_final(record)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# Lectures
# ============================================================

def _slot_filter(subject_id: str, year: int, month: int, day: int, hour: int):
    return (
        SessionRecord.subject_id == str(subject_id),
        SessionRecord.year == year,
        SessionRecord.month == month,
        SessionRecord.day == day,
        SessionRecord.hour == hour,
    )


def get_record(
    db: Session, subject_id: str, year: int, month: int, day: int, hour: int
) -> Optional[SessionRecord]:
    return db.execute(
        select(SessionRecord).where(*_slot_filter(subject_id, year, month, day, hour))
    ).scalar()


def get_subject_records(db: Session, subject_id: str) -> List[SessionRecord]:
    """Toutes les séances d'une matière, de la plus récente à la plus ancienne."""
    return db.execute(
        select(SessionRecord)
        .where(SessionRecord.subject_id == str(subject_id))
        .order_by(
            SessionRecord.year.desc(),
            SessionRecord.month.desc(),
            SessionRecord.day.desc(),
            SessionRecord.hour.desc(),
        )
    ).scalars().all()


def get_conflicts(db: Session, subject_id: Optional[str] = None) -> List[SessionRecord]:
    """Séances en conflit (toutes matières ou une seule), les plus récentes d'abord."""
    query = select(SessionRecord).where(SessionRecord.is_conflict.is_(True))
    if subject_id is not None:
        query = query.where(SessionRecord.subject_id == str(subject_id))
    query = query.order_by(
        SessionRecord.year.desc(),
        SessionRecord.month.desc(),
        SessionRecord.day.desc(),
        SessionRecord.hour.desc(),
    )
    return db.execute(query).scalars().all()


def _date_key(column_year, column_month, column_day):
    return column_year * 10000 + column_month * 100 + column_day


def get_course_schedule(
    db: Session,
    subject_id: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> Dict[str, List[SessionRecord]]:
    """
    Séances groupées par matière (rendu calendrier).
    Filtres optionnels : matière, et fenêtre de dates [start, end] incluse.
    """
    query = select(SessionRecord)
    if subject_id is not None:
        query = query.where(SessionRecord.subject_id == str(subject_id))

    key = _date_key(SessionRecord.year, SessionRecord.month, SessionRecord.day)
    if start is not None:
        query = query.where(key >= start.year * 10000 + start.month * 100 + start.day)
    if end is not None:
        query = query.where(key <= end.year * 10000 + end.month * 100 + end.day)

    query = query.order_by(
        SessionRecord.subject_id,
        SessionRecord.year,
        SessionRecord.month,
        SessionRecord.day,
        SessionRecord.hour,
    )

    schedule: Dict[str, List[SessionRecord]] = {}
    for record in db.execute(query).scalars():
        schedule.setdefault(record.subject_id, []).append(record)
    return schedule


def _find_time_conflict(
    db: Session, exclude_subject_id: str, year: int, month: int, day: int, hour: int
) -> Optional[SessionRecord]:
    return db.execute(
        select(SessionRecord)
        .where(
            SessionRecord.year == year,
            SessionRecord.month == month,
            SessionRecord.day == day,
            SessionRecord.hour == hour,
            SessionRecord.subject_id != str(exclude_subject_id),
            (SessionRecord.teacher_attendance.is_not(None)) | (SessionRecord.user_attendance.is_not(None)),
        )
        .limit(1)
    ).scalar()


def check_time_conflict(
    db: Session, exclude_subject_id: str, year: int, month: int, day: int, hour: int
) -> bool:
    """Vrai si une autre matière a déjà une valeur (enseignant ou étudiant) sur ce créneau."""
    return _find_time_conflict(db, exclude_subject_id, year, month, day, hour) is not None


# ============================================================
# Ingestion enseignant
# ============================================================

def _apply_teacher_value(
    db: Session,
    subject_id: str,
    year: int,
    month: int,
    day: int,
    hour: int,
    value: AttendanceValue,
) -> SessionRecord:
    record = get_record(db, subject_id, year, month, day, hour)
    now = _utcnow()

    if record is None:
        record = SessionRecord(
            subject_id=str(subject_id),
            year=year,
            month=month,
            day=day,
            hour=hour,
            teacher_attendance=value,
            user_attendance=None,
            resolved_teacher_attendance=None,
            is_user_override=False,
            is_entered_by_professor=True,
            is_entered_by_student=False,
            last_teacher_update=now,
        )
        _recompute(record)
        db.add(record)
        # autoflush=False : rendre la ligne visible aux lectures suivantes du même lot
        db.flush()
        logger.debug("Séance créée (enseignant) : %r", record)
        return record

    # Horodatage modifié uniquement si la valeur change (ré-ingestion idempotente)
    if record.teacher_attendance != value:
        record.teacher_attendance = value
        record.last_teacher_update = now
    record.is_entered_by_professor = True
    _recompute(record)

    if record.is_conflict:
        logger.debug("Conflit détecté : %r", record)
    return record


def ingest_teacher_attendance(
    db: Session,
    subject_id: str,
    year: int,
    month: int,
    day: int,
    hour: int,
    value: AttendanceValue,
) -> SessionRecord:
    """
    Enregistre la valeur enseignant d'un créneau.

    - Pas de séance : création (teacher = final = value)
    - Pas de surcharge active : teacher et final écrasés, conflit levé
    - Surcharge active : final reste la valeur étudiant, conflit si les valeurs diffèrent
    """
    record = _apply_teacher_value(db, subject_id, year, month, day, hour, AttendanceValue.parse(value))
    db.commit()
    db.refresh(record)
    return record


def ingest_course_schedule(db: Session, schedule: Mapping[str, Iterable[ScheduleEntry]]) -> int:
    """
    Ingestion en lot de l'instantané enseignant ({subject_id: [ScheduleEntry]}).
    Tout le lot est commité en une seule fois. Retourne le nombre de créneaux traités.
    """
    count = 0
    for subject_id, entries in schedule.items():
        for entry in entries:
            _apply_teacher_value(
                db, subject_id, entry.year, entry.month, entry.day, entry.hour, entry.attendance
            )
            count += 1
    db.commit()

    conflicts = db.execute(
        select(SessionRecord.id).where(SessionRecord.is_conflict.is_(True))
    ).scalars().all()
    logger.info(
        "Ingestion enseignant : %d matières, %d créneaux, %d conflits ouverts",
        len(schedule), count, len(conflicts),
    )
    return count


# ============================================================
# Saisie étudiant
# ============================================================

def set_user_attendance(
    db: Session,
    subject_id: str,
    year: int,
    month: int,
    day: int,
    hour: int,
    value: AttendanceValue,
) -> SessionRecord:
    """
    Enregistre la saisie manuelle de l'étudiant ; elle devient la valeur finale.

    Lève TimeConflictError (sans aucune modification) si une autre matière
    occupe déjà ce créneau : un étudiant n'est que dans une salle par heure.
    """
    value = AttendanceValue.parse(value)

    other = _find_time_conflict(db, subject_id, year, month, day, hour)
    if other is not None:
        raise TimeConflictError(
            f"Créneau déjà occupé par la matière {other.subject_id} "
            f"({hour}e heure du {day:02d}/{month:02d}/{year}).",
            conflicting_subject_id=other.subject_id,
        )

    now = _utcnow()
    record = get_record(db, subject_id, year, month, day, hour)
    if record is None:
        record = SessionRecord(
            subject_id=str(subject_id),
            year=year,
            month=month,
            day=day,
            hour=hour,
            teacher_attendance=None,
            is_entered_by_professor=False,
        )
        db.add(record)

    record.user_attendance = value
    record.resolved_teacher_attendance = None
    record.is_user_override = True
    record.is_entered_by_student = True
    record.last_user_update = now
    _recompute(record)

    db.commit()
    db.refresh(record)

    logger.info(
        "Saisie étudiant %s %d-%02d-%02d h%d = %s (conflit=%s)",
        record.subject_id, year, month, day, hour, value.value, record.is_conflict,
    )
    return record


def delete_user_override(
    db: Session, subject_id: str, year: int, month: int, day: int, hour: int
) -> bool:
    """
    Annule la saisie étudiant d'un créneau.

    - Valeur enseignant présente : retour à cette valeur (surcharge et conflit levés)
    - Sinon : la séance est supprimée (plus rien de fiable à conserver)
    Retourne False si le créneau n'existe pas.
    """
    record = get_record(db, subject_id, year, month, day, hour)
    if record is None:
        return False

    if record.teacher_attendance is None:
        db.delete(record)
        db.commit()
        logger.info("Séance %s %d-%02d-%02d h%d supprimée (aucune valeur enseignant)",
                    subject_id, year, month, day, hour)
        return True

    record.user_attendance = None
    record.resolved_teacher_attendance = None
    record.is_user_override = False
    record.last_user_update = None
    _recompute(record)
    db.commit()

    logger.info("Surcharge annulée %s %d-%02d-%02d h%d → %s",
                subject_id, year, month, day, hour, record.final_attendance.value)
    return True


def resolve_conflict(
    db: Session,
    subject_id: str,
    year: int,
    month: int,
    day: int,
    hour: int,
    resolution: ConflictResolution,
) -> SessionRecord:
    """
    Résout un conflit sur commande de l'étudiant.

    - accept_teacher : final = valeur enseignant, surcharge désactivée
    - keep_user      : final = valeur étudiant, surcharge conservée ; la valeur
                       enseignant est acquittée (une ré-ingestion identique ne
                       relève plus de conflit)

    Lève ConflictNotFoundError si la séance n'existe pas ou n'est pas en conflit.
    """
    resolution = ConflictResolution(resolution)

    record = get_record(db, subject_id, year, month, day, hour)
    if record is None or not record.is_conflict:
        raise ConflictNotFoundError(
            f"Aucun conflit sur {subject_id} {year}-{month:02d}-{day:02d} heure {hour}."
        )

    if resolution is ConflictResolution.ACCEPT_TEACHER:
        record.is_user_override = False
        record.resolved_teacher_attendance = None
    else:
        record.is_user_override = True
        record.resolved_teacher_attendance = record.teacher_attendance
    _recompute(record)

    db.commit()
    db.refresh(record)

    logger.info("Conflit résolu (%s) %s %d-%02d-%02d h%d → %s",
                resolution.value, record.subject_id, year, month, day, hour,
                record.final_attendance.value)
    return record


# ============================================================
# Remise à zéro
# ============================================================

def reset_teacher_data(db: Session) -> None:
    """
    Efface les données enseignant (déconnexion, changement d'année).

    Toute séance portant une valeur étudiant est conservée, y compris une saisie
    écartée par accept_teacher : sans valeur enseignant, elle redevient la
    valeur finale. Les séances sans valeur étudiant sont supprimées.
    """
    db.execute(
        update(SessionRecord)
        .where(SessionRecord.user_attendance.is_not(None))
        .values(
            teacher_attendance=None,
            final_attendance=SessionRecord.user_attendance,
            resolved_teacher_attendance=None,
            is_user_override=True,
            is_conflict=False,
            is_entered_by_professor=False,
            last_teacher_update=None,
        )
    )
    db.execute(delete(SessionRecord).where(SessionRecord.user_attendance.is_(None)))
    db.commit()
    logger.info("Données enseignant effacées, surcharges étudiant conservées")


def clear_course_schedule(db: Session) -> None:
    db.execute(delete(SessionRecord))
    db.commit()

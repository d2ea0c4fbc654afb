"""
Agrégation des statistiques de présence à partir des séances réconciliées.

- Par matière : total / présents / absents / pourcentage / conflits / surcharges
- Global : Σ présents / Σ séances (pondéré par nombre de séances, pas par matière)
- Marges : séances à suivre / absences possibles par rapport au seuil danger
"""

import math
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from bunkmate.config import settings
from bunkmate.models.attendance import AttendanceValue, SessionRecord
from bunkmate.schemas.attendance import (
    AttendanceStatus,
    AttendanceSummary,
    SubjectAttendance,
    SubjectInfo,
    SubjectStats,
    SummarySource,
)
from bunkmate.schemas.remote import RawCourse
from bunkmate.services import reconciliation_service


def attendance_status(
    percentage: float,
    danger_threshold: Optional[float] = None,
    warning_threshold: Optional[float] = None,
) -> AttendanceStatus:
    danger = settings.DANGER_THRESHOLD if danger_threshold is None else danger_threshold
    warning = settings.WARNING_THRESHOLD if warning_threshold is None else warning_threshold
    if percentage < danger:
        return "danger"
    if percentage < warning:
        return "warning"
    return "safe"


def _target(target: Optional[float]) -> float:
    return settings.DANGER_THRESHOLD if target is None else target


def classes_to_attend(stats: SubjectStats, target: Optional[float] = None) -> int:
    """Séances à suivre pour atteindre `target` % (seuil danger par défaut) ; 0 si déjà atteint."""
    target = _target(target)
    if stats.percentage >= target:
        return 0
    required = math.ceil(target * stats.total / 100)
    return max(0, required - stats.present)


def classes_can_miss(stats: SubjectStats, target: Optional[float] = None) -> int:
    """Absences encore possibles sans descendre sous `target` % ; 0 au seuil ou en dessous."""
    target = _target(target)
    if stats.percentage <= target:
        return 0
    minimum = math.ceil(target * stats.total / 100)
    return max(0, stats.present - minimum)


def compute_subject_stats(records: Iterable[SessionRecord]) -> SubjectStats:
    """Seules les séances avec une valeur finale comptent dans le total."""
    stats = SubjectStats()
    for record in records:
        if record.final_attendance is not None:
            stats.total += 1
            if record.final_attendance == AttendanceValue.PRESENT:
                stats.present += 1
            elif record.final_attendance == AttendanceValue.ABSENT:
                stats.absent += 1
        if record.is_conflict:
            stats.conflicts += 1
        if record.is_user_override:
            stats.overrides += 1

    stats.percentage = (stats.present / stats.total) * 100 if stats.total > 0 else 0.0
    stats.classes_to_attend = classes_to_attend(stats)
    stats.classes_can_miss = classes_can_miss(stats)
    return stats


def calculate_subject_stats(db: Session, subject_id: str) -> SubjectStats:
    return compute_subject_stats(reconciliation_service.get_subject_records(db, subject_id))


def overall_percentage(subjects: Iterable[SubjectAttendance]) -> float:
    subjects = list(subjects)
    total = sum(s.total_classes for s in subjects)
    attended = sum(s.attended_classes for s in subjects)
    return (attended / total) * 100 if total > 0 else 0.0


def subject_attendance(
    db: Session, subject: SubjectInfo, last_updated: str = ""
) -> Optional[SubjectAttendance]:
    """Totaux d'une matière lus sur le registre ; None si aucune séance n'est comptabilisée."""
    stats = calculate_subject_stats(db, subject.id)
    if stats.total == 0:
        return None

    return SubjectAttendance(
        subject=subject,
        total_classes=stats.total,
        attended_classes=stats.present,
        percentage=round(stats.percentage, 2),
        last_updated=last_updated,
        status=attendance_status(stats.percentage),
        classes_to_attend=stats.classes_to_attend,
        classes_can_miss=stats.classes_can_miss,
    )


def _summarize(subjects: List[SubjectAttendance], source: SummarySource = "network") -> AttendanceSummary:
    subjects.sort(key=lambda s: s.subject.name)
    return AttendanceSummary(
        total_subjects=len(subjects),
        overall_percentage=overall_percentage(subjects),
        subjects=subjects,
        source=source,
    )


def build_summary(db: Session, courses: Iterable[RawCourse]) -> AttendanceSummary:
    """
    Construit la synthèse à partir du registre réconcilié (surcharges incluses).
    Les matières sans aucune séance comptabilisée sont ignorées.
    """
    subjects: List[SubjectAttendance] = []

    for course in courses:
        info = SubjectInfo(
            id=str(course.id),
            name=course.name,
            code=course.code,
            semester=course.academic_semester or "",
            is_active=course.deleted_at is None,
        )
        item = subject_attendance(db, info, course.updated_at or "")
        if item is not None:
            subjects.append(item)

    return _summarize(subjects)


def recompute_summary(db: Session, summary: AttendanceSummary) -> AttendanceSummary:
    """
    Recalcule une synthèse déjà connue (cache TTL ou instantané) sur l'état
    actuel du registre : une saisie étudiant compte dès qu'elle est enregistrée,
    sans attendre le prochain appel réseau. Matières et provenance conservées.
    """
    subjects: List[SubjectAttendance] = []
    for known in summary.subjects:
        item = subject_attendance(db, known.subject, known.last_updated)
        if item is not None:
            subjects.append(item)

    return _summarize(subjects, summary.source)

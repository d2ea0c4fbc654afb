"""
Instantané structuré des présences : repli hors-ligne sans expiration.

Reconstruit en bloc (DELETE puis INSERT, une seule transaction) après chaque
récupération réussie ; jamais modifié partiellement.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from bunkmate.models.snapshot import AttendanceSubject, AttendanceSummaryRow
from bunkmate.schemas.attendance import AttendanceSummary, SubjectAttendance, SubjectInfo

logger = logging.getLogger(__name__)


def store_snapshot(db: Session, summary: AttendanceSummary) -> None:
    """Remplace l'instantané complet par `summary`."""
    db.execute(delete(AttendanceSubject))
    db.execute(delete(AttendanceSummaryRow))

    db.add(
        AttendanceSummaryRow(
            total_subjects=summary.total_subjects,
            overall_percentage=summary.overall_percentage,
            last_updated=datetime.now(timezone.utc).isoformat(),
        )
    )
    for subject in summary.subjects:
        db.add(
            AttendanceSubject(
                subject_id=subject.subject.id,
                subject_name=subject.subject.name,
                subject_code=subject.subject.code,
                total_classes=subject.total_classes,
                attended_classes=subject.attended_classes,
                percentage=subject.percentage,
                last_updated=subject.last_updated,
                status=subject.status,
                classes_to_attend=subject.classes_to_attend,
                classes_can_miss=subject.classes_can_miss,
            )
        )
    db.commit()

    logger.info(
        "Instantané reconstruit : %d matières, %.2f %% global",
        summary.total_subjects, summary.overall_percentage,
    )


def _to_subject_attendance(row: AttendanceSubject) -> SubjectAttendance:
    # Les métadonnées de matière non stockées reprennent leurs valeurs par défaut
    return SubjectAttendance(
        subject=SubjectInfo(id=row.subject_id, name=row.subject_name, code=row.subject_code),
        total_classes=row.total_classes,
        attended_classes=row.attended_classes,
        percentage=row.percentage,
        last_updated=row.last_updated,
        status=row.status,
        classes_to_attend=row.classes_to_attend,
        classes_can_miss=row.classes_can_miss,
    )


def get_snapshot(db: Session) -> Optional[AttendanceSummary]:
    """Dernier instantané connu, ou None s'il n'a jamais été construit."""
    summary = db.execute(
        select(AttendanceSummaryRow).order_by(AttendanceSummaryRow.id.desc()).limit(1)
    ).scalar()
    if summary is None:
        return None

    rows = db.execute(
        select(AttendanceSubject).order_by(AttendanceSubject.subject_name)
    ).scalars().all()

    return AttendanceSummary(
        total_subjects=summary.total_subjects,
        overall_percentage=summary.overall_percentage,
        subjects=[_to_subject_attendance(row) for row in rows],
        source="snapshot",
    )


def get_subject_snapshot(db: Session, subject_id: str) -> Optional[SubjectAttendance]:
    row = db.execute(
        select(AttendanceSubject).where(AttendanceSubject.subject_id == str(subject_id))
    ).scalar()
    return _to_subject_attendance(row) if row else None


def clear_snapshot(db: Session) -> None:
    db.execute(delete(AttendanceSubject))
    db.execute(delete(AttendanceSummaryRow))
    db.commit()

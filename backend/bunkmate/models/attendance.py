"""
Modèle SQLAlchemy du registre de réconciliation (table course_schedule).

Une ligne par créneau (subject_id, year, month, day, hour) :
- teacher_attendance : dernière valeur remontée par l'API (enseignant)
- user_attendance    : dernière valeur saisie localement par l'étudiant
- final_attendance   : valeur retenue pour l'affichage et les statistiques,
                       toujours dérivée (voir reconciliation_service.derive_final)
"""

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Index, Integer, String, UniqueConstraint, func

from bunkmate.database import Base


class AttendanceValue(str, enum.Enum):
    """Valeur de présence d'une séance. None = pas encore saisie."""

    PRESENT = "P"
    ABSENT = "A"

    @classmethod
    def parse(cls, raw) -> "AttendanceValue":
        """Normalise les variantes reçues ("P", "present", "Present", "a"...)."""
        if isinstance(raw, cls):
            return raw
        normalized = str(raw).strip().lower()
        if normalized in ("p", "present"):
            return cls.PRESENT
        if normalized in ("a", "absent"):
            return cls.ABSENT
        raise ValueError(f"Valeur de présence invalide : {raw!r}")


_attendance_enum = Enum(AttendanceValue, native_enum=False, length=10)


class SessionRecord(Base):
    """Séance de cours réconciliée entre la saisie enseignant et la saisie étudiant."""
    __tablename__ = "course_schedule"
    __table_args__ = (
        UniqueConstraint("subject_id", "year", "month", "day", "hour", name="uq_course_schedule_slot"),
        Index("idx_course_schedule_subject_date", "subject_id", "year", "month", "day"),
        Index("idx_course_schedule_date", "year", "month", "day"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    subject_id = Column(String(50), nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    day = Column(Integer, nullable=False)
    hour = Column(Integer, nullable=False)                  # 1..6

    teacher_attendance = Column(_attendance_enum, nullable=True)
    user_attendance = Column(_attendance_enum, nullable=True)
    final_attendance = Column(_attendance_enum, nullable=True)
    resolved_teacher_attendance = Column(_attendance_enum, nullable=True)  # Valeur acquittée via keep_user

    is_conflict = Column(Boolean, nullable=False, default=False)
    is_user_override = Column(Boolean, nullable=False, default=False)
    is_entered_by_professor = Column(Boolean, nullable=False, default=False)
    is_entered_by_student = Column(Boolean, nullable=False, default=False)

    last_teacher_update = Column(DateTime, nullable=True)
    last_user_update = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def slot(self) -> tuple:
        return (self.year, self.month, self.day, self.hour)

    def __repr__(self) -> str:
        return (
            f"<SessionRecord {self.subject_id} {self.year}-{self.month:02d}-{self.day:02d} h{self.hour} "
            f"teacher={self.teacher_attendance} user={self.user_attendance} final={self.final_attendance}>"
        )

"""
Schémas Pydantic exposés à l'interface (synthèse, statistiques, séances).
"""

import enum
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from bunkmate.models.attendance import AttendanceValue

AttendanceStatus = Literal["safe", "warning", "danger"]
SummarySource = Literal["network", "cache", "snapshot"]


class ConflictResolution(str, enum.Enum):
    ACCEPT_TEACHER = "accept_teacher"
    KEEP_USER = "keep_user"


class ScheduleEntry(BaseModel):
    """Créneau saisi par l'enseignant, extrait de la réponse brute."""

    year: int
    month: int
    day: int
    hour: int
    attendance: AttendanceValue


# ============================================================
# Synthèse des présences
# ============================================================

class SubjectInfo(BaseModel):
    id: str
    name: str
    code: str = ""
    semester: str = ""
    is_active: bool = True


class SubjectAttendance(BaseModel):
    subject: SubjectInfo
    total_classes: int
    attended_classes: int
    percentage: float
    last_updated: str = ""
    status: AttendanceStatus
    classes_to_attend: int = 0          # Séances à suivre pour remonter au seuil
    classes_can_miss: int = 0           # Absences possibles sans passer sous le seuil


class AttendanceSummary(BaseModel):
    """Synthèse globale renvoyée à l'interface (et mise en cache)."""

    total_subjects: int
    overall_percentage: float
    subjects: List[SubjectAttendance] = Field(default_factory=list)
    source: SummarySource = "network"    # Provenance : jamais ambigu pour l'appelant


class SubjectStats(BaseModel):
    """Statistiques calculées sur les séances réconciliées d'une matière."""

    total: int = 0
    present: int = 0
    absent: int = 0
    percentage: float = 0.0
    conflicts: int = 0
    overrides: int = 0
    classes_to_attend: int = 0
    classes_can_miss: int = 0


# ============================================================
# Séances (registre de réconciliation)
# ============================================================

class SessionRecordResponse(BaseModel):
    id: int
    subject_id: str
    year: int
    month: int
    day: int
    hour: int
    teacher_attendance: Optional[AttendanceValue]
    user_attendance: Optional[AttendanceValue]
    final_attendance: Optional[AttendanceValue]
    is_conflict: bool
    is_user_override: bool
    is_entered_by_professor: bool
    is_entered_by_student: bool
    last_teacher_update: Optional[datetime] = None
    last_user_update: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SlotRequest(BaseModel):
    """Identifie un créneau : matière + date + heure de cours."""

    subject_id: str
    year: int
    month: int = Field(ge=1, le=12)
    day: int = Field(ge=1, le=31)
    hour: int = Field(ge=1, le=12)

    @field_validator("subject_id", mode="before")
    @classmethod
    def subject_id_as_str(cls, v) -> str:
        v = str(v).strip()
        if not v:
            raise ValueError("L'identifiant de matière ne peut pas être vide.")
        return v

    @model_validator(mode="after")
    def valid_date(self):
        try:
            date(self.year, self.month, self.day)
        except ValueError:
            raise ValueError(f"Date invalide : {self.year}-{self.month}-{self.day}")
        return self


class UserAttendanceRequest(SlotRequest):
    """Saisie manuelle d'une présence par l'étudiant."""

    attendance: AttendanceValue

    @field_validator("attendance", mode="before")
    @classmethod
    def normalize_attendance(cls, v) -> AttendanceValue:
        return AttendanceValue.parse(v)


class ResolveConflictRequest(SlotRequest):
    resolution: ConflictResolution


class TimeConflictResponse(BaseModel):
    has_conflict: bool

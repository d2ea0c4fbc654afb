"""
Schémas Pydantic de la réponse brute de l'API distante (rapport détaillé).
Endpoint distant : POST /attendancereports/student/detailed

Le serveur (PHP) renvoie [] au lieu de {} pour les collections vides :
les validateurs "before" normalisent ces cas.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _empty_list_to_dict(v: Any) -> Any:
    if v is None or (isinstance(v, list) and not v):
        return {}
    return v


class RawCourse(BaseModel):
    """Matière telle que décrite par le serveur."""
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    code: str = ""
    academic_semester: Optional[str] = None
    updated_at: Optional[str] = None
    deleted_at: Optional[str] = None


class RawAttendanceType(BaseModel):
    """Code de présence (table fournie par le serveur avec chaque réponse)."""
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = ""
    code: str = ""
    positive_report_value: float = 0   # > 0 → compte comme présent


class RawAttendanceMark(BaseModel):
    """Saisie d'une séance : (course, attendance) pour un identifiant de séance."""
    model_config = ConfigDict(extra="ignore")

    course: Optional[int] = None
    attendance: Optional[int] = None
    marked_by: Optional[int] = None


class AttendanceApiResponse(BaseModel):
    """Réponse complète : jour "YYYYMMDD" → séance → saisie."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    courses: Dict[str, RawCourse] = Field(default_factory=dict)
    sessions: Dict[str, Any] = Field(default_factory=dict)
    attendance_types: Dict[str, RawAttendanceType] = Field(default_factory=dict, alias="attendanceTypes")
    student_attendance_data: Dict[str, Dict[str, Optional[RawAttendanceMark]]] = Field(
        default_factory=dict, alias="studentAttendanceData"
    )

    @field_validator("courses", "sessions", "attendance_types", mode="before")
    @classmethod
    def normalize_empty_collections(cls, v: Any) -> Any:
        return _empty_list_to_dict(v)

    @field_validator("student_attendance_data", mode="before")
    @classmethod
    def normalize_empty_days(cls, v: Any) -> Any:
        v = _empty_list_to_dict(v)
        if isinstance(v, dict):
            return {day: _empty_list_to_dict(marks) for day, marks in v.items()}
        return v

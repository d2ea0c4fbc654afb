"""
Transformation de la réponse brute de l'API en créneaux enseignant par matière.

studentAttendanceData : {"YYYYMMDD": {session_id: {course, attendance, marked_by}}}
- session_id → heure de cours via SESSION_HOUR_MAP (261..266 → 1..6)
- attendance (id de type) → PRESENT si positive_report_value > 0, sinon ABSENT
"""

import logging
from datetime import date
from typing import Dict, List, Mapping, Optional

from bunkmate.config import settings
from bunkmate.models.attendance import AttendanceValue
from bunkmate.schemas.attendance import ScheduleEntry
from bunkmate.schemas.remote import AttendanceApiResponse, RawAttendanceType

logger = logging.getLogger(__name__)


def attendance_value_for(attendance_type: RawAttendanceType) -> AttendanceValue:
    if attendance_type.positive_report_value > 0:
        return AttendanceValue.PRESENT
    return AttendanceValue.ABSENT


def _parse_day(day_key: str) -> Optional[date]:
    try:
        return date(int(day_key[0:4]), int(day_key[4:6]), int(day_key[6:8]))
    except (ValueError, IndexError):
        return None


def parse_course_schedule(
    data: AttendanceApiResponse,
    session_hour_map: Optional[Mapping[str, int]] = None,
) -> Dict[str, List[ScheduleEntry]]:
    """
    Retourne {subject_id: [ScheduleEntry]} trié par créneau.

    Sont ignorées : les saisies sans matière ou sans type de présence,
    les matières ou types inconnus, les séances hors table horaire.
    """
    session_hour_map = session_hour_map or settings.SESSION_HOUR_MAP

    course_ids = {course.id for course in data.courses.values()}
    schedule: Dict[str, List[ScheduleEntry]] = {}
    skipped = 0

    for day_key, marks in data.student_attendance_data.items():
        day = _parse_day(day_key)
        if day is None:
            logger.warning("Clé de date ignorée (format YYYYMMDD attendu) : %r", day_key)
            continue

        for session_id, mark in marks.items():
            hour = session_hour_map.get(str(session_id))
            if hour is None or mark is None or mark.course is None or mark.attendance is None:
                skipped += 1
                continue
            if mark.course not in course_ids:
                skipped += 1
                continue
            attendance_type = data.attendance_types.get(str(mark.attendance))
            if attendance_type is None:
                skipped += 1
                continue

            schedule.setdefault(str(mark.course), []).append(
                ScheduleEntry(
                    year=day.year,
                    month=day.month,
                    day=day.day,
                    hour=hour,
                    attendance=attendance_value_for(attendance_type),
                )
            )

    for entries in schedule.values():
        entries.sort(key=lambda e: (e.year, e.month, e.day, e.hour))

    if skipped:
        logger.debug("%d saisie(s) brute(s) ignorée(s)", skipped)
    return schedule

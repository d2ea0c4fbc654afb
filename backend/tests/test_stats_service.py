"""
Tests unitaires de l'agrégation des statistiques de présence.
"""

import pytest

from bunkmate.models.attendance import AttendanceValue, SessionRecord
from bunkmate.schemas.attendance import SubjectAttendance, SubjectInfo, SubjectStats
from bunkmate.schemas.remote import RawCourse
from bunkmate.services import reconciliation_service, stats_service

P = AttendanceValue.PRESENT
A = AttendanceValue.ABSENT


def make_record(final=None, conflict=False, override=False) -> SessionRecord:
    return SessionRecord(final_attendance=final, is_conflict=conflict, is_user_override=override)


def make_subject(subject_id: str, total: int, attended: int) -> SubjectAttendance:
    return SubjectAttendance(
        subject=SubjectInfo(id=subject_id, name=subject_id),
        total_classes=total,
        attended_classes=attended,
        percentage=attended / total * 100,
        status="safe",
    )


# ============================================================
# compute_subject_stats
# ============================================================

def test_stats_sans_seance():
    """Aucune séance → pourcentage 0, pas de division par zéro."""
    stats = stats_service.compute_subject_stats([])
    assert stats.total == 0
    assert stats.percentage == 0


def test_stats_comptage():
    records = [
        make_record(P), make_record(P), make_record(A, conflict=True, override=True),
        make_record(P, override=True), make_record(None),
    ]
    stats = stats_service.compute_subject_stats(records)

    assert stats.total == 4          # La séance sans valeur finale n'est pas comptée
    assert stats.present == 3
    assert stats.absent == 1
    assert stats.percentage == pytest.approx(75.0)
    assert stats.conflicts == 1
    assert stats.overrides == 2


def test_stats_seances_sans_valeur_finale_uniquement():
    stats = stats_service.compute_subject_stats([make_record(None), make_record(None)])
    assert stats.total == 0
    assert stats.percentage == 0


# ============================================================
# Statut
# ============================================================

@pytest.mark.parametrize("percentage,expected", [
    (0, "danger"),
    (74.99, "danger"),
    (75, "warning"),
    (79.99, "warning"),
    (80, "safe"),
    (100, "safe"),
])
def test_statut_seuils_par_defaut(percentage, expected):
    assert stats_service.attendance_status(percentage) == expected


def test_statut_seuils_personnalises():
    assert stats_service.attendance_status(65, danger_threshold=60, warning_threshold=70) == "warning"


# ============================================================
# Marges : séances à suivre / absences possibles
# ============================================================

def make_stats(total: int, present: int) -> SubjectStats:
    return SubjectStats(
        total=total,
        present=present,
        absent=total - present,
        percentage=present / total * 100 if total else 0.0,
    )


@pytest.mark.parametrize("total,present,to_attend,can_miss", [
    (0, 0, 0, 0),        # Aucune séance
    (4, 3, 0, 0),        # Exactement au seuil (75 %)
    (10, 9, 0, 1),       # 90 % : minimum ceil(7,5) = 8
    (20, 20, 0, 5),
    (2, 1, 1, 0),        # 50 % : il faut ceil(1,5) = 2 présences
    (4, 0, 3, 0),
])
def test_marges_seuil_danger_par_defaut(total, present, to_attend, can_miss):
    stats = make_stats(total, present)
    assert stats_service.classes_to_attend(stats) == to_attend
    assert stats_service.classes_can_miss(stats) == can_miss


def test_marges_seuil_personnalise():
    stats = make_stats(4, 3)
    assert stats_service.classes_can_miss(stats, target=50) == 1
    assert stats_service.classes_to_attend(stats, target=100) == 1


def test_marges_renseignees_par_compute_subject_stats():
    stats = stats_service.compute_subject_stats([make_record(P)] * 4)
    assert stats.classes_can_miss == 1
    assert stats.classes_to_attend == 0


# ============================================================
# Pourcentage global pondéré
# ============================================================

def test_global_pondere_par_nombre_de_seances():
    """1/1 et 1/3 → 2/4 = 50 %, pas la moyenne des pourcentages (66,7 %)."""
    subjects = [make_subject("S1", 1, 1), make_subject("S2", 3, 1)]
    assert stats_service.overall_percentage(subjects) == pytest.approx(50.0)


def test_global_sans_matiere():
    assert stats_service.overall_percentage([]) == 0


# ============================================================
# Synthèse depuis le registre
# ============================================================

def test_build_summary_inclut_les_surcharges(db):
    reconciliation_service.ingest_teacher_attendance(db, "101", 2025, 3, 10, 1, P)
    reconciliation_service.ingest_teacher_attendance(db, "101", 2025, 3, 10, 2, A)
    reconciliation_service.set_user_attendance(db, "101", 2025, 3, 10, 2, P)
    reconciliation_service.ingest_teacher_attendance(db, "102", 2025, 3, 11, 1, A)

    courses = [
        RawCourse(id=101, name="Mathématiques", code="MA101", updated_at="2025-03-10"),
        RawCourse(id=102, name="Physique", code="PH102"),
        RawCourse(id=103, name="Chimie", code="CH103"),   # Aucune séance → ignorée
    ]
    summary = stats_service.build_summary(db, courses)

    assert summary.total_subjects == 2
    maths, physics = summary.subjects
    assert maths.subject.id == "101"
    assert maths.total_classes == 2
    assert maths.attended_classes == 2
    assert maths.percentage == 100.0
    assert maths.status == "safe"
    assert maths.last_updated == "2025-03-10"
    assert physics.attended_classes == 0
    assert physics.status == "danger"
    assert summary.overall_percentage == pytest.approx(2 / 3 * 100)


def test_build_summary_arrondi(db):
    for hour, value in zip((1, 2, 3), (P, A, A)):
        reconciliation_service.ingest_teacher_attendance(db, "101", 2025, 3, 10, hour, value)

    summary = stats_service.build_summary(db, [RawCourse(id=101, name="Maths")])

    assert summary.subjects[0].percentage == 33.33


def test_calculate_subject_stats(db):
    reconciliation_service.ingest_teacher_attendance(db, "101", 2025, 3, 10, 1, P)
    reconciliation_service.set_user_attendance(db, "101", 2025, 3, 10, 1, A)

    stats = stats_service.calculate_subject_stats(db, "101")

    assert stats.total == 1
    assert stats.absent == 1
    assert stats.conflicts == 1
    assert stats.overrides == 1


def test_build_summary_expose_les_marges(db):
    for hour in (1, 2, 3, 4):
        reconciliation_service.ingest_teacher_attendance(db, "101", 2025, 3, 10, hour, P)

    summary = stats_service.build_summary(db, [RawCourse(id=101, name="Maths")])

    assert summary.subjects[0].classes_can_miss == 1
    assert summary.subjects[0].classes_to_attend == 0


def test_recompute_summary_suit_le_registre(db):
    """Une synthèse déjà calculée reflète la saisie étudiant faite depuis."""
    reconciliation_service.ingest_teacher_attendance(db, "101", 2025, 3, 10, 1, P)
    reconciliation_service.ingest_teacher_attendance(db, "101", 2025, 3, 10, 2, A)
    known = stats_service.build_summary(db, [RawCourse(id=101, name="Maths", updated_at="2025-03-10")])
    known = known.model_copy(update={"source": "cache"})

    reconciliation_service.set_user_attendance(db, "101", 2025, 3, 10, 2, P)
    summary = stats_service.recompute_summary(db, known)

    assert summary.source == "cache"
    maths = summary.subjects[0]
    assert maths.attended_classes == 2
    assert maths.percentage == 100.0
    assert maths.status == "safe"
    assert maths.last_updated == "2025-03-10"
    assert summary.overall_percentage == 100.0

"""
Tests d'intégration API pour la lecture des présences.
Testent GET    /api/v1/attendance
        GET    /api/v1/attendance/subjects/{subject_id}[/stats]
        GET    /api/v1/attendance/schedule
        DELETE /api/v1/attendance/cache
"""

from unittest.mock import patch

from bunkmate.exceptions import NetworkError
from bunkmate.models.attendance import AttendanceValue
from bunkmate.schemas.attendance import AttendanceSummary
from bunkmate.services import reconciliation_service

from payloads import MATHS, PRESENT, make_raw_response


# ============================================================
# GET /api/health
# ============================================================

def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


# ============================================================
# GET /api/v1/attendance
# ============================================================

def test_synthese_depuis_le_reseau(client, fake_api):
    """Maths : 1 présent sur 2 → 50 %, statut danger."""
    response = client.get("/api/v1/attendance")

    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "network"
    assert data["total_subjects"] == 1
    assert data["overall_percentage"] == 50.0
    subject = data["subjects"][0]
    assert subject["subject"]["id"] == "101"
    assert subject["subject"]["name"] == "Mathématiques"
    assert subject["total_classes"] == 2
    assert subject["attended_classes"] == 1
    assert subject["status"] == "danger"
    assert fake_api.calls == 1


def test_synthese_depuis_le_cache(client, fake_api):
    client.get("/api/v1/attendance")

    response = client.get("/api/v1/attendance")

    assert response.json()["source"] == "cache"
    assert fake_api.calls == 1


def test_force_refresh(client, fake_api):
    client.get("/api/v1/attendance")

    response = client.get("/api/v1/attendance", params={"force_refresh": True})

    assert response.json()["source"] == "network"
    assert fake_api.calls == 2


def test_reseau_indisponible_avec_instantane(client, fake_api):
    client.get("/api/v1/attendance")
    fake_api.error = NetworkError("Délai dépassé")

    response = client.get("/api/v1/attendance", params={"force_refresh": True})

    assert response.status_code == 200
    assert response.json()["source"] == "snapshot"


def test_reseau_indisponible_sans_donnees(client, fake_api):
    """Aucune donnée locale → 503, jamais une synthèse vide."""
    fake_api.error = NetworkError("Erreur réseau")

    response = client.get("/api/v1/attendance")

    assert response.status_code == 503


def test_synthese_service_mocke(client):
    with patch("bunkmate.routers.attendance.attendance_service.fetch_detailed_attendance") as mock:
        mock.return_value = AttendanceSummary(total_subjects=0, overall_percentage=0.0, source="snapshot")

        response = client.get("/api/v1/attendance")

    assert response.status_code == 200
    assert response.json() == {
        "total_subjects": 0,
        "overall_percentage": 0.0,
        "subjects": [],
        "source": "snapshot",
    }


# ============================================================
# GET /api/v1/attendance/subjects/{subject_id}
# ============================================================

def test_matiere_connue(client):
    client.get("/api/v1/attendance")

    response = client.get("/api/v1/attendance/subjects/101")

    assert response.status_code == 200
    assert response.json()["attended_classes"] == 1


def test_matiere_inconnue(client):
    client.get("/api/v1/attendance")

    response = client.get("/api/v1/attendance/subjects/999")

    assert response.status_code == 404


def test_statistiques_matiere_avec_surcharge(client, db):
    client.get("/api/v1/attendance")
    reconciliation_service.set_user_attendance(db, "101", 2025, 3, 10, 2, AttendanceValue.PRESENT)

    response = client.get("/api/v1/attendance/subjects/101/stats")

    assert response.status_code == 200
    assert response.json() == {
        "total": 2, "present": 2, "absent": 0, "percentage": 100.0, "conflicts": 1, "overrides": 1,
        "classes_to_attend": 0, "classes_can_miss": 0,
    }


def test_synthese_suit_la_saisie_etudiant_sans_rafraichissement(client, fake_api):
    """Maths 1/2 → l'étudiant se déclare présent en 2e heure : 2/2 sans nouvel appel API."""
    client.get("/api/v1/attendance")
    before = client.get("/api/v1/attendance").json()["subjects"][0]
    assert before["classes_to_attend"] == 1

    client.put(
        "/api/v1/attendance/records",
        json={"subject_id": "101", "year": 2025, "month": 3, "day": 10, "hour": 2, "attendance": "P"},
    )
    response = client.get("/api/v1/attendance")

    data = response.json()
    assert data["source"] == "cache"
    assert data["overall_percentage"] == 100.0
    subject = data["subjects"][0]
    assert subject["attended_classes"] == 2
    assert subject["status"] == "safe"
    assert subject["classes_to_attend"] == 0
    assert fake_api.calls == 1


def test_statistiques_matiere_sans_seance(client):
    response = client.get("/api/v1/attendance/subjects/999/stats")

    assert response.status_code == 200
    assert response.json()["total"] == 0
    assert response.json()["percentage"] == 0.0


# ============================================================
# GET /api/v1/attendance/schedule
# ============================================================

def test_calendrier_groupe_par_matiere(client, fake_api):
    fake_api.payload = make_raw_response(days={
        "20250310": {"261": (MATHS["id"], PRESENT)},
        "20250317": {"261": (MATHS["id"], PRESENT)},
    })
    client.get("/api/v1/attendance")

    response = client.get("/api/v1/attendance/schedule", params={"start": "2025-03-01", "end": "2025-03-12"})

    assert response.status_code == 200
    data = response.json()
    assert list(data) == ["101"]
    assert [r["day"] for r in data["101"]] == [10]
    assert data["101"][0]["final_attendance"] == "P"


def test_calendrier_periode_inversee(client):
    response = client.get("/api/v1/attendance/schedule", params={"start": "2025-03-12", "end": "2025-03-01"})
    assert response.status_code == 400


# ============================================================
# DELETE /api/v1/attendance/cache
# ============================================================

def test_vidage_du_cache(client, fake_api):
    client.get("/api/v1/attendance")

    response = client.delete("/api/v1/attendance/cache")

    assert response.status_code == 204
    assert client.get("/api/v1/attendance/subjects/101").status_code == 404
    # Le registre des séances est conservé
    assert len(client.get("/api/v1/attendance/schedule").json()["101"]) == 2

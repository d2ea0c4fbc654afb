"""
Client HTTP de l'API distante des présences (source "enseignant").

Toute défaillance réseau (timeout, connexion, statut HTTP, réponse invalide)
est convertie en NetworkError pour déclencher le repli sur le cache local.
"""

import logging
from typing import Optional

import httpx

from bunkmate.config import settings
from bunkmate.exceptions import NetworkError
from bunkmate.schemas.remote import AttendanceApiResponse

logger = logging.getLogger(__name__)


class AttendanceApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        token = settings.API_ACCESS_TOKEN if access_token is None else access_token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.Client(
            base_url=base_url or settings.API_BASE_URL,
            timeout=settings.API_TIMEOUT_SECONDS if timeout is None else timeout,
            headers=headers,
            transport=transport,
        )

    def fetch_attendance_detailed(self) -> AttendanceApiResponse:
        """POST du rapport détaillé de l'étudiant connecté."""
        try:
            response = self._client.post(settings.ATTENDANCE_DETAILED_PATH, json={})
            response.raise_for_status()
            return AttendanceApiResponse.model_validate(response.json())
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            if status_code == 401:
                logger.warning("Jeton d'accès refusé par l'API (401)")
            raise NetworkError(f"Erreur API ({status_code})", status_code=status_code) from exc
        except httpx.TimeoutException as exc:
            raise NetworkError("Délai dépassé lors de l'appel à l'API des présences.") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Erreur réseau : {exc}") from exc
        except ValueError as exc:  # JSON invalide ou ValidationError pydantic
            raise NetworkError(f"Réponse de l'API invalide : {exc}") from exc

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "AttendanceApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def get_attendance_client():
    """Dépendance FastAPI : fournit un client API et le ferme après usage."""
    client = AttendanceApiClient()
    try:
        yield client
    finally:
        client.close()

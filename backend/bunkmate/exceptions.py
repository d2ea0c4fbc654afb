"""
Exceptions métier du moteur de réconciliation et du cache.
Les routers les traduisent en codes HTTP.
"""

from typing import Optional


class AttendanceError(Exception):
    """Base des erreurs métier liées aux présences."""


class NetworkError(AttendanceError):
    """Échec ou timeout de l'appel à l'API distante des présences."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class TimeConflictError(AttendanceError):
    """Le créneau est déjà occupé par une autre matière."""

    def __init__(self, message: str, conflicting_subject_id: Optional[str] = None):
        super().__init__(message)
        self.conflicting_subject_id = conflicting_subject_id


class ConflictNotFoundError(AttendanceError):
    """Résolution demandée sur une séance qui n'est pas en conflit."""


class CacheCorruptionError(AttendanceError):
    """Entrée de cache illisible (JSON invalide)."""

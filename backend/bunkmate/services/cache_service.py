"""
Cache générique clé → JSON avec durée de vie (TTL).

- Une lecture ne renvoie la valeur que si now < expires_at
- Les entrées expirées sont invisibles puis supprimées paresseusement
- Pas d'éviction par taille : une seule personne, peu de clés
- Une entrée illisible est traitée comme absente (le cache est jetable)
"""

import json
import logging
import time
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from bunkmate.config import settings
from bunkmate.exceptions import CacheCorruptionError
from bunkmate.models.cache import CacheEntry

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def set_cache(
    db: Session,
    key: str,
    value: Any,
    ttl_ms: Optional[int] = None,
    now: Optional[int] = None,
) -> None:
    """
    Enregistre `value` sous `key` avec expires_at = now + ttl.
    Écrase l'entrée existante. Lève TypeError/ValueError si la valeur
    n'est pas sérialisable en JSON (rien n'est écrit dans ce cas).
    """
    now = now_ms() if now is None else now
    ttl_ms = settings.CACHE_DEFAULT_TTL_MS if ttl_ms is None else ttl_ms
    serialized = json.dumps(value)

    entry = db.get(CacheEntry, key)
    if entry is None:
        entry = CacheEntry(key=key)
        db.add(entry)
    entry.data = serialized
    entry.timestamp = now
    entry.expires_at = now + ttl_ms
    db.commit()


def _decode(entry: CacheEntry) -> Any:
    try:
        return json.loads(entry.data)
    except (TypeError, ValueError) as exc:
        raise CacheCorruptionError(f"Entrée de cache illisible : {entry.key}") from exc


def get_cache(db: Session, key: str, now: Optional[int] = None) -> Optional[Any]:
    """Renvoie la valeur si elle n'a pas expiré, sinon None (et purge les entrées expirées)."""
    now = now_ms() if now is None else now

    entry = db.execute(
        select(CacheEntry).where(CacheEntry.key == key, CacheEntry.expires_at > now)
    ).scalar()

    if entry is None:
        cleanup_expired_cache(db, now)
        return None

    try:
        return _decode(entry)
    except CacheCorruptionError as exc:
        logger.warning("%s : entrée supprimée, traitée comme absente", exc)
        delete_cache(db, key)
        return None


def delete_cache(db: Session, key: str) -> None:
    db.execute(delete(CacheEntry).where(CacheEntry.key == key))
    db.commit()


def clear_cache(db: Session) -> None:
    db.execute(delete(CacheEntry))
    db.commit()


def cleanup_expired_cache(db: Session, now: Optional[int] = None) -> int:
    """Supprime physiquement les entrées expirées. Retourne le nombre de lignes supprimées."""
    now = now_ms() if now is None else now
    result = db.execute(delete(CacheEntry).where(CacheEntry.expires_at <= now))
    db.commit()
    if result.rowcount:
        logger.debug("Cache : %d entrée(s) expirée(s) supprimée(s)", result.rowcount)
    return result.rowcount or 0

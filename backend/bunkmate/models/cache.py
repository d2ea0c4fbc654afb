"""
Modèle SQLAlchemy du cache générique à durée de vie (TTL).
Les timestamps sont stockés en millisecondes epoch.
"""

from sqlalchemy import BigInteger, Column, String, Text

from bunkmate.database import Base


class CacheEntry(Base):
    __tablename__ = "cache"

    key = Column(String(255), primary_key=True)
    data = Column(Text, nullable=False)                     # JSON sérialisé
    timestamp = Column(BigInteger, nullable=False)          # Date d'écriture
    expires_at = Column(BigInteger, nullable=False, index=True)

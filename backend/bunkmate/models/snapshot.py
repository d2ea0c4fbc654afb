"""
Modèles SQLAlchemy de l'instantané structuré des présences (sans expiration).

Repli hors-ligne quand l'entrée TTL a expiré et que le réseau est indisponible.
Reconstruit entièrement (DELETE puis INSERT) à chaque récupération réussie.
"""

from sqlalchemy import Column, DateTime, Float, Integer, String, func

from bunkmate.database import Base


class AttendanceSubject(Base):
    """Totaux de présence d'une matière."""
    __tablename__ = "attendance_subjects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_id = Column(String(50), nullable=False, index=True)
    subject_name = Column(String(255), nullable=False)
    subject_code = Column(String(50), nullable=False)
    total_classes = Column(Integer, nullable=False)
    attended_classes = Column(Integer, nullable=False)
    percentage = Column(Float, nullable=False)
    last_updated = Column(String(50), nullable=False)       # Date de mise à jour côté serveur
    status = Column(String(10), nullable=False)             # safe, warning, danger
    classes_to_attend = Column(Integer, nullable=False, default=0)
    classes_can_miss = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class AttendanceSummaryRow(Base):
    """Synthèse globale (une seule ligne après chaque reconstruction)."""
    __tablename__ = "attendance_summary"

    id = Column(Integer, primary_key=True, autoincrement=True)
    total_subjects = Column(Integer, nullable=False)
    overall_percentage = Column(Float, nullable=False)
    last_updated = Column(String(50), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

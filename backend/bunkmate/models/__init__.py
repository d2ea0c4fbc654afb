# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant l'appel à Base.metadata.create_all() (init_db et fixtures de test).

from bunkmate.models.attendance import AttendanceValue, SessionRecord  # noqa: F401
from bunkmate.models.cache import CacheEntry  # noqa: F401
from bunkmate.models.snapshot import AttendanceSubject, AttendanceSummaryRow  # noqa: F401

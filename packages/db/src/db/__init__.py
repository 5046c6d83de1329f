# This project was developed with assistance from AI tools.
__version__ = "0.1.0"

from .database import Base, DatabaseService, SessionLocal, get_db, get_db_service
from .enums import AuditEventType, AuditOutcome, UserRole
from .models import AuditLog, User

__all__ = [
    "Base",
    "DatabaseService",
    "SessionLocal",
    "get_db",
    "get_db_service",
    "__version__",
    # Enums
    "AuditEventType",
    "AuditOutcome",
    "UserRole",
    # Models
    "AuditLog",
    "User",
]

from .enums import ActionType, ChecklistCategory, ItemStatus, LaptopStatus, SessionOutcome, UserRole
from .laptop import Laptop
from .qc import QCSession, ChecklistItem, Attachment
from .history import HistoryLog
from .user import User

__all__ = [
    "ActionType",
    "ChecklistCategory",
    "ItemStatus",
    "LaptopStatus",
    "SessionOutcome",
    "UserRole",
    "Laptop",
    "QCSession",
    "ChecklistItem",
    "Attachment",
    "HistoryLog",
    "User",
]

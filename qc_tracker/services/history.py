import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from qc_tracker.models.enums import ActionType, LaptopStatus
from qc_tracker.models.history import HistoryLog
from qc_tracker.models.laptop import Laptop
from qc_tracker.models.user import User

logger = logging.getLogger(__name__)


class HistoryService:
    """Append-only audit trail of laptop lifecycle transitions and user actions.

    ``append`` only stages the entry on the caller's session; it is committed
    together with the state change it describes, inside the caller's
    transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        *,
        user_id: Optional[int],
        action: str,
        action_type: ActionType,
        laptop_id: Optional[int] = None,
        previous_status: Optional[LaptopStatus] = None,
        new_status: Optional[LaptopStatus] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> HistoryLog:
        entry = HistoryLog(
            laptop_id=laptop_id,
            user_id=user_id,
            action=action,
            action_type=action_type,
            previous_status=previous_status,
            new_status=new_status,
            details=details,
            ip_address=ip_address,
        )
        self.db.add(entry)
        return entry

    def _base_query(self):
        return (
            self.db.query(HistoryLog, User.full_name, User.role, Laptop.serial_number)
            .outerjoin(User, HistoryLog.user_id == User.id)
            .outerjoin(Laptop, HistoryLog.laptop_id == Laptop.id)
        )

    @staticmethod
    def _to_dict(row) -> Dict[str, Any]:
        entry, user_name, user_role, serial_number = row
        data = entry.model_dump()
        data["user_name"] = user_name
        data["user_role"] = user_role
        data["serial_number"] = serial_number
        return data

    def query_by_laptop(self, laptop_id: int, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        rows = (
            self._base_query()
            .filter(HistoryLog.laptop_id == laptop_id)
            .order_by(HistoryLog.created_at.desc(), HistoryLog.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [self._to_dict(row) for row in rows]

    def query_all(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        user_id: Optional[int] = None,
        action_type: Optional[ActionType] = None,
        laptop_id: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Dict[str, Any]:
        query = self._base_query()

        if start_date:
            query = query.filter(HistoryLog.created_at >= start_date)
        if end_date:
            query = query.filter(HistoryLog.created_at <= end_date)
        if user_id:
            query = query.filter(HistoryLog.user_id == user_id)
        if action_type:
            query = query.filter(HistoryLog.action_type == action_type)
        if laptop_id:
            query = query.filter(HistoryLog.laptop_id == laptop_id)

        total_count = query.count()
        rows = (
            query.order_by(HistoryLog.created_at.desc(), HistoryLog.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {"logs": [self._to_dict(row) for row in rows], "total": total_count}

    def recent(self, limit: int = 10) -> List[Dict[str, Any]]:
        rows = (
            self._base_query()
            .order_by(HistoryLog.created_at.desc(), HistoryLog.id.desc())
            .limit(limit)
            .all()
        )
        return [self._to_dict(row) for row in rows]

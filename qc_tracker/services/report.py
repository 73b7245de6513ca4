import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from qc_tracker.core.exceptions import ValidationError
from qc_tracker.models.enums import LaptopStatus, SessionOutcome
from qc_tracker.models.laptop import Laptop
from qc_tracker.models.qc import QCSession
from qc_tracker.models.user import User
from qc_tracker.services.history import HistoryService

logger = logging.getLogger(__name__)


def _count_when(column, value):
    return func.coalesce(func.sum(case((column == value, 1), else_=0)), 0)


def day_bounds(start: date, end: date):
    """Inclusive calendar range -> [start 00:00, day after end 00:00) in UTC."""
    if end < start:
        raise ValidationError("End date must not be before start date")
    lower = datetime.combine(start, time.min, tzinfo=timezone.utc)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return lower, upper


class ReportService:
    """Read-only projections over laptops, QC sessions and the history log.

    Nothing is cached; every call recomputes from the tables.
    """

    def __init__(self, db: Session):
        self.db = db
        self.history = HistoryService(db)

    def get_status_summary(self) -> Dict[str, int]:
        rows = (
            self.db.query(Laptop.status, func.count(Laptop.id))
            .group_by(Laptop.status)
            .all()
        )
        counts = {status.value: 0 for status in LaptopStatus}
        for status, count in rows:
            counts[LaptopStatus(status).value] = count

        return {"total_laptops": sum(counts.values()), **counts}

    def get_today_stats(self, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or datetime.now(timezone.utc)
        start, end = day_bounds(now.date(), now.date())

        total, passed, failed = (
            self.db.query(
                func.count(QCSession.id),
                _count_when(QCSession.overall_status, SessionOutcome.PASS),
                _count_when(QCSession.overall_status, SessionOutcome.FAIL),
            )
            .filter(QCSession.qc_date >= start, QCSession.qc_date < end)
            .one()
        )
        return {"total_qc": total or 0, "passed": int(passed), "failed": int(failed)}

    def get_qc_by_user(self, days: int = 30, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        now = now or datetime.now(timezone.utc)
        since = datetime.combine(now.date() - timedelta(days=days), time.min, tzinfo=timezone.utc)

        total = func.count(QCSession.id)
        rows = (
            self.db.query(
                User.id,
                User.full_name,
                total,
                _count_when(QCSession.overall_status, SessionOutcome.PASS),
                _count_when(QCSession.overall_status, SessionOutcome.FAIL),
            )
            .join(User, QCSession.qc_user_id == User.id)
            .filter(QCSession.qc_date >= since)
            .group_by(User.id, User.full_name)
            .order_by(total.desc(), User.full_name)
            .all()
        )
        return [
            {
                "user_id": user_id,
                "user_name": full_name,
                "total_qc": total_qc,
                "passed": int(passed),
                "failed": int(failed),
            }
            for user_id, full_name, total_qc, passed, failed in rows
        ]

    def get_weekly_trend(self, days: int = 7, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        now = now or datetime.now(timezone.utc)
        since = datetime.combine(now.date() - timedelta(days=days), time.min, tzinfo=timezone.utc)

        qc_day = func.date(QCSession.qc_date)
        rows = (
            self.db.query(
                qc_day,
                func.count(QCSession.id),
                _count_when(QCSession.overall_status, SessionOutcome.PASS),
                _count_when(QCSession.overall_status, SessionOutcome.FAIL),
            )
            .filter(QCSession.qc_date >= since)
            .group_by(qc_day)
            .order_by(qc_day)
            .all()
        )
        # sqlite hands back strings, postgres hands back dates
        return [
            {"date": str(day), "total": total, "passed": int(passed), "failed": int(failed)}
            for day, total, passed, failed in rows
        ]

    def get_dashboard(self) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        return {
            "summary": self.get_status_summary(),
            "today": self.get_today_stats(now),
            "qc_by_user": self.get_qc_by_user(now=now),
            "weekly_trend": self.get_weekly_trend(now=now),
            "recent_activities": self.history.recent(10),
        }

    def get_report_data(self, start_date: date, end_date: date) -> Dict[str, Any]:
        """Summary and flattened session records for laptops touched in the range."""
        lower, upper = day_bounds(start_date, end_date)
        in_range = (Laptop.updated_at >= lower, Laptop.updated_at < upper)

        total, passed, needs_repair, in_repair = (
            self.db.query(
                func.count(Laptop.id),
                _count_when(Laptop.status, LaptopStatus.PASSED_QC),
                _count_when(Laptop.status, LaptopStatus.NEEDS_REPAIR),
                _count_when(Laptop.status, LaptopStatus.IN_REPAIR),
            )
            .filter(*in_range)
            .one()
        )

        rows = (
            self.db.query(
                Laptop.serial_number,
                Laptop.model,
                Laptop.brand,
                Laptop.status,
                QCSession.notes,
                QCSession.qc_date,
                User.full_name,
            )
            .outerjoin(QCSession, QCSession.laptop_id == Laptop.id)
            .outerjoin(User, QCSession.qc_user_id == User.id)
            .filter(*in_range)
            .order_by(QCSession.qc_date.desc(), Laptop.serial_number)
            .all()
        )

        records = [
            {
                "serial_number": serial_number,
                "model": model,
                "brand": brand,
                "status": LaptopStatus(status).value if status else None,
                "notes": notes,
                "qc_date": qc_date,
                "qc_officer": officer,
            }
            for serial_number, model, brand, status, notes, qc_date, officer in rows
        ]

        logger.debug(f"Report data {start_date}..{end_date}: {total} laptops, {len(records)} records")

        return {
            "summary": {
                "total": total or 0,
                "passed": int(passed),
                "needsRepair": int(needs_repair),
                "inRepair": int(in_repair),
            },
            "records": records,
        }

import io
import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Tuple

import qrcode
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from qc_tracker.core.db import transaction
from qc_tracker.core.exceptions import ConflictError, NotFoundError, ValidationError
from qc_tracker.models.enums import ActionType, LaptopStatus
from qc_tracker.models.laptop import Laptop
from qc_tracker.models.qc import QCSession
from qc_tracker.models.user import User
from qc_tracker.services.history import HistoryService

logger = logging.getLogger(__name__)


# untrusted sort keys map onto this fixed set of columns and nothing else
SORTABLE_COLUMNS = {
    "serial_number": Laptop.serial_number,
    "model": Laptop.model,
    "brand": Laptop.brand,
    "status": Laptop.status,
    "created_at": Laptop.created_at,
    "updated_at": Laptop.updated_at,
}

UPDATABLE_FIELDS = ("serial_number", "model", "brand", "specifications", "status")


def resolve_sort(sort_by: Optional[str], sort_order: Optional[str]):
    column = SORTABLE_COLUMNS.get(sort_by or "")
    if column is None:
        return Laptop.created_at.desc()
    if (sort_order or "").lower() == "asc":
        return column.asc()
    return column.desc()


def substring_pattern(term: str) -> str:
    """ILIKE pattern matching ``term`` literally anywhere in a column."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def parse_laptop_status(value: Any) -> LaptopStatus:
    try:
        return LaptopStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid laptop status: {value}")


class LaptopService:
    def __init__(self, db: Session):
        self.db = db
        self.history = HistoryService(db)

    def get_laptop_by_id(self, laptop_id: int) -> Optional[Laptop]:
        return self.db.query(Laptop).filter(Laptop.id == laptop_id).first()

    def get_laptop_by_serial(self, serial_number: str) -> Optional[Laptop]:
        if not serial_number:
            return None
        return (
            self.db.query(Laptop)
            .filter(Laptop.serial_number == serial_number)
            .first()
        )

    def require_laptop(self, laptop_id: int) -> Laptop:
        laptop = self.get_laptop_by_id(laptop_id)
        if not laptop:
            raise NotFoundError("Laptop not found")
        return laptop

    def get_filtered_laptop_query(self, search: Optional[str] = None, status: Optional[str] = None):
        query = self.db.query(Laptop)

        if search:
            search_term = substring_pattern(search)
            query = query.filter(
                (Laptop.serial_number.ilike(search_term, escape="\\"))
                | (Laptop.model.ilike(search_term, escape="\\"))
                | (Laptop.brand.ilike(search_term, escape="\\"))
            )

        if status:
            query = query.filter(Laptop.status == parse_laptop_status(status))

        return query

    def search_laptops(self,
                       search: Optional[str] = None,
                       status: Optional[str] = None,
                       page: int = 1,
                       per_page: int = 20,
                       sort_by: str = "created_at",
                       sort_order: str = "desc") -> Dict[str, Any]:

        query = self.get_filtered_laptop_query(search, status)

        total_count = query.count()

        offset = (page - 1) * per_page
        laptops = query.order_by(resolve_sort(sort_by, sort_order), Laptop.id.desc()).offset(offset).limit(per_page).all()

        total_pages = (total_count + per_page - 1) // per_page

        latest = self._latest_sessions([laptop.id for laptop in laptops])
        rows = []
        for laptop in laptops:
            row = laptop.model_dump()
            last = latest.get(laptop.id)
            row["last_qc_status"] = last[0].overall_status if last else None
            row["last_qc_date"] = last[0].qc_date if last else None
            row["last_qc_officer"] = last[1] if last else None
            rows.append(row)

        return {
            "laptops": rows,
            "total_count": total_count,
            "current_page": page,
            "per_page": per_page,
            "total_pages": total_pages,
        }

    def _latest_sessions(self, laptop_ids: List[int]) -> Dict[int, Tuple[QCSession, Optional[str]]]:
        if not laptop_ids:
            return {}
        rows = (
            self.db.query(QCSession, User.full_name)
            .outerjoin(User, QCSession.qc_user_id == User.id)
            .filter(QCSession.laptop_id.in_(laptop_ids))
            .order_by(QCSession.qc_date.desc(), QCSession.id.desc())
            .all()
        )
        latest: Dict[int, Tuple[QCSession, Optional[str]]] = {}
        for qc_session, officer in rows:
            latest.setdefault(qc_session.laptop_id, (qc_session, officer))
        return latest

    def get_sessions_for_laptop(self, laptop_id: int) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(QCSession, User.full_name)
            .outerjoin(User, QCSession.qc_user_id == User.id)
            .filter(QCSession.laptop_id == laptop_id)
            .order_by(QCSession.qc_date.desc(), QCSession.id.desc())
            .all()
        )
        sessions = []
        for qc_session, officer in rows:
            data = qc_session.model_dump()
            data["qc_officer"] = officer
            sessions.append(data)
        return sessions

    def find_by_serial(self, serial_number: str) -> Dict[str, Any]:
        laptop = self.get_laptop_by_serial(serial_number)
        if not laptop:
            raise NotFoundError(f"Laptop {serial_number} not found")

        data = laptop.model_dump()
        data["qc_history"] = self.get_sessions_for_laptop(laptop.id)
        return data

    def get_laptop_detail(self, laptop_id: int) -> Dict[str, Any]:
        laptop = self.require_laptop(laptop_id)

        data = laptop.model_dump()
        data["qc_sessions"] = self.get_sessions_for_laptop(laptop.id)
        data["history"] = self.history.query_by_laptop(laptop.id, limit=50)
        return data

    def create_laptop(self, laptop_data: Dict[str, Any], current_user: Dict[str, Any],
                      ip_address: Optional[str] = None) -> Laptop:
        serial_number = (laptop_data.get("serial_number") or "").strip()
        if not serial_number:
            raise ValidationError("Serial number is required")

        with transaction(self.db):
            if self.get_laptop_by_serial(serial_number):
                raise ConflictError(f"Serial number {serial_number} is already registered")

            now = datetime.now(timezone.utc)
            laptop = Laptop(
                serial_number=serial_number,
                model=laptop_data.get("model"),
                brand=laptop_data.get("brand"),
                specifications=laptop_data.get("specifications"),
                status=LaptopStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            self.db.add(laptop)
            try:
                self.db.flush()
            except IntegrityError:
                raise ConflictError(f"Serial number {serial_number} is already registered")

            self.history.append(
                laptop_id=laptop.id,
                user_id=current_user.get("user_id"),
                action=f"New laptop registered: {serial_number}",
                action_type=ActionType.STATUS_CHANGE,
                new_status=LaptopStatus.PENDING,
                details={
                    "serial_number": serial_number,
                    "model": laptop.model,
                    "brand": laptop.brand,
                },
                ip_address=ip_address,
            )

        self.db.refresh(laptop)
        logger.info(f"Laptop {serial_number} registered by {current_user.get('username')}")
        return laptop

    def update_laptop(self, laptop_id: int, laptop_data: Dict[str, Any], current_user: Dict[str, Any],
                      ip_address: Optional[str] = None) -> Laptop:
        # only keys that were actually supplied take part in the merge
        supplied = {
            key: value for key, value in laptop_data.items()
            if key in UPDATABLE_FIELDS and value is not None
        }

        with transaction(self.db):
            laptop = self.require_laptop(laptop_id)

            old = {
                "serial_number": laptop.serial_number,
                "model": laptop.model,
                "brand": laptop.brand,
                "status": laptop.status,
            }

            new_serial = supplied.get("serial_number")
            if new_serial is not None:
                new_serial = new_serial.strip()
                if not new_serial:
                    raise ValidationError("Serial number cannot be empty")
                if new_serial != laptop.serial_number:
                    existing = self.get_laptop_by_serial(new_serial)
                    if existing and existing.id != laptop.id:
                        raise ConflictError(f"Serial number {new_serial} is already used by another laptop")
                laptop.serial_number = new_serial

            if "model" in supplied:
                laptop.model = supplied["model"]
            if "brand" in supplied:
                laptop.brand = supplied["brand"]
            if "specifications" in supplied:
                laptop.specifications = supplied["specifications"]
            if "status" in supplied:
                laptop.status = parse_laptop_status(supplied["status"])

            laptop.updated_at = datetime.now(timezone.utc)
            try:
                self.db.flush()
            except IntegrityError:
                raise ConflictError(f"Serial number {new_serial} is already used by another laptop")

            changes = []
            if laptop.serial_number != old["serial_number"]:
                changes.append(f"SN: {old['serial_number']} -> {laptop.serial_number}")
            if laptop.model != old["model"]:
                changes.append(f"Model: {old['model'] or '-'} -> {laptop.model}")
            if laptop.brand != old["brand"]:
                changes.append(f"Brand: {old['brand'] or '-'} -> {laptop.brand}")
            if laptop.status != old["status"]:
                changes.append(f"Status: {old['status'].value} -> {laptop.status.value}")

            if changes:
                self.history.append(
                    laptop_id=laptop.id,
                    user_id=current_user.get("user_id"),
                    action=f"Laptop data changed: {', '.join(changes)}",
                    action_type=ActionType.STATUS_CHANGE,
                    previous_status=old["status"],
                    new_status=laptop.status,
                    details={
                        "old": {k: old[k] for k in ("serial_number", "model", "brand")},
                        "new": {
                            "serial_number": laptop.serial_number,
                            "model": laptop.model,
                            "brand": laptop.brand,
                        },
                    },
                    ip_address=ip_address,
                )

        self.db.refresh(laptop)
        return laptop

    def set_status(self, laptop: Laptop, status: LaptopStatus) -> LaptopStatus:
        """Move a laptop to ``status`` inside the caller's transaction.

        Returns the status it had before.
        """
        previous = laptop.status
        laptop.status = status
        laptop.updated_at = datetime.now(timezone.utc)
        return previous

    def generate_qr_code(self, laptop_id: int, base_url: str) -> Tuple[io.BytesIO, str]:
        laptop = self.require_laptop(laptop_id)

        detail_url = f"{base_url.rstrip('/')}/laptops/{laptop_id}"

        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(detail_url)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        img_buffer = io.BytesIO()
        img.save(img_buffer, format='PNG')
        img_buffer.seek(0)

        serial = laptop.serial_number.replace('/', '-').replace('\\', '-')
        filename = f"QR_{serial}.png"

        return img_buffer, filename

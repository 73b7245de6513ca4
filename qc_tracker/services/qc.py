import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from qc_tracker.core.db import transaction
from qc_tracker.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from qc_tracker.models.enums import (
    ActionType,
    ItemStatus,
    LaptopStatus,
    SessionOutcome,
    UserRole,
    laptop_status_for,
)
from qc_tracker.models.history import HistoryLog
from qc_tracker.models.laptop import Laptop
from qc_tracker.models.qc import Attachment, ChecklistItem, QCSession
from qc_tracker.models.user import User
from qc_tracker.services.checklist import ChecklistTemplateService
from qc_tracker.services.history import HistoryService
from qc_tracker.services.laptop import LaptopService, substring_pattern

logger = logging.getLogger(__name__)

OFFICER_FIELDS = ("qc_name", "qc_room", "qc_line", "qc_table")


class DuplicateSerialError(ConflictError):
    """Another request inserted the same serial number first."""


def parse_item_status(value: Any) -> ItemStatus:
    try:
        return ItemStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid checklist item status: {value}")


def parse_session_outcome(value: Any) -> SessionOutcome:
    try:
        return SessionOutcome(value)
    except ValueError:
        raise ValidationError(f"Invalid QC status: {value}")


def decide_outcome(items: List[ChecklistItem]) -> SessionOutcome:
    """A single failing item fails the whole session; anything else passes."""
    if any(item.status == ItemStatus.FAIL for item in items):
        return SessionOutcome.FAIL
    return SessionOutcome.PASS


class QCService:
    """Drives a laptop through quality control.

    A session starts ``pending`` and moves to ``pass`` or ``fail`` on its first
    submission. Later submissions are edits: they recompute the outcome from the
    submitted checklist and may flip between ``pass`` and ``fail``, but never
    return to ``pending``. Every state-changing call runs in one transaction
    together with the history entry it produces.
    """

    def __init__(self, db: Session):
        self.db = db
        self.laptops = LaptopService(db)
        self.history = HistoryService(db)
        self.template = ChecklistTemplateService()

    def get_session_by_id(self, session_id: int) -> Optional[QCSession]:
        return self.db.query(QCSession).filter(QCSession.id == session_id).first()

    def require_session(self, session_id: int) -> QCSession:
        qc_session = self.get_session_by_id(session_id)
        if not qc_session:
            raise NotFoundError("QC record not found")
        return qc_session

    def get_checklist_items(self, session_id: int) -> List[ChecklistItem]:
        return (
            self.db.query(ChecklistItem)
            .filter(ChecklistItem.qc_session_id == session_id)
            .order_by(ChecklistItem.category, ChecklistItem.id)
            .all()
        )

    def get_attachments(self, session_id: int) -> List[Attachment]:
        return (
            self.db.query(Attachment)
            .filter(Attachment.qc_session_id == session_id)
            .order_by(Attachment.id)
            .all()
        )

    def start_session(self, serial_number: str, current_user: Dict[str, Any],
                      model: Optional[str] = None, brand: Optional[str] = None,
                      ip_address: Optional[str] = None) -> Dict[str, Any]:
        serial_number = (serial_number or "").strip()
        if not serial_number:
            raise ValidationError("Serial number is required")

        # a concurrent start for the same unseen serial loses the insert race
        # on the unique constraint; the retry then picks up the winner's row
        for attempt in range(2):
            try:
                with transaction(self.db):
                    result = self._start_session(serial_number, current_user, model, brand, ip_address)
                break
            except DuplicateSerialError:
                if attempt:
                    raise
                logger.warning(f"Serial {serial_number} was inserted concurrently, retrying QC start")

        self.db.refresh(result["laptop"])
        self.db.refresh(result["qc_session"])
        result["checklist_items"] = self.get_checklist_items(result["qc_session"].id)

        logger.info(
            f"QC session {result['qc_session'].id} started for {serial_number} "
            f"by {current_user.get('username')}"
        )
        return result

    def _start_session(self, serial_number: str, current_user: Dict[str, Any],
                       model: Optional[str], brand: Optional[str],
                       ip_address: Optional[str]) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)

        laptop = self.laptops.get_laptop_by_serial(serial_number)
        is_new_laptop = laptop is None

        if is_new_laptop:
            previous_status = None
            laptop = Laptop(
                serial_number=serial_number,
                model=model,
                brand=brand,
                status=LaptopStatus.IN_QC,
                created_at=now,
                updated_at=now,
            )
            self.db.add(laptop)
            try:
                self.db.flush()
            except IntegrityError:
                raise DuplicateSerialError(f"Serial number {serial_number} is already registered")
        else:
            previous_status = self.laptops.set_status(laptop, LaptopStatus.IN_QC)

        qc_session = QCSession(
            laptop_id=laptop.id,
            qc_user_id=current_user.get("user_id"),
            overall_status=SessionOutcome.PENDING,
            qc_date=now,
            created_at=now,
            updated_at=now,
        )
        self.db.add(qc_session)
        self.db.flush()

        for category, item_name in self.template.iter_items():
            self.db.add(ChecklistItem(
                qc_session_id=qc_session.id,
                category=category,
                item_name=item_name,
                status=ItemStatus.PENDING,
                is_checked=False,
            ))

        self.history.append(
            laptop_id=laptop.id,
            user_id=current_user.get("user_id"),
            action=f"QC started by {current_user.get('full_name') or current_user.get('username')}",
            action_type=ActionType.QC_START,
            previous_status=previous_status,
            new_status=LaptopStatus.IN_QC,
            details={"qc_session_id": qc_session.id, "is_new_laptop": is_new_laptop},
            ip_address=ip_address,
        )
        self.db.flush()

        return {
            "laptop": laptop,
            "qc_session": qc_session,
            "checklist_items": self.get_checklist_items(qc_session.id),
            "is_new_laptop": is_new_laptop,
        }

    def update_checklist_item(self, item_id: int, item_data: Dict[str, Any]) -> ChecklistItem:
        with transaction(self.db):
            item = self.db.query(ChecklistItem).filter(ChecklistItem.id == item_id).first()
            if not item:
                raise NotFoundError("Checklist item not found")

            if item_data.get("is_checked") is not None:
                item.is_checked = bool(item_data["is_checked"])
            if item_data.get("status") is not None:
                item.status = parse_item_status(item_data["status"])
            if item_data.get("notes") is not None:
                item.notes = item_data["notes"]

        self.db.refresh(item)
        return item

    def submit_session(self, session_id: int, submission: Dict[str, Any], current_user: Dict[str, Any],
                       ip_address: Optional[str] = None) -> Dict[str, Any]:
        officer = {field: (submission.get(field) or "").strip() for field in OFFICER_FIELDS}
        if not all(officer.values()):
            raise ValidationError("Name, room, line and table are required")

        with transaction(self.db):
            qc_session = self.require_session(session_id)
            laptop = self.laptops.require_laptop(qc_session.laptop_id)

            is_edit = qc_session.overall_status.is_terminal

            items = self.get_checklist_items(qc_session.id)
            items_by_id = {item.id: item for item in items}

            # ids belonging to other sessions are ignored
            for entry in submission.get("checklist_items") or []:
                item = items_by_id.get(entry.get("id"))
                if item is None:
                    continue
                item.is_checked = bool(entry.get("is_checked") or False)
                item.status = parse_item_status(entry.get("status") or ItemStatus.PENDING)
                item.notes = entry.get("notes") or None

            failed_items_count = sum(1 for item in items if item.status == ItemStatus.FAIL)
            overall_status = decide_outcome(items)
            laptop_status = laptop_status_for(overall_status)

            qc_session.qc_name = officer["qc_name"]
            qc_session.qc_room = officer["qc_room"]
            qc_session.qc_line = officer["qc_line"]
            qc_session.qc_table = officer["qc_table"]
            qc_session.notes = submission.get("notes") or None
            qc_session.overall_status = overall_status
            qc_session.updated_at = datetime.now(timezone.utc)

            previous_status = self.laptops.set_status(laptop, laptop_status)

            verdict = "PASSED" if overall_status == SessionOutcome.PASS else "NEEDS REPAIR"
            self.history.append(
                laptop_id=laptop.id,
                user_id=current_user.get("user_id"),
                action=f"QC {'edited' if is_edit else 'completed'} - {verdict}",
                action_type=ActionType.QC_EDIT if is_edit else ActionType.QC_COMPLETE,
                previous_status=previous_status,
                new_status=laptop_status,
                details={
                    "qc_session_id": qc_session.id,
                    "overall_status": overall_status.value,
                    "failed_items_count": failed_items_count,
                    **officer,
                },
                ip_address=ip_address,
            )

        logger.info(
            f"QC session {session_id} {'edited' if is_edit else 'completed'}: "
            f"{overall_status.value} ({failed_items_count} failed items)"
        )

        return {
            "overall_status": overall_status,
            "laptop_status": laptop_status,
            "has_failures": failed_items_count > 0,
            "is_edit": is_edit,
        }

    def delete_session(self, session_id: int, current_user: Dict[str, Any]) -> Dict[str, Any]:
        """Remove a session and everything hanging off it.

        When it was the laptop's last session the laptop goes too, together
        with its whole history. The deletion itself is not recorded.
        """
        if current_user.get("role") != UserRole.LEADER:
            raise PermissionDeniedError("Only a leader can delete QC records")

        with transaction(self.db):
            qc_session = self.require_session(session_id)
            laptop_id = qc_session.laptop_id

            attachment_paths = [attachment.file_path for attachment in self.get_attachments(session_id)]

            self.db.query(ChecklistItem).filter(
                ChecklistItem.qc_session_id == session_id
            ).delete(synchronize_session=False)
            self.db.query(Attachment).filter(
                Attachment.qc_session_id == session_id
            ).delete(synchronize_session=False)
            self.db.delete(qc_session)
            self.db.flush()

            remaining = self.db.query(QCSession).filter(QCSession.laptop_id == laptop_id).count()
            laptop_deleted = remaining == 0
            if laptop_deleted:
                self.db.query(HistoryLog).filter(
                    HistoryLog.laptop_id == laptop_id
                ).delete(synchronize_session=False)
                self.db.query(Laptop).filter(Laptop.id == laptop_id).delete(synchronize_session=False)

        logger.info(
            f"QC session {session_id} deleted by {current_user.get('username')}"
            f"{' together with laptop ' + str(laptop_id) if laptop_deleted else ''}"
        )

        return {
            "laptop_id": laptop_id,
            "laptop_deleted": laptop_deleted,
            "attachment_paths": attachment_paths,
        }

    def _session_query(self):
        return (
            self.db.query(
                QCSession,
                Laptop.serial_number,
                Laptop.model,
                Laptop.brand,
                Laptop.status,
                User.full_name,
            )
            .join(Laptop, QCSession.laptop_id == Laptop.id)
            .outerjoin(User, QCSession.qc_user_id == User.id)
        )

    @staticmethod
    def _session_row(row) -> Dict[str, Any]:
        qc_session, serial_number, model, brand, laptop_status, officer = row
        data = qc_session.model_dump()
        data.update({
            "serial_number": serial_number,
            "model": model,
            "brand": brand,
            "laptop_status": laptop_status,
            "qc_officer": officer,
        })
        return data

    def list_sessions(self,
                      search: Optional[str] = None,
                      status: Optional[str] = None,
                      start_date: Optional[datetime] = None,
                      end_date: Optional[datetime] = None,
                      qc_user_id: Optional[int] = None,
                      page: int = 1,
                      per_page: int = 20) -> Dict[str, Any]:
        query = self._session_query()

        if search:
            search_term = substring_pattern(search)
            query = query.filter(
                (Laptop.serial_number.ilike(search_term, escape="\\"))
                | (Laptop.model.ilike(search_term, escape="\\"))
                | (QCSession.qc_name.ilike(search_term, escape="\\"))
            )
        if status:
            query = query.filter(QCSession.overall_status == parse_session_outcome(status))
        if start_date:
            query = query.filter(QCSession.qc_date >= start_date)
        if end_date:
            query = query.filter(QCSession.qc_date <= end_date)
        if qc_user_id:
            query = query.filter(QCSession.qc_user_id == qc_user_id)

        total_count = query.order_by(None).with_entities(func.count(QCSession.id)).scalar() or 0

        offset = (page - 1) * per_page
        rows = query.order_by(QCSession.qc_date.desc(), QCSession.id.desc()).offset(offset).limit(per_page).all()

        return {
            "sessions": [self._session_row(row) for row in rows],
            "total_count": total_count,
            "current_page": page,
            "per_page": per_page,
            "total_pages": (total_count + per_page - 1) // per_page,
        }

    def get_session_detail(self, session_id: int) -> Dict[str, Any]:
        row = self._session_query().filter(QCSession.id == session_id).first()
        if not row:
            raise NotFoundError("QC record not found")

        data = self._session_row(row)
        data["checklist_items"] = [item.model_dump() for item in self.get_checklist_items(session_id)]
        data["attachments"] = [attachment.model_dump() for attachment in self.get_attachments(session_id)]
        return data

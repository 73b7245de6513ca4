import logging
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from qc_tracker.core.db import get_session
from qc_tracker.core.exceptions import QCError
from qc_tracker.dependencies.auth import get_client_ip, require_authentication, require_leader, require_staff
from qc_tracker.routes.common import end_of_day, pagination, start_of_day, to_http_exception
from qc_tracker.services.attachment import AttachmentService, IncomingFile
from qc_tracker.services.checklist import ChecklistTemplateService
from qc_tracker.services.qc import QCService

logger = logging.getLogger(__name__)

router = APIRouter()


class QCStart(BaseModel):
    serial_number: Optional[str] = None
    model: Optional[str] = None
    brand: Optional[str] = None


class ChecklistItemUpdate(BaseModel):
    is_checked: Optional[bool] = None
    status: Optional[str] = None
    notes: Optional[str] = None


class SubmittedItem(BaseModel):
    id: Optional[int] = None
    is_checked: Optional[bool] = None
    status: Optional[str] = None
    notes: Optional[str] = None


class QCSubmit(BaseModel):
    qc_name: Optional[str] = None
    qc_room: Optional[str] = None
    qc_line: Optional[str] = None
    qc_table: Optional[str] = None
    notes: Optional[str] = None
    checklist_items: List[SubmittedItem] = []


@router.get("")
async def list_sessions(
    search: Optional[str] = None,
    status: Optional[str] = None,
    startDate: Optional[date] = None,
    endDate: Optional[date] = None,
    userId: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    current_user: Dict[str, Any] = Depends(require_authentication),
    db: Session = Depends(get_session),
):
    try:
        result = QCService(db).list_sessions(
            search=search,
            status=status,
            start_date=start_of_day(startDate),
            end_date=end_of_day(endDate),
            qc_user_id=userId,
            page=page,
            per_page=limit,
        )
    except QCError as e:
        raise to_http_exception(e)

    return {
        "data": result["sessions"],
        "pagination": pagination(page, limit, result["total_count"]),
    }


@router.get("/checklist-template")
async def checklist_template(current_user: Dict[str, Any] = Depends(require_authentication)):
    return ChecklistTemplateService().get_template()


@router.post("/start", status_code=status.HTTP_201_CREATED)
async def start_session(payload: QCStart, request: Request,
                        current_user: Dict[str, Any] = Depends(require_staff),
                        db: Session = Depends(get_session)):
    try:
        result = QCService(db).start_session(
            payload.serial_number,
            current_user,
            model=payload.model,
            brand=payload.brand,
            ip_address=get_client_ip(request),
        )
    except QCError as e:
        raise to_http_exception(e)

    return {
        "message": "QC started",
        "laptop": result["laptop"].model_dump(),
        "qcRecord": result["qc_session"].model_dump(),
        "checklistItems": [item.model_dump() for item in result["checklist_items"]],
        "isNewLaptop": result["is_new_laptop"],
    }


@router.put("/checklist/{item_id}")
async def update_checklist_item(item_id: int, payload: ChecklistItemUpdate,
                                current_user: Dict[str, Any] = Depends(require_staff),
                                db: Session = Depends(get_session)):
    try:
        item = QCService(db).update_checklist_item(item_id, payload.model_dump(exclude_unset=True))
    except QCError as e:
        raise to_http_exception(e)

    return item.model_dump()


@router.delete("/attachments/{attachment_id}")
async def delete_attachment(attachment_id: int, request: Request,
                            current_user: Dict[str, Any] = Depends(require_staff),
                            db: Session = Depends(get_session)):
    try:
        AttachmentService(db, request.app.state.settings).delete_attachment(attachment_id)
    except QCError as e:
        raise to_http_exception(e)

    return {"message": "Attachment deleted"}


@router.get("/{session_id}")
async def get_session_detail(session_id: int,
                             current_user: Dict[str, Any] = Depends(require_authentication),
                             db: Session = Depends(get_session)):
    try:
        return QCService(db).get_session_detail(session_id)
    except QCError as e:
        raise to_http_exception(e)


@router.get("/{session_id}/edit")
async def get_session_for_edit(session_id: int,
                               current_user: Dict[str, Any] = Depends(require_staff),
                               db: Session = Depends(get_session)):
    try:
        return QCService(db).get_session_detail(session_id)
    except QCError as e:
        raise to_http_exception(e)


@router.post("/{session_id}/submit")
async def submit_session(session_id: int, payload: QCSubmit, request: Request,
                         current_user: Dict[str, Any] = Depends(require_staff),
                         db: Session = Depends(get_session)):
    submission = payload.model_dump()
    submission["checklist_items"] = [item.model_dump() for item in payload.checklist_items]

    try:
        result = QCService(db).submit_session(session_id, submission, current_user, get_client_ip(request))
    except QCError as e:
        raise to_http_exception(e)

    return {
        "message": "QC updated successfully" if result["is_edit"] else "QC completed successfully",
        "overallStatus": result["overall_status"],
        "laptopStatus": result["laptop_status"],
        "hasFailures": result["has_failures"],
        "isEdit": result["is_edit"],
    }


@router.post("/{session_id}/attachments", status_code=status.HTTP_201_CREATED)
async def upload_attachments(session_id: int, request: Request,
                             files: List[UploadFile] = File(...),
                             description: Optional[str] = Form(None),
                             current_user: Dict[str, Any] = Depends(require_staff),
                             db: Session = Depends(get_session)):
    incoming = []
    for upload in files:
        incoming.append(IncomingFile(
            filename=upload.filename or "",
            content_type=upload.content_type or "",
            content=await upload.read(),
        ))

    try:
        attachments = AttachmentService(db, request.app.state.settings).save_attachments(
            session_id, incoming, current_user, description=description
        )
    except QCError as e:
        raise to_http_exception(e)

    return {
        "message": f"{len(attachments)} file(s) uploaded",
        "attachments": [attachment.model_dump() for attachment in attachments],
    }


@router.delete("/{session_id}")
async def delete_session(session_id: int, request: Request,
                         current_user: Dict[str, Any] = Depends(require_leader),
                         db: Session = Depends(get_session)):
    try:
        result = QCService(db).delete_session(session_id, current_user)
    except QCError as e:
        raise to_http_exception(e)

    # files go only once the rows are gone for good
    AttachmentService(db, request.app.state.settings).discard_files(result["attachment_paths"])

    return {
        "message": "QC record deleted",
        "laptopDeleted": result["laptop_deleted"],
    }

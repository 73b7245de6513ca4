import logging
from datetime import date
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from qc_tracker.core.db import get_session
from qc_tracker.core.exceptions import QCError, ValidationError
from qc_tracker.dependencies.auth import require_authentication, require_staff
from qc_tracker.models.enums import ActionType
from qc_tracker.routes.common import end_of_day, pagination, start_of_day, to_http_exception
from qc_tracker.services.export import ExportService
from qc_tracker.services.history import HistoryService
from qc_tracker.services.report import ReportService

logger = logging.getLogger(__name__)

router = APIRouter()

EXCEL_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _require_range(start_date: Optional[date], end_date: Optional[date]) -> Tuple[date, date]:
    if not start_date or not end_date:
        raise ValidationError("Start and end date are required")
    return start_date, end_date


@router.get("/dashboard")
async def dashboard(current_user: Dict[str, Any] = Depends(require_authentication),
                    db: Session = Depends(get_session)):
    return ReportService(db).get_dashboard()


@router.get("/history")
async def history(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    laptopId: Optional[int] = None,
    userId: Optional[int] = None,
    actionType: Optional[str] = None,
    startDate: Optional[date] = None,
    endDate: Optional[date] = None,
    current_user: Dict[str, Any] = Depends(require_authentication),
    db: Session = Depends(get_session),
):
    try:
        action_type = None
        if actionType:
            try:
                action_type = ActionType(actionType)
            except ValueError:
                raise ValidationError(f"Invalid action type: {actionType}")

        result = HistoryService(db).query_all(
            start_date=start_of_day(startDate),
            end_date=end_of_day(endDate),
            user_id=userId,
            action_type=action_type,
            laptop_id=laptopId,
            limit=limit,
            offset=(page - 1) * limit,
        )
    except QCError as e:
        raise to_http_exception(e)

    return {"data": result["logs"], "pagination": pagination(page, limit, result["total"])}


@router.get("/export/excel")
async def export_excel(startDate: Optional[date] = None,
                       endDate: Optional[date] = None,
                       current_user: Dict[str, Any] = Depends(require_staff),
                       db: Session = Depends(get_session)):
    try:
        start, end = _require_range(startDate, endDate)
        data = ReportService(db).get_report_data(start, end)
    except QCError as e:
        raise to_http_exception(e)

    output = ExportService().export_to_excel(data)
    logger.info(f"Excel report {start}..{end} exported by {current_user['username']}")

    return Response(
        content=output.getvalue(),
        media_type=EXCEL_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename=laporan-qc-{start}-{end}.xlsx"},
    )


@router.get("/export/pdf")
async def export_pdf(startDate: Optional[date] = None,
                     endDate: Optional[date] = None,
                     current_user: Dict[str, Any] = Depends(require_staff),
                     db: Session = Depends(get_session)):
    try:
        start, end = _require_range(startDate, endDate)
        data = ReportService(db).get_report_data(start, end)
    except QCError as e:
        raise to_http_exception(e)

    output = ExportService().export_to_pdf(data)
    logger.info(f"PDF report {start}..{end} exported by {current_user['username']}")

    return Response(
        content=output.getvalue(),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=laporan-qc-{start}-{end}.pdf"},
    )

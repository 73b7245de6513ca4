import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from qc_tracker.core.db import get_session
from qc_tracker.core.exceptions import NotFoundError, QCError
from qc_tracker.dependencies.auth import get_client_ip, require_authentication, require_staff
from qc_tracker.routes.common import pagination, to_http_exception
from qc_tracker.services.history import HistoryService
from qc_tracker.services.laptop import LaptopService

logger = logging.getLogger(__name__)

router = APIRouter()


class LaptopCreate(BaseModel):
    serial_number: Optional[str] = None
    model: Optional[str] = None
    brand: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None


class LaptopUpdate(BaseModel):
    serial_number: Optional[str] = None
    model: Optional[str] = None
    brand: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None
    status: Optional[str] = None


@router.get("")
async def list_laptops(
    search: Optional[str] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    sortBy: str = "created_at",
    sortOrder: str = "desc",
    current_user: Dict[str, Any] = Depends(require_authentication),
    db: Session = Depends(get_session),
):
    try:
        result = LaptopService(db).search_laptops(
            search=search,
            status=status,
            page=page,
            per_page=limit,
            sort_by=sortBy,
            sort_order=sortOrder,
        )
    except QCError as e:
        raise to_http_exception(e)

    return {
        "data": result["laptops"],
        "pagination": pagination(page, limit, result["total_count"]),
    }


@router.get("/search/{serial_number}")
async def find_by_serial(serial_number: str,
                         current_user: Dict[str, Any] = Depends(require_authentication),
                         db: Session = Depends(get_session)):
    try:
        laptop = LaptopService(db).find_by_serial(serial_number)
    except NotFoundError as e:
        return JSONResponse(status_code=404, content={"found": False, "detail": str(e)})
    except QCError as e:
        raise to_http_exception(e)

    return {"found": True, "laptop": laptop}


@router.get("/{laptop_id}")
async def get_laptop(laptop_id: int,
                     current_user: Dict[str, Any] = Depends(require_authentication),
                     db: Session = Depends(get_session)):
    try:
        return LaptopService(db).get_laptop_detail(laptop_id)
    except QCError as e:
        raise to_http_exception(e)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_laptop(payload: LaptopCreate, request: Request,
                        current_user: Dict[str, Any] = Depends(require_staff),
                        db: Session = Depends(get_session)):
    try:
        laptop = LaptopService(db).create_laptop(payload.model_dump(), current_user, get_client_ip(request))
    except QCError as e:
        raise to_http_exception(e)

    return {"message": "Laptop added successfully", "laptop": laptop.model_dump()}


@router.put("/{laptop_id}")
async def update_laptop(laptop_id: int, payload: LaptopUpdate, request: Request,
                        current_user: Dict[str, Any] = Depends(require_staff),
                        db: Session = Depends(get_session)):
    try:
        laptop = LaptopService(db).update_laptop(
            laptop_id, payload.model_dump(exclude_unset=True), current_user, get_client_ip(request)
        )
    except QCError as e:
        raise to_http_exception(e)

    return {"message": "Laptop updated successfully", "laptop": laptop.model_dump()}


@router.get("/{laptop_id}/history")
async def laptop_history(laptop_id: int,
                         limit: int = Query(50, ge=1, le=500),
                         offset: int = Query(0, ge=0),
                         current_user: Dict[str, Any] = Depends(require_authentication),
                         db: Session = Depends(get_session)):
    try:
        LaptopService(db).require_laptop(laptop_id)
    except QCError as e:
        raise to_http_exception(e)

    return HistoryService(db).query_by_laptop(laptop_id, limit=limit, offset=offset)


@router.get("/{laptop_id}/qr")
async def laptop_qr_code(laptop_id: int, request: Request,
                         current_user: Dict[str, Any] = Depends(require_authentication),
                         db: Session = Depends(get_session)):
    try:
        img_buffer, filename = LaptopService(db).generate_qr_code(laptop_id, request.app.state.settings.base_url)
    except QCError as e:
        raise to_http_exception(e)

    return Response(
        content=img_buffer.getvalue(),
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename={filename}"},
    )

"""
预订管理路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from roomledger.database import get_db
from roomledger.models.ontology import Attendant, ReservationStatus
from roomledger.models.schemas import (
    ReservationCreate, ReservationResponse, AssignRoom, RecordPayment,
    ReservationCancel, ReservationStatusUpdate, CheckInResponse
)
from roomledger.services.reservation_service import ReservationService
from roomledger.services.conversion_service import ConversionService
from roomledger.services.errors import LedgerError
from roomledger.security.auth import get_current_user, require_admin

router = APIRouter(prefix="/reservations", tags=["预订管理"])


@router.get("", response_model=List[ReservationResponse])
def list_reservations(
    status: Optional[ReservationStatus] = None,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """获取预订列表"""
    service = ReservationService(db)
    return service.get_reservations(status)


@router.post("", response_model=ReservationResponse)
def create_reservation(
    data: ReservationCreate,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """创建预订"""
    service = ReservationService(db)
    try:
        return service.create_reservation(data, current_user.id)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/upcoming", response_model=List[ReservationResponse])
def list_upcoming(
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """待入住预订"""
    service = ReservationService(db)
    return service.get_upcoming()


@router.get("/today-arrivals", response_model=List[ReservationResponse])
def list_today_arrivals(
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """今日预抵"""
    service = ReservationService(db)
    return service.get_today_arrivals()


@router.get("/outstanding-payments", response_model=List[ReservationResponse])
def list_outstanding_payments(
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """未结清的预订"""
    service = ReservationService(db)
    return service.get_outstanding_payments()


@router.get("/{reservation_id}", response_model=ReservationResponse)
def get_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """获取预订详情"""
    service = ReservationService(db)
    try:
        return service.get_reservation_or_404(reservation_id)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{reservation_id}/assign-room", response_model=ReservationResponse)
def assign_room(
    reservation_id: int,
    data: AssignRoom,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """分配 / 更换预订房间"""
    service = ReservationService(db)
    try:
        return service.assign_room(reservation_id, data.room_id)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{reservation_id}/payment", response_model=ReservationResponse)
def record_payment(
    reservation_id: int,
    data: RecordPayment,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """预订收款"""
    service = ReservationService(db)
    try:
        return service.record_payment(reservation_id, data.amount, data.payment_method)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{reservation_id}/check-in", response_model=CheckInResponse)
def check_in_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """预订入住"""
    service = ConversionService(db)
    try:
        return service.convert(reservation_id, current_user.id)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{reservation_id}/cancel", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: int,
    data: Optional[ReservationCancel] = None,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """取消预订"""
    service = ReservationService(db)
    try:
        return service.cancel_reservation(reservation_id, data.reason if data else None)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{reservation_id}/status", response_model=ReservationResponse)
def update_reservation_status(
    reservation_id: int,
    data: ReservationStatusUpdate,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(require_admin)
):
    """人工修正预订状态（仅管理员）"""
    service = ReservationService(db)
    try:
        return service.update_status(reservation_id, data.status)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

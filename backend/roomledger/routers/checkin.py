"""
入住管理路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from roomledger.database import get_db
from roomledger.models.ontology import Attendant
from roomledger.models.schemas import (
    WalkInCheckIn, ChangeRoom, CheckOutRequest, RecordPayment, CheckInResponse
)
from roomledger.services.checkin_service import CheckInService
from roomledger.services.errors import LedgerError
from roomledger.security.auth import get_current_user

router = APIRouter(prefix="/checkins", tags=["入住管理"])


@router.get("", response_model=List[CheckInResponse])
def list_check_ins(
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """获取全部入住记录"""
    service = CheckInService(db)
    return service.get_check_ins()


@router.post("", response_model=CheckInResponse)
def walk_in_check_in(
    data: WalkInCheckIn,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """散客入住"""
    service = CheckInService(db)
    try:
        return service.walk_in(data, current_user.id)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/current", response_model=List[CheckInResponse])
def list_current_guests(
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """获取所有在住记录"""
    service = CheckInService(db)
    return service.get_current_guests()


@router.get("/{check_in_id}", response_model=CheckInResponse)
def get_check_in(
    check_in_id: int,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """获取入住记录详情"""
    service = CheckInService(db)
    try:
        return service.get_check_in_or_404(check_in_id)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{check_in_id}/payment", response_model=CheckInResponse)
def record_payment(
    check_in_id: int,
    data: RecordPayment,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """在住收款"""
    service = CheckInService(db)
    try:
        return service.record_payment(check_in_id, data.amount, data.payment_method)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{check_in_id}/change-room", response_model=CheckInResponse)
def change_room(
    check_in_id: int,
    data: ChangeRoom,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """换房"""
    service = CheckInService(db)
    try:
        return service.change_room(check_in_id, data)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{check_in_id}/checkout", response_model=CheckInResponse)
def check_out(
    check_in_id: int,
    data: Optional[CheckOutRequest] = None,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """退房"""
    service = CheckInService(db)
    try:
        return service.check_out(check_in_id, data)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

"""
房间管理路由
房态只读；维修切换是唯一允许人工修改房态的入口
"""
from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from roomledger.database import get_db
from roomledger.models.ontology import Attendant, RoomStatus
from roomledger.models.schemas import (
    RoomCreate, RoomUpdate, RoomMaintenance, RoomResponse, RoomStatusSummary,
    AvailabilityResponse
)
from roomledger.services.room_service import RoomService
from roomledger.services.availability_service import AvailabilityService
from roomledger.services.errors import LedgerError
from roomledger.security.auth import get_current_user, require_admin

router = APIRouter(prefix="/rooms", tags=["房间管理"])


@router.get("", response_model=List[RoomResponse])
def list_rooms(
    room_type: Optional[str] = None,
    status: Optional[RoomStatus] = None,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """获取房间列表"""
    service = RoomService(db)
    return service.get_rooms(room_type=room_type, status=status)


@router.post("", response_model=RoomResponse)
def create_room(
    data: RoomCreate,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(require_admin)
):
    """创建房间"""
    service = RoomService(db)
    try:
        return service.create_room(data)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/summary", response_model=RoomStatusSummary)
def get_room_summary(
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """房态统计"""
    service = RoomService(db)
    return RoomStatusSummary(**service.get_status_summary())


@router.get("/available", response_model=AvailabilityResponse)
def get_available_rooms(
    check_in_date: date,
    check_out_date: date,
    room_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """查询指定时段的可用房间"""
    service = AvailabilityService(db)
    try:
        rooms = service.list_available_rooms(check_in_date, check_out_date, room_type)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return AvailabilityResponse(
        check_in_date=check_in_date,
        check_out_date=check_out_date,
        room_type=room_type,
        rooms=[RoomResponse.model_validate(r) for r in rooms]
    )


@router.get("/{room_id}", response_model=RoomResponse)
def get_room(
    room_id: int,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(get_current_user)
):
    """获取房间详情"""
    service = RoomService(db)
    try:
        return service.get_room_or_404(room_id)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{room_id}", response_model=RoomResponse)
def update_room(
    room_id: int,
    data: RoomUpdate,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(require_admin)
):
    """更新房间资料"""
    service = RoomService(db)
    try:
        return service.update_room(room_id, data)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{room_id}/maintenance", response_model=RoomResponse)
def set_room_maintenance(
    room_id: int,
    data: RoomMaintenance,
    db: Session = Depends(get_db),
    current_user: Attendant = Depends(require_admin)
):
    """切换维修状态"""
    service = RoomService(db)
    try:
        return service.set_maintenance(room_id, data.enabled)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

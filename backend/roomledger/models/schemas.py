"""
Pydantic 模式定义
用于 API 请求/响应验证
"""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List, Union
from pydantic import BaseModel, Field, field_validator, ConfigDict
from roomledger.models.ontology import (
    RoomStatus, ReservationStatus, CheckInStatus, PaymentStatus, PaymentMethod
)


def _not_blank(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("不能为空")
    return v


class GuestIdentity(BaseModel):
    """客人身份（姓名 + 手机号）"""
    client_name: str = Field(..., max_length=100)
    phone_number: str = Field(..., max_length=30)

    @field_validator('client_name', 'phone_number')
    @classmethod
    def strip_required(cls, v: str) -> str:
        return _not_blank(v)


# ============== 房间 Schemas ==============

class RoomBase(BaseModel):
    room_number: str = Field(..., max_length=10)
    room_type: str = Field(..., max_length=50)
    price_per_day: Decimal = Field(..., ge=0)

    @field_validator('room_number', 'room_type')
    @classmethod
    def strip_required(cls, v: str) -> str:
        return _not_blank(v)


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    room_number: Optional[str] = Field(None, max_length=10)
    room_type: Optional[str] = Field(None, max_length=50)
    price_per_day: Optional[Decimal] = Field(None, ge=0)


class RoomMaintenance(BaseModel):
    enabled: bool


class RoomResponse(RoomBase):
    id: int
    status: RoomStatus
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class RoomStatusSummary(BaseModel):
    total: int = 0
    available: int = 0
    occupied: int = 0
    reserved: int = 0
    maintenance: int = 0


class AttendantBrief(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


# ============== 收款 Schemas ==============

class RecordPayment(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod


# ============== 预订 Schemas ==============

class ReservationCreate(GuestIdentity):
    email: Optional[str] = Field(None, max_length=100)
    room_id: Optional[int] = None
    room_type: str = Field(..., max_length=50)
    check_in_date: date
    check_out_date: date
    price_per_day: Decimal = Field(..., ge=0)
    payment_method: Optional[PaymentMethod] = None
    amount_paid: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None


class AssignRoom(BaseModel):
    room_id: int


class ReservationCancel(BaseModel):
    reason: Optional[str] = None


class ReservationStatusUpdate(BaseModel):
    status: ReservationStatus


class ReservationResponse(BaseModel):
    id: int
    client_name: str
    phone_number: str
    email: Optional[str]
    room_id: Optional[int]
    room_type: str
    check_in_date: date
    check_out_date: date
    number_of_days: int
    price_per_day: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    status: ReservationStatus
    notes: Optional[str]
    created_at: datetime
    room: Optional[RoomResponse] = None
    attendant: Optional[AttendantBrief] = None
    check_in_id: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)


# ============== 入住 Schemas ==============

class WalkInCheckIn(GuestIdentity):
    room_id: int
    check_in_date: Optional[Union[datetime, date]] = None       # 默认当前时间
    check_out_date: Optional[Union[datetime, date]] = None      # 计划离店
    room_price: Optional[Decimal] = Field(None, ge=0)            # 默认房间挂牌价
    payment_method: Optional[PaymentMethod] = None
    amount_paid: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None


class ChangeRoom(BaseModel):
    new_room_id: int
    new_room_price: Optional[Decimal] = Field(None, ge=0)
    reason: Optional[str] = None


class CheckOutRequest(BaseModel):
    check_out_date: Optional[Union[datetime, date]] = None      # 默认当前时间
    final_payment: Optional[Decimal] = Field(None, ge=0)
    payment_method: Optional[PaymentMethod] = None


class CheckInResponse(BaseModel):
    id: int
    client_name: str
    phone_number: str
    room_id: int
    room_number: str
    check_in_date: datetime
    check_out_date: Optional[datetime]
    days_stayed: Optional[int]
    room_price: Decimal
    total_amount: Optional[Decimal]
    amount_paid: Decimal
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    status: CheckInStatus
    notes: Optional[str]
    reservation_id: Optional[int]
    created_at: datetime
    room: Optional[RoomResponse] = None
    attendant: Optional[AttendantBrief] = None
    model_config = ConfigDict(from_attributes=True)


# ============== 可用房查询 ==============

class AvailabilityResponse(BaseModel):
    check_in_date: date
    check_out_date: date
    room_type: Optional[str] = None
    rooms: List[RoomResponse] = []

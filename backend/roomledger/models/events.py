"""
领域事件定义 (Domain Events)
状态机事务提交后发布，供报表等只读方订阅
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime, date
from typing import Optional, Dict, Any


class EventType(str, Enum):
    """事件类型枚举"""
    # 房间相关
    ROOM_STATUS_CHANGED = "room.status_changed"

    # 预订相关
    RESERVATION_CREATED = "reservation.created"
    RESERVATION_CONFIRMED = "reservation.confirmed"
    RESERVATION_ROOM_ASSIGNED = "reservation.room_assigned"
    RESERVATION_CANCELLED = "reservation.cancelled"
    RESERVATION_CONVERTED = "reservation.converted"

    # 入住相关
    GUEST_CHECKED_IN = "guest.checked_in"
    GUEST_CHECKED_OUT = "guest.checked_out"
    ROOM_CHANGED = "stay.room_changed"

    # 收款相关
    PAYMENT_RECEIVED = "payment.received"


@dataclass
class BaseEventData:
    """事件数据基类"""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        result = asdict(self)
        # 处理 datetime / date 序列化
        for key, value in result.items():
            if isinstance(value, (datetime, date)):
                result[key] = value.isoformat()
        return result


@dataclass
class RoomStatusChangedData(BaseEventData):
    """房间状态变更事件数据"""
    room_id: int = 0
    room_number: str = ""
    old_status: str = ""
    new_status: str = ""
    reason: str = ""


@dataclass
class ReservationCreatedData(BaseEventData):
    """预订创建事件数据"""
    reservation_id: int = 0
    client_name: str = ""
    room_type: str = ""
    room_id: Optional[int] = None
    check_in_date: str = ""  # date as string
    check_out_date: str = ""  # date as string
    total_amount: str = ""  # Decimal as string
    status: str = ""
    attendant_id: Optional[int] = None


@dataclass
class ReservationConfirmedData(BaseEventData):
    """预订确认事件数据"""
    reservation_id: int = 0
    client_name: str = ""
    amount_paid: str = ""


@dataclass
class ReservationRoomAssignedData(BaseEventData):
    """预订分房事件数据"""
    reservation_id: int = 0
    old_room_id: Optional[int] = None
    new_room_id: int = 0
    new_room_number: str = ""


@dataclass
class ReservationCancelledData(BaseEventData):
    """预订取消事件数据"""
    reservation_id: int = 0
    client_name: str = ""
    released_room_id: Optional[int] = None
    cancel_reason: str = ""


@dataclass
class ReservationConvertedData(BaseEventData):
    """预订转入住事件数据"""
    reservation_id: int = 0
    check_in_id: int = 0
    room_id: int = 0
    room_number: str = ""


@dataclass
class GuestCheckedInData(BaseEventData):
    """客人入住事件数据"""
    check_in_id: int = 0
    client_name: str = ""
    room_id: int = 0
    room_number: str = ""
    reservation_id: Optional[int] = None
    check_in_time: datetime = field(default_factory=datetime.now)
    attendant_id: Optional[int] = None
    is_walkin: bool = False


@dataclass
class GuestCheckedOutData(BaseEventData):
    """客人退房事件数据"""
    check_in_id: int = 0
    client_name: str = ""
    room_id: int = 0
    room_number: str = ""
    check_out_time: datetime = field(default_factory=datetime.now)
    days_stayed: int = 0
    total_amount: str = ""
    amount_paid: str = ""
    payment_status: str = ""


@dataclass
class RoomChangedData(BaseEventData):
    """换房事件数据"""
    check_in_id: int = 0
    client_name: str = ""
    old_room_id: int = 0
    old_room_number: str = ""
    new_room_id: int = 0
    new_room_number: str = ""
    room_price: str = ""
    reason: str = ""


@dataclass
class PaymentReceivedData(BaseEventData):
    """收款事件数据"""
    claim_type: str = ""  # reservation / check_in
    claim_id: int = 0
    amount: str = ""
    method: str = ""
    amount_paid: str = ""
    payment_status: str = ""
    source: str = ""  # prepayment / payment / checkout


# 事件数据类型映射
EVENT_DATA_CLASSES = {
    EventType.ROOM_STATUS_CHANGED: RoomStatusChangedData,
    EventType.RESERVATION_CREATED: ReservationCreatedData,
    EventType.RESERVATION_CONFIRMED: ReservationConfirmedData,
    EventType.RESERVATION_ROOM_ASSIGNED: ReservationRoomAssignedData,
    EventType.RESERVATION_CANCELLED: ReservationCancelledData,
    EventType.RESERVATION_CONVERTED: ReservationConvertedData,
    EventType.GUEST_CHECKED_IN: GuestCheckedInData,
    EventType.GUEST_CHECKED_OUT: GuestCheckedOutData,
    EventType.ROOM_CHANGED: RoomChangedData,
    EventType.PAYMENT_RECEIVED: PaymentReceivedData,
}

"""
可用性服务 - 时段冲突检查
预订与入住两类单据合并为同一份占用视图，只读，不修改任何数据
"""
from datetime import date, datetime
from typing import List, NamedTuple, Optional, Sequence, Union
import logging

from sqlalchemy.orm import Session

from roomledger.models.ontology import (
    Room, RoomStatus, Reservation, CheckIn, CheckInStatus,
    ACTIVE_RESERVATION_STATUSES
)
from roomledger.services.errors import ValidationError

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]


class Claim(NamedTuple):
    """房间占用：一条预订或一条在住记录在某时段对房间的占用"""
    kind: str                 # reservation / check_in
    claim_id: int
    room_id: int
    start: date
    end: Optional[date]       # None 表示未定离店，视为无限延续


def as_date(value: DateLike) -> date:
    """datetime 取日期部分"""
    if isinstance(value, datetime):
        return value.date()
    return value


def intervals_overlap(a_start: date, a_end: Optional[date],
                      b_start: date, b_end: Optional[date]) -> bool:
    """
    左闭右开区间 [a_start, a_end) 与 [b_start, b_end) 是否重叠

    等价于三种情况之一：新区间起点落在已有区间内、终点落在已有区间内、
    或完全包含已有区间。首尾相接（a_end == b_start）不算重叠。
    """
    starts_before_b_ends = b_end is None or a_start < b_end
    b_starts_before_a_ends = a_end is None or b_start < a_end
    return starts_before_b_ends and b_starts_before_a_ends


def validate_interval(check_in: DateLike, check_out: DateLike) -> None:
    """离店日期必须晚于入住日期"""
    if check_in is None or check_out is None:
        raise ValidationError("入住日期和离店日期不能为空")
    if as_date(check_out) <= as_date(check_in):
        raise ValidationError("离店日期必须晚于入住日期")


class AvailabilityService:
    """可用性服务"""

    def __init__(self, db: Session):
        self.db = db

    def get_active_claims(self, room_id: int,
                          exclude_reservation_id: Optional[int] = None) -> List[Claim]:
        """获取房间当前的全部有效占用（预订 + 在住）"""
        reservation_query = self.db.query(Reservation).filter(
            Reservation.room_id == room_id,
            Reservation.status.in_(ACTIVE_RESERVATION_STATUSES)
        )
        if exclude_reservation_id is not None:
            reservation_query = reservation_query.filter(Reservation.id != exclude_reservation_id)

        check_ins = self.db.query(CheckIn).filter(
            CheckIn.room_id == room_id,
            CheckIn.status == CheckInStatus.CHECKED_IN
        ).all()

        claims = [
            Claim("reservation", r.id, room_id, r.check_in_date, r.check_out_date)
            for r in reservation_query.all()
        ]
        claims.extend(
            Claim(
                "check_in", c.id, room_id,
                as_date(c.check_in_date),
                as_date(c.check_out_date) if c.check_out_date else None
            )
            for c in check_ins
        )
        return claims

    def is_room_available(self, room_id: int, check_in: DateLike, check_out: DateLike,
                          exclude_reservation_id: Optional[int] = None) -> bool:
        """房间在 [check_in, check_out) 内是否没有任何重叠占用"""
        validate_interval(check_in, check_out)
        start, end = as_date(check_in), as_date(check_out)

        for claim in self.get_active_claims(room_id, exclude_reservation_id):
            if intervals_overlap(start, end, claim.start, claim.end):
                logger.debug(
                    f"Room {room_id} blocked by {claim.kind} {claim.claim_id} "
                    f"[{claim.start}, {claim.end})"
                )
                return False
        return True

    def _candidate_rooms(self, room_type: Optional[str],
                         bindable_statuses: Optional[Sequence[RoomStatus]]) -> List[Room]:
        query = self.db.query(Room).filter(Room.status != RoomStatus.MAINTENANCE)
        if room_type is not None:
            query = query.filter(Room.room_type == room_type)
        if bindable_statuses is not None:
            query = query.filter(Room.status.in_(bindable_statuses))
        # 按创建顺序扫描
        return query.order_by(Room.id).all()

    def find_available_room(self, room_type: str, check_in: DateLike, check_out: DateLike,
                            bindable_statuses: Optional[Sequence[RoomStatus]] = None) -> Optional[Room]:
        """
        按房型首个可用（first-fit）：按创建顺序返回第一间时段内无冲突的房间

        bindable_statuses: 调用方需要立即占用房间时，只考虑这些房态的房间
        """
        validate_interval(check_in, check_out)
        for room in self._candidate_rooms(room_type, bindable_statuses):
            if self.is_room_available(room.id, check_in, check_out):
                return room
        return None

    def list_available_rooms(self, check_in: DateLike, check_out: DateLike,
                             room_type: Optional[str] = None) -> List[Room]:
        """指定时段内所有可用房间（按创建顺序）"""
        validate_interval(check_in, check_out)
        return [
            room for room in self._candidate_rooms(room_type, None)
            if self.is_room_available(room.id, check_in, check_out)
        ]

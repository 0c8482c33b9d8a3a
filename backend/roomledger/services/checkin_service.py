"""
入住服务 - 入住状态机
在住 -> 已退房（终态），期间支持收款与换房
房态、入住单据与收款在同一事务内变更
"""
import math
from typing import Callable, List, Optional, Union
from datetime import datetime, date, time
from decimal import Decimal
import logging

from sqlalchemy.orm import Session

from roomledger.config import settings
from roomledger.database import transaction
from roomledger.models.ontology import (
    CheckIn, CheckInStatus, RoomStatus, PaymentMethod
)
from roomledger.models.schemas import WalkInCheckIn, ChangeRoom, CheckOutRequest
from roomledger.models.events import (
    EventType, GuestCheckedInData, GuestCheckedOutData, RoomChangedData, PaymentReceivedData
)
from roomledger.services.event_bus import event_bus, Event, build_event
from roomledger.services.errors import NotFoundError, InvalidStateError, ConflictError, ValidationError
from roomledger.services.payment_status import derive_payment_status, to_decimal
from roomledger.services.room_service import RoomService, room_status_event

logger = logging.getLogger(__name__)

SOURCE = "checkin_service"

SECONDS_PER_DAY = 24 * 60 * 60


def as_datetime(value: Union[date, datetime, None], default: Optional[datetime] = None) -> Optional[datetime]:
    """日期按当天零点转换为 datetime"""
    if value is None:
        return default
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def days_between(check_in: datetime, check_out: datetime) -> int:
    """
    入住天数：按经过的整天数向上取整，至少 1 天（当天离店也计 1 天）
    """
    if check_out.date() < check_in.date():
        raise ValidationError("离店时间不能早于入住日期")
    elapsed = max((check_out - check_in).total_seconds(), 0)
    return max(1, math.ceil(elapsed / SECONDS_PER_DAY))


def ensure_active(check_in: CheckIn, action: str) -> None:
    """仅在住记录可以收款、换房或退房"""
    if check_in.status != CheckInStatus.CHECKED_IN:
        raise InvalidStateError(
            f"入住记录状态为 {check_in.status.value}，无法{action}",
            current_state=check_in.status.value
        )


class CheckInService:
    """入住服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish
        self.rooms = RoomService(db, self._publish_event)

    # ============== 查询 ==============

    def get_check_in(self, check_in_id: int) -> Optional[CheckIn]:
        """获取单个入住记录"""
        return self.db.query(CheckIn).filter(CheckIn.id == check_in_id).first()

    def get_check_in_or_404(self, check_in_id: int) -> CheckIn:
        check_in = self.get_check_in(check_in_id)
        if not check_in:
            raise NotFoundError("入住记录不存在")
        return check_in

    def get_check_ins(self) -> List[CheckIn]:
        """全部入住记录（最新在前）"""
        return self.db.query(CheckIn).order_by(CheckIn.check_in_date.desc(), CheckIn.id.desc()).all()

    def get_current_guests(self) -> List[CheckIn]:
        """获取所有在住记录"""
        return self.db.query(CheckIn).filter(
            CheckIn.status == CheckInStatus.CHECKED_IN
        ).order_by(CheckIn.check_in_date.desc(), CheckIn.id.desc()).all()

    def get_active_by_room(self, room_id: int) -> Optional[CheckIn]:
        """根据房间获取当前在住记录"""
        return self.db.query(CheckIn).filter(
            CheckIn.room_id == room_id,
            CheckIn.status == CheckInStatus.CHECKED_IN
        ).first()

    def is_active_guest(self, check_in_id: int) -> bool:
        """供 POS 挂账校验：入住记录存在且仍在住"""
        check_in = self.get_check_in(check_in_id)
        return check_in is not None and check_in.status == CheckInStatus.CHECKED_IN

    # ============== 状态机 ==============

    def walk_in(self, data: WalkInCheckIn, attendant_id: Optional[int]) -> CheckIn:
        """
        散客入住（Walk-in）
        业务规则：
        - 房间必须空闲，入住后变为入住中
        - 日价默认取房间挂牌价
        - 最终应收未知，收款状态先按一天房价计算，退房时重算
        """
        check_in_date = as_datetime(data.check_in_date, datetime.now())
        planned_check_out = as_datetime(data.check_out_date)
        if planned_check_out is not None and planned_check_out.date() <= check_in_date.date():
            raise ValidationError("计划离店日期必须晚于入住日期")

        room = self.rooms.get_room_or_404(data.room_id)
        room_price = to_decimal(data.room_price if data.room_price is not None else room.price_per_day)
        amount_paid = to_decimal(data.amount_paid)
        payment_method = data.payment_method or PaymentMethod(settings.DEFAULT_PAYMENT_METHOD)

        with transaction(self.db):
            self.rooms.occupy(room.id)

            check_in = CheckIn(
                client_name=data.client_name,
                phone_number=data.phone_number,
                room_id=room.id,
                room_number=room.room_number,
                check_in_date=check_in_date,
                check_out_date=planned_check_out,
                room_price=room_price,
                amount_paid=amount_paid,
                payment_method=payment_method,
                payment_status=derive_payment_status(room_price, amount_paid, payment_method),
                status=CheckInStatus.CHECKED_IN,
                notes=data.notes,
                attendant_id=attendant_id,
            )
            self.db.add(check_in)
            self.db.flush()

        self.db.refresh(check_in)
        logger.info(f"Walk-in check-in {check_in.id}: {check_in.client_name} -> room {check_in.room_number}")

        events = [
            room_status_event(room, RoomStatus.AVAILABLE, RoomStatus.OCCUPIED, "散客入住", SOURCE),
            build_event(
                EventType.GUEST_CHECKED_IN,
                GuestCheckedInData(
                    check_in_id=check_in.id,
                    client_name=check_in.client_name,
                    room_id=room.id,
                    room_number=room.room_number,
                    check_in_time=check_in.check_in_date,
                    attendant_id=attendant_id,
                    is_walkin=True,
                ),
                SOURCE
            ),
        ]
        if amount_paid > 0:
            events.append(self._payment_event(check_in, amount_paid, "prepayment"))
        self._publish_all(events)
        return check_in

    def amount_due(self, check_in: CheckIn) -> Decimal:
        """当前应收：已有离店时间按天数计算，否则按一天房价"""
        room_price = to_decimal(check_in.room_price)
        if check_in.check_out_date is not None:
            return room_price * days_between(check_in.check_in_date, check_in.check_out_date)
        return room_price

    def record_payment(self, check_in_id: int, amount, payment_method: PaymentMethod) -> CheckIn:
        """在住收款：累加已付金额并重新计算收款状态"""
        amount = to_decimal(amount)
        if amount <= 0:
            raise ValidationError("收款金额必须大于 0")

        check_in = self.get_check_in_or_404(check_in_id)
        ensure_active(check_in, "收款")

        with transaction(self.db):
            total_paid = to_decimal(check_in.amount_paid) + amount
            check_in.amount_paid = total_paid
            check_in.payment_method = payment_method
            check_in.payment_status = derive_payment_status(
                self.amount_due(check_in), total_paid, payment_method)

        self.db.refresh(check_in)
        logger.info(
            f"Check-in {check_in.id} received {amount} via {payment_method.value}, "
            f"paid={check_in.amount_paid}, payment_status={check_in.payment_status.value}"
        )
        self._publish_event(self._payment_event(check_in, amount, "payment"))
        return check_in

    def change_room(self, check_in_id: int, data: ChangeRoom) -> CheckIn:
        """
        换房
        业务规则：
        - 新房间必须空闲
        - 新房间变为入住中、原房间释放为空闲，在同一事务内完成
        - 日价取显式指定值，否则取新房间挂牌价
        """
        check_in = self.get_check_in_or_404(check_in_id)
        ensure_active(check_in, "换房")

        if data.new_room_id == check_in.room_id:
            raise ConflictError("新房间与当前房间相同")

        new_room = self.rooms.get_room_or_404(data.new_room_id)
        old_room = check_in.room

        with transaction(self.db):
            self.rooms.occupy(new_room.id)
            self.rooms.release(old_room.id, (RoomStatus.OCCUPIED,))

            check_in.room_id = new_room.id
            check_in.room_number = new_room.room_number
            check_in.room_price = to_decimal(
                data.new_room_price if data.new_room_price is not None else new_room.price_per_day)
            # 日价变化后应收随之变化
            check_in.payment_status = derive_payment_status(
                self.amount_due(check_in), check_in.amount_paid, check_in.payment_method)
            line = f"Room changed: {old_room.room_number} -> {new_room.room_number}"
            if data.reason:
                line = f"{line} ({data.reason})"
            check_in.notes = f"{check_in.notes}\n{line}" if check_in.notes else line

        self.db.refresh(check_in)
        logger.info(f"Check-in {check_in.id} moved {old_room.room_number} -> {new_room.room_number}")

        self._publish_all([
            room_status_event(new_room, RoomStatus.AVAILABLE, RoomStatus.OCCUPIED, "换房入住", SOURCE),
            room_status_event(old_room, RoomStatus.OCCUPIED, RoomStatus.AVAILABLE, "换房释放", SOURCE),
            build_event(
                EventType.ROOM_CHANGED,
                RoomChangedData(
                    check_in_id=check_in.id,
                    client_name=check_in.client_name,
                    old_room_id=old_room.id,
                    old_room_number=old_room.room_number,
                    new_room_id=new_room.id,
                    new_room_number=new_room.room_number,
                    room_price=str(check_in.room_price),
                    reason=data.reason or "",
                ),
                SOURCE
            ),
        ])
        return check_in

    def check_out(self, check_in_id: int, data: Optional[CheckOutRequest] = None) -> CheckIn:
        """
        退房
        业务规则：
        - 只能对在住记录退房，重复退房被拒绝且不改动首次结果
        - 天数 = 经过整天数向上取整，至少 1 天
        - 应收 = 天数 × 入住时日价（不取房间当前挂牌价）
        - 可附带最终收款，计入已付后再计算收款状态
        - 房间释放为空闲
        """
        data = data or CheckOutRequest()
        check_in = self.get_check_in_or_404(check_in_id)
        ensure_active(check_in, "退房")

        check_out_date = as_datetime(data.check_out_date, datetime.now())
        days_stayed = days_between(check_in.check_in_date, check_out_date)
        final_payment = to_decimal(data.final_payment)

        with transaction(self.db):
            room = self.rooms.release(check_in.room_id, (RoomStatus.OCCUPIED,))

            total_amount = to_decimal(check_in.room_price) * days_stayed
            total_paid = to_decimal(check_in.amount_paid) + final_payment
            if data.payment_method is not None:
                check_in.payment_method = data.payment_method

            check_in.check_out_date = check_out_date
            check_in.days_stayed = days_stayed
            check_in.total_amount = total_amount
            check_in.amount_paid = total_paid
            check_in.payment_status = derive_payment_status(
                total_amount, total_paid, check_in.payment_method)
            check_in.status = CheckInStatus.CHECKED_OUT

        self.db.refresh(check_in)
        logger.info(
            f"Check-in {check_in.id} checked out of room {check_in.room_number}: "
            f"{days_stayed} day(s), total={check_in.total_amount}, "
            f"paid={check_in.amount_paid}, payment_status={check_in.payment_status.value}"
        )

        events = [
            room_status_event(room, RoomStatus.OCCUPIED, RoomStatus.AVAILABLE, "退房", SOURCE),
            build_event(
                EventType.GUEST_CHECKED_OUT,
                GuestCheckedOutData(
                    check_in_id=check_in.id,
                    client_name=check_in.client_name,
                    room_id=room.id,
                    room_number=room.room_number,
                    check_out_time=check_in.check_out_date,
                    days_stayed=check_in.days_stayed,
                    total_amount=str(check_in.total_amount),
                    amount_paid=str(check_in.amount_paid),
                    payment_status=check_in.payment_status.value,
                ),
                SOURCE
            ),
        ]
        if final_payment > 0:
            events.append(self._payment_event(check_in, final_payment, "checkout"))
        self._publish_all(events)
        return check_in

    # ============== 内部 ==============

    def _payment_event(self, check_in: CheckIn, amount: Decimal, source: str) -> Event:
        return build_event(
            EventType.PAYMENT_RECEIVED,
            PaymentReceivedData(
                claim_type="check_in",
                claim_id=check_in.id,
                amount=str(amount),
                method=check_in.payment_method.value,
                amount_paid=str(check_in.amount_paid),
                payment_status=check_in.payment_status.value,
                source=source,
            ),
            SOURCE
        )

    def _publish_all(self, events: List[Event]) -> None:
        for event in events:
            self._publish_event(event)

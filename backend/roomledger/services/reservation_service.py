"""
预订服务 - 预订状态机
待确认 -> 已确认 -> 已转入住（终态）；待确认 / 已确认 -> 已取消（终态）
房态、预订单据与收款在同一事务内变更
"""
from typing import Callable, List, Optional
from datetime import date
from decimal import Decimal
import logging

from sqlalchemy.orm import Session

from roomledger.config import settings
from roomledger.database import transaction
from roomledger.models.ontology import (
    Reservation, ReservationStatus, RoomStatus, PaymentMethod, PaymentStatus,
    OPEN_RESERVATION_STATUSES
)
from roomledger.models.schemas import ReservationCreate
from roomledger.models.events import (
    EventType, ReservationCreatedData, ReservationConfirmedData,
    ReservationRoomAssignedData, ReservationCancelledData, PaymentReceivedData
)
from roomledger.services.availability_service import AvailabilityService, validate_interval
from roomledger.services.event_bus import event_bus, Event, build_event
from roomledger.services.errors import (
    NotFoundError, InvalidStateError, ConflictError, ValidationError
)
from roomledger.services.payment_status import derive_payment_status, to_decimal
from roomledger.services.room_service import RoomService, room_status_event

logger = logging.getLogger(__name__)

SOURCE = "reservation_service"


def ensure_open(reservation: Reservation, action: str) -> None:
    """仅待确认 / 已确认的预订可以分房、收款、取消或转入住"""
    if reservation.status not in OPEN_RESERVATION_STATUSES:
        raise InvalidStateError(
            f"预订状态为 {reservation.status.value}，无法{action}",
            current_state=reservation.status.value
        )


class ReservationService:
    """预订服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish
        self.rooms = RoomService(db, self._publish_event)
        self.availability = AvailabilityService(db)

    # ============== 查询 ==============

    def get_reservation(self, reservation_id: int) -> Optional[Reservation]:
        """获取单个预订"""
        return self.db.query(Reservation).filter(Reservation.id == reservation_id).first()

    def get_reservation_or_404(self, reservation_id: int) -> Reservation:
        reservation = self.get_reservation(reservation_id)
        if not reservation:
            raise NotFoundError("预订不存在")
        return reservation

    def get_reservations(self, status: Optional[ReservationStatus] = None) -> List[Reservation]:
        """获取预订列表（按入住日期升序）"""
        query = self.db.query(Reservation)
        if status:
            query = query.filter(Reservation.status == status)
        return query.order_by(Reservation.check_in_date, Reservation.id).all()

    def get_upcoming(self) -> List[Reservation]:
        """今日及以后的待入住预订"""
        return self.db.query(Reservation).filter(
            Reservation.check_in_date >= date.today(),
            Reservation.status.in_(OPEN_RESERVATION_STATUSES)
        ).order_by(Reservation.check_in_date, Reservation.id).all()

    def get_today_arrivals(self) -> List[Reservation]:
        """获取今日预抵"""
        return self.db.query(Reservation).filter(
            Reservation.check_in_date == date.today(),
            Reservation.status.in_(OPEN_RESERVATION_STATUSES)
        ).order_by(Reservation.id).all()

    def get_outstanding_payments(self) -> List[Reservation]:
        """未结清的有效预订"""
        return self.db.query(Reservation).filter(
            Reservation.payment_status.in_([PaymentStatus.UNPAID, PaymentStatus.PARTIAL]),
            Reservation.status.in_(OPEN_RESERVATION_STATUSES)
        ).order_by(Reservation.check_in_date, Reservation.id).all()

    # ============== 状态机 ==============

    def create_reservation(self, data: ReservationCreate, attendant_id: Optional[int]) -> Reservation:
        """
        创建预订
        业务规则：
        - 离店日期必须晚于入住日期
        - 指定房间：房型一致且该时段无冲突，房间变为已预留
        - 仅指定房型：该房型至少有一间可用房，暂不锁房（转入住时再分配）
        - 有预付则直接确认，否则待确认
        """
        validate_interval(data.check_in_date, data.check_out_date)
        number_of_days = (data.check_out_date - data.check_in_date).days

        price_per_day = to_decimal(data.price_per_day)
        total_amount = price_per_day * number_of_days
        amount_paid = to_decimal(data.amount_paid)
        payment_method = data.payment_method or PaymentMethod(settings.DEFAULT_PAYMENT_METHOD)
        events = []

        with transaction(self.db):
            if data.room_id is not None:
                room = self.rooms.get_room_or_404(data.room_id)
                if room.room_type != data.room_type:
                    raise ConflictError("房间类型与预订房型不符")
                if not self.availability.is_room_available(
                        room.id, data.check_in_date, data.check_out_date):
                    raise ConflictError(f"房间 {room.room_number} 在所选日期不可用")
                self.rooms.reserve(room.id)
                events.append(room_status_event(
                    room, RoomStatus.AVAILABLE, RoomStatus.RESERVED, "预订锁房", SOURCE))
            else:
                candidate = self.availability.find_available_room(
                    data.room_type, data.check_in_date, data.check_out_date)
                if candidate is None:
                    raise ConflictError(f"所选日期没有可用的 {data.room_type} 房间")

            reservation = Reservation(
                client_name=data.client_name,
                phone_number=data.phone_number,
                email=data.email,
                room_id=data.room_id,
                room_type=data.room_type,
                check_in_date=data.check_in_date,
                check_out_date=data.check_out_date,
                number_of_days=number_of_days,
                price_per_day=price_per_day,
                total_amount=total_amount,
                amount_paid=amount_paid,
                balance_due=total_amount - amount_paid,
                payment_method=payment_method,
                payment_status=derive_payment_status(total_amount, amount_paid, payment_method),
                status=ReservationStatus.CONFIRMED if amount_paid > 0 else ReservationStatus.PENDING,
                notes=data.notes,
                attendant_id=attendant_id,
            )
            self.db.add(reservation)
            self.db.flush()

        self.db.refresh(reservation)
        logger.info(
            f"Reservation {reservation.id} created for {reservation.client_name} "
            f"({reservation.room_type}, {reservation.check_in_date} -> {reservation.check_out_date}, "
            f"status={reservation.status.value})"
        )

        events.insert(0, build_event(
            EventType.RESERVATION_CREATED,
            ReservationCreatedData(
                reservation_id=reservation.id,
                client_name=reservation.client_name,
                room_type=reservation.room_type,
                room_id=reservation.room_id,
                check_in_date=reservation.check_in_date.isoformat(),
                check_out_date=reservation.check_out_date.isoformat(),
                total_amount=str(reservation.total_amount),
                status=reservation.status.value,
                attendant_id=attendant_id,
            ),
            SOURCE
        ))
        if amount_paid > 0:
            events.append(self._payment_event(reservation, amount_paid, "prepayment"))
        self._publish_all(events)
        return reservation

    def assign_room(self, reservation_id: int, room_id: int) -> Reservation:
        """
        分配 / 更换预订房间
        原房间释放与新房间锁定在同一事务内，避免两张预订同时占用
        """
        reservation = self.get_reservation_or_404(reservation_id)
        ensure_open(reservation, "分配房间")

        old_room_id = reservation.room_id
        if old_room_id == room_id:
            return reservation

        new_room = self.rooms.get_room_or_404(room_id)
        if new_room.room_type != reservation.room_type:
            raise ConflictError("房间类型与预订房型不符")

        events = []
        with transaction(self.db):
            if not self.availability.is_room_available(
                    room_id, reservation.check_in_date, reservation.check_out_date,
                    exclude_reservation_id=reservation.id):
                raise ConflictError(f"房间 {new_room.room_number} 在所选日期不可用")

            if old_room_id is not None:
                old_room = self.rooms.release(old_room_id, (RoomStatus.RESERVED,))
                events.append(room_status_event(
                    old_room, RoomStatus.RESERVED, RoomStatus.AVAILABLE, "预订换房释放", SOURCE))

            self.rooms.reserve(room_id)
            events.append(room_status_event(
                new_room, RoomStatus.AVAILABLE, RoomStatus.RESERVED, "预订锁房", SOURCE))
            reservation.room_id = room_id

        self.db.refresh(reservation)
        logger.info(f"Reservation {reservation.id} assigned room {new_room.room_number}")

        events.append(build_event(
            EventType.RESERVATION_ROOM_ASSIGNED,
            ReservationRoomAssignedData(
                reservation_id=reservation.id,
                old_room_id=old_room_id,
                new_room_id=new_room.id,
                new_room_number=new_room.room_number,
            ),
            SOURCE
        ))
        self._publish_all(events)
        return reservation

    def record_payment(self, reservation_id: int, amount, payment_method: PaymentMethod) -> Reservation:
        """
        预订收款
        累加已付金额，重新计算余额与收款状态；待确认的预订收到款项后自动确认
        """
        amount = to_decimal(amount)
        if amount <= 0:
            raise ValidationError("收款金额必须大于 0")

        reservation = self.get_reservation_or_404(reservation_id)
        ensure_open(reservation, "收款")

        was_pending = reservation.status == ReservationStatus.PENDING

        with transaction(self.db):
            total_paid = to_decimal(reservation.amount_paid) + amount
            total_amount = to_decimal(reservation.total_amount)
            reservation.amount_paid = total_paid
            reservation.balance_due = total_amount - total_paid
            reservation.payment_method = payment_method
            reservation.payment_status = derive_payment_status(total_amount, total_paid, payment_method)
            if was_pending and total_paid > 0:
                reservation.status = ReservationStatus.CONFIRMED

        self.db.refresh(reservation)
        logger.info(
            f"Reservation {reservation.id} received {amount} via {payment_method.value}, "
            f"paid={reservation.amount_paid}, payment_status={reservation.payment_status.value}"
        )

        events = [self._payment_event(reservation, amount, "payment")]
        if was_pending and reservation.status == ReservationStatus.CONFIRMED:
            events.append(build_event(
                EventType.RESERVATION_CONFIRMED,
                ReservationConfirmedData(
                    reservation_id=reservation.id,
                    client_name=reservation.client_name,
                    amount_paid=str(reservation.amount_paid),
                ),
                SOURCE
            ))
        self._publish_all(events)
        return reservation

    def cancel_reservation(self, reservation_id: int, reason: Optional[str] = None) -> Reservation:
        """取消预订，释放已锁定的房间；取消原因追加到备注，不覆盖原备注"""
        reservation = self.get_reservation_or_404(reservation_id)
        ensure_open(reservation, "取消")

        released_room_id = reservation.room_id
        events = []

        with transaction(self.db):
            if released_room_id is not None:
                room = self.rooms.release(released_room_id, (RoomStatus.RESERVED,))
                events.append(room_status_event(
                    room, RoomStatus.RESERVED, RoomStatus.AVAILABLE, "预订取消", SOURCE))

            reservation.status = ReservationStatus.CANCELLED
            if reason:
                line = f"Cancelled: {reason}"
                reservation.notes = f"{reservation.notes}\n{line}" if reservation.notes else line

        self.db.refresh(reservation)
        logger.info(f"Reservation {reservation.id} cancelled")

        events.append(build_event(
            EventType.RESERVATION_CANCELLED,
            ReservationCancelledData(
                reservation_id=reservation.id,
                client_name=reservation.client_name,
                released_room_id=released_room_id,
                cancel_reason=reason or "",
            ),
            SOURCE
        ))
        self._publish_all(events)
        return reservation

    def update_status(self, reservation_id: int, status: ReservationStatus) -> Reservation:
        """
        人工修正预订状态（管理用途）
        仅修改状态字段，不触及房间绑定
        """
        reservation = self.get_reservation_or_404(reservation_id)
        old_status = reservation.status

        with transaction(self.db):
            reservation.status = status

        self.db.refresh(reservation)
        logger.warning(
            f"Reservation {reservation.id} status overridden "
            f"{old_status.value} -> {status.value}"
        )
        return reservation

    # ============== 内部 ==============

    def _payment_event(self, reservation: Reservation, amount: Decimal, source: str) -> Event:
        return build_event(
            EventType.PAYMENT_RECEIVED,
            PaymentReceivedData(
                claim_type="reservation",
                claim_id=reservation.id,
                amount=str(amount),
                method=reservation.payment_method.value,
                amount_paid=str(reservation.amount_paid),
                payment_status=reservation.payment_status.value,
                source=source,
            ),
            SOURCE
        )

    def _publish_all(self, events: List[Event]) -> None:
        for event in events:
            self._publish_event(event)

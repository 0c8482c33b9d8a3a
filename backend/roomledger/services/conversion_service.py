"""
预订转入住服务
预订置为已转入住、新建入住记录、房间置为入住中，三处写入在同一事务内，
任一步失败则全部回滚
"""
from datetime import datetime
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from roomledger.database import transaction
from roomledger.models.ontology import (
    CheckIn, CheckInStatus, ReservationStatus, RoomStatus
)
from roomledger.models.events import (
    EventType, GuestCheckedInData, ReservationConvertedData
)
from roomledger.services.availability_service import AvailabilityService
from roomledger.services.event_bus import event_bus, Event, build_event
from roomledger.services.errors import ConflictError
from roomledger.services.reservation_service import ReservationService, ensure_open
from roomledger.services.room_service import RoomService, room_status_event

logger = logging.getLogger(__name__)

SOURCE = "conversion_service"


class ConversionService:
    """预订转入住"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish
        self.rooms = RoomService(db, self._publish_event)
        self.reservations = ReservationService(db, self._publish_event)
        self.availability = AvailabilityService(db)

    def convert(self, reservation_id: int, attendant_id: Optional[int] = None) -> CheckIn:
        """
        预订入住
        业务规则：
        - 仅待确认 / 已确认的预订可以转入住
        - 已锁定房间则沿用（已预留 -> 入住中）
        - 未锁定房间则按房型重新首个可用分配（空闲 -> 入住中），无房则冲突
        - 新入住记录继承客人、日价、支付方式、已付金额与收款状态，入住时间为当前时间
        """
        reservation = self.reservations.get_reservation_or_404(reservation_id)
        ensure_open(reservation, "办理入住")

        with transaction(self.db):
            if reservation.room_id is not None:
                old_room_status = RoomStatus.RESERVED
                room = self.rooms.occupy(reservation.room_id, (RoomStatus.RESERVED,))
            else:
                old_room_status = RoomStatus.AVAILABLE
                candidate = self.availability.find_available_room(
                    reservation.room_type,
                    reservation.check_in_date,
                    reservation.check_out_date,
                    bindable_statuses=(RoomStatus.AVAILABLE,)
                )
                if candidate is None:
                    raise ConflictError(f"没有可用的 {reservation.room_type} 房间")
                room = self.rooms.occupy(candidate.id)
                reservation.room_id = room.id

            check_in = CheckIn(
                client_name=reservation.client_name,
                phone_number=reservation.phone_number,
                room_id=room.id,
                room_number=room.room_number,
                check_in_date=datetime.now(),
                room_price=reservation.price_per_day,
                amount_paid=reservation.amount_paid,
                payment_method=reservation.payment_method,
                payment_status=reservation.payment_status,
                status=CheckInStatus.CHECKED_IN,
                reservation_id=reservation.id,
                attendant_id=reservation.attendant_id,
            )
            self.db.add(check_in)
            reservation.status = ReservationStatus.CHECKED_IN
            self.db.flush()

        self.db.refresh(check_in)
        logger.info(
            f"Reservation {reservation.id} converted to check-in {check_in.id} "
            f"(room {check_in.room_number})"
        )

        for event in (
            room_status_event(room, old_room_status, RoomStatus.OCCUPIED, "预订入住", SOURCE),
            build_event(
                EventType.RESERVATION_CONVERTED,
                ReservationConvertedData(
                    reservation_id=reservation.id,
                    check_in_id=check_in.id,
                    room_id=room.id,
                    room_number=room.room_number,
                ),
                SOURCE
            ),
            build_event(
                EventType.GUEST_CHECKED_IN,
                GuestCheckedInData(
                    check_in_id=check_in.id,
                    client_name=check_in.client_name,
                    room_id=room.id,
                    room_number=room.room_number,
                    reservation_id=reservation.id,
                    check_in_time=check_in.check_in_date,
                    attendant_id=attendant_id or reservation.attendant_id,
                    is_walkin=False,
                ),
                SOURCE
            ),
        ):
            self._publish_event(event)
        return check_in

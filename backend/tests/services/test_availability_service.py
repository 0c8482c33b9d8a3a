"""
Tests for roomledger/services/availability_service.py
Covers: intervals_overlap, validate_interval, is_room_available,
        find_available_room (first-fit), list_available_rooms
"""
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

from roomledger.models.ontology import (
    Room, RoomStatus, Reservation, ReservationStatus, CheckIn, CheckInStatus,
    PaymentMethod, PaymentStatus
)
from roomledger.services.availability_service import (
    AvailabilityService, intervals_overlap, validate_interval
)
from roomledger.services.errors import ValidationError


D = date(2025, 1, 10)


# ── helpers ──────────────────────────────────────────────────────────

def _room(db, number="101", room_type="Single", status=RoomStatus.AVAILABLE):
    r = Room(room_number=number, room_type=room_type, price_per_day=Decimal("50"), status=status)
    db.add(r)
    db.flush()
    return r


def _reservation(db, room, check_in, check_out, status=ReservationStatus.CONFIRMED):
    nights = (check_out - check_in).days
    r = Reservation(
        client_name="Alice", phone_number="555-0100",
        room_id=room.id if room else None, room_type="Single",
        check_in_date=check_in, check_out_date=check_out,
        number_of_days=nights, price_per_day=Decimal("50"),
        total_amount=Decimal("50") * nights, amount_paid=Decimal("0"),
        balance_due=Decimal("50") * nights,
        payment_method=PaymentMethod.CASH, payment_status=PaymentStatus.UNPAID,
        status=status,
    )
    db.add(r)
    db.flush()
    return r


def _check_in(db, room, check_in, check_out=None, status=CheckInStatus.CHECKED_IN):
    c = CheckIn(
        client_name="Bob", phone_number="555-0200",
        room_id=room.id, room_number=room.room_number,
        check_in_date=check_in, check_out_date=check_out,
        room_price=Decimal("50"), amount_paid=Decimal("0"),
        payment_method=PaymentMethod.CASH, payment_status=PaymentStatus.UNPAID,
        status=status,
    )
    db.add(c)
    db.flush()
    return c


class TestIntervalsOverlap:
    """左闭右开区间重叠判断"""

    def test_identical(self):
        assert intervals_overlap(D, D + timedelta(2), D, D + timedelta(2))

    def test_touching_is_not_overlap(self):
        assert not intervals_overlap(D + timedelta(2), D + timedelta(4), D, D + timedelta(2))
        assert not intervals_overlap(D, D + timedelta(2), D + timedelta(2), D + timedelta(4))

    def test_new_contains_existing(self):
        assert intervals_overlap(D, D + timedelta(10), D + timedelta(3), D + timedelta(5))

    def test_existing_contains_new(self):
        assert intervals_overlap(D + timedelta(3), D + timedelta(5), D, D + timedelta(10))

    def test_start_inside(self):
        assert intervals_overlap(D + timedelta(1), D + timedelta(5), D, D + timedelta(3))

    def test_end_inside(self):
        assert intervals_overlap(D, D + timedelta(2), D + timedelta(1), D + timedelta(5))

    def test_disjoint(self):
        assert not intervals_overlap(D, D + timedelta(1), D + timedelta(5), D + timedelta(6))

    def test_open_ended_existing(self):
        """未定离店的占用向后无限延续"""
        assert intervals_overlap(D + timedelta(30), D + timedelta(31), D, None)
        assert not intervals_overlap(D - timedelta(3), D, D, None)


class TestValidateInterval:

    def test_checkout_equal_rejected(self):
        with pytest.raises(ValidationError, match="晚于"):
            validate_interval(D, D)

    def test_checkout_before_rejected(self):
        with pytest.raises(ValidationError):
            validate_interval(D, D - timedelta(1))

    def test_missing_date_rejected(self):
        with pytest.raises(ValidationError, match="不能为空"):
            validate_interval(D, None)

    def test_valid(self):
        validate_interval(D, D + timedelta(1))


class TestIsRoomAvailable:

    def test_free_room(self, db_session):
        room = _room(db_session)
        service = AvailabilityService(db_session)
        assert service.is_room_available(room.id, D, D + timedelta(2))

    def test_blocked_by_reservation(self, db_session):
        room = _room(db_session)
        _reservation(db_session, room, D, D + timedelta(3))
        service = AvailabilityService(db_session)
        assert not service.is_room_available(room.id, D + timedelta(1), D + timedelta(2))

    def test_back_to_back_reservations_allowed(self, db_session):
        room = _room(db_session)
        _reservation(db_session, room, D, D + timedelta(2))
        service = AvailabilityService(db_session)
        assert service.is_room_available(room.id, D + timedelta(2), D + timedelta(4))
        assert service.is_room_available(room.id, D - timedelta(2), D)

    def test_cancelled_reservation_does_not_block(self, db_session):
        room = _room(db_session)
        _reservation(db_session, room, D, D + timedelta(3), status=ReservationStatus.CANCELLED)
        service = AvailabilityService(db_session)
        assert service.is_room_available(room.id, D, D + timedelta(3))

    def test_checked_in_reservation_still_blocks(self, db_session):
        room = _room(db_session)
        _reservation(db_session, room, D, D + timedelta(3), status=ReservationStatus.CHECKED_IN)
        service = AvailabilityService(db_session)
        assert not service.is_room_available(room.id, D, D + timedelta(1))

    def test_exclude_own_reservation(self, db_session):
        room = _room(db_session)
        own = _reservation(db_session, room, D, D + timedelta(3))
        service = AvailabilityService(db_session)
        assert service.is_room_available(room.id, D, D + timedelta(3), exclude_reservation_id=own.id)

    def test_blocked_by_check_in_with_planned_checkout(self, db_session):
        room = _room(db_session, status=RoomStatus.OCCUPIED)
        _check_in(db_session, room, datetime(2025, 1, 10, 14, 0), datetime(2025, 1, 12, 11, 0))
        service = AvailabilityService(db_session)
        assert not service.is_room_available(room.id, D + timedelta(1), D + timedelta(2))
        assert service.is_room_available(room.id, D + timedelta(2), D + timedelta(3))

    def test_open_ended_check_in_blocks_future(self, db_session):
        """未定离店的在住记录阻塞之后所有日期"""
        room = _room(db_session, status=RoomStatus.OCCUPIED)
        _check_in(db_session, room, datetime(2025, 1, 10, 14, 0))
        service = AvailabilityService(db_session)
        assert not service.is_room_available(room.id, D + timedelta(60), D + timedelta(61))
        assert service.is_room_available(room.id, D - timedelta(2), D)

    def test_checked_out_stay_does_not_block(self, db_session):
        room = _room(db_session)
        _check_in(db_session, room, datetime(2025, 1, 10, 14, 0), datetime(2025, 1, 12, 11, 0),
                  status=CheckInStatus.CHECKED_OUT)
        service = AvailabilityService(db_session)
        assert service.is_room_available(room.id, D, D + timedelta(2))

    def test_invalid_interval(self, db_session):
        room = _room(db_session)
        service = AvailabilityService(db_session)
        with pytest.raises(ValidationError):
            service.is_room_available(room.id, D, D)


class TestFindAvailableRoom:
    """按房型首个可用"""

    def test_first_fit_in_creation_order(self, db_session):
        first = _room(db_session, "105")
        _room(db_session, "101")
        service = AvailabilityService(db_session)
        assert service.find_available_room("Single", D, D + timedelta(1)).id == first.id

    def test_skips_conflicting_room(self, db_session):
        first = _room(db_session, "101")
        second = _room(db_session, "102")
        _reservation(db_session, first, D, D + timedelta(3))
        service = AvailabilityService(db_session)
        assert service.find_available_room("Single", D, D + timedelta(1)).id == second.id

    def test_skips_maintenance(self, db_session):
        _room(db_session, "101", status=RoomStatus.MAINTENANCE)
        second = _room(db_session, "102")
        service = AvailabilityService(db_session)
        assert service.find_available_room("Single", D, D + timedelta(1)).id == second.id

    def test_room_type_filter(self, db_session):
        _room(db_session, "101", room_type="Single")
        double = _room(db_session, "201", room_type="Double")
        service = AvailabilityService(db_session)
        assert service.find_available_room("Double", D, D + timedelta(1)).id == double.id
        assert service.find_available_room("Suite", D, D + timedelta(1)) is None

    def test_bindable_statuses(self, db_session):
        """需要立即占用时只考虑空闲房"""
        reserved = _room(db_session, "101", status=RoomStatus.RESERVED)
        available = _room(db_session, "102")
        service = AvailabilityService(db_session)
        assert service.find_available_room("Single", D, D + timedelta(1)).id == reserved.id
        assert service.find_available_room(
            "Single", D, D + timedelta(1), bindable_statuses=(RoomStatus.AVAILABLE,)
        ).id == available.id

    def test_none_when_all_taken(self, db_session):
        room = _room(db_session)
        _reservation(db_session, room, D, D + timedelta(5))
        service = AvailabilityService(db_session)
        assert service.find_available_room("Single", D + timedelta(1), D + timedelta(2)) is None


class TestListAvailableRooms:

    def test_lists_only_free_rooms(self, db_session):
        busy = _room(db_session, "101")
        free = _room(db_session, "102")
        _room(db_session, "103", status=RoomStatus.MAINTENANCE)
        _reservation(db_session, busy, D, D + timedelta(2))
        service = AvailabilityService(db_session)
        rooms = service.list_available_rooms(D, D + timedelta(1))
        assert [r.id for r in rooms] == [free.id]

    def test_read_only(self, db_session):
        room = _room(db_session)
        service = AvailabilityService(db_session)
        service.list_available_rooms(D, D + timedelta(1), "Single")
        db_session.refresh(room)
        assert room.status == RoomStatus.AVAILABLE

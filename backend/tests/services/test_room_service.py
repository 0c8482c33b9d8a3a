"""
Tests for roomledger/services/room_service.py
Covers: create/update, status summary, maintenance toggle, transition (compare-and-swap)
"""
import pytest
from datetime import datetime
from decimal import Decimal

from roomledger.models.ontology import Room, RoomStatus
from roomledger.models.schemas import RoomCreate, RoomUpdate
from roomledger.models.events import EventType
from roomledger.services.room_service import RoomService
from roomledger.services.errors import ConflictError, NotFoundError


def _room(db, number="101", room_type="Single", status=RoomStatus.AVAILABLE):
    r = Room(room_number=number, room_type=room_type, price_per_day=Decimal("50"), status=status)
    db.add(r)
    db.commit()
    return r


def _noop(event):
    pass


class TestRoomMaintenance:
    """房间资料维护"""

    def test_create_room(self, db_session):
        service = RoomService(db_session, event_publisher=_noop)
        room = service.create_room(RoomCreate(room_number="101", room_type="Single", price_per_day=Decimal("50")))
        assert room.id is not None
        assert room.status == RoomStatus.AVAILABLE
        assert room.price_per_day == Decimal("50")

    def test_create_duplicate_number(self, db_session):
        _room(db_session)
        service = RoomService(db_session, event_publisher=_noop)
        with pytest.raises(ConflictError, match="已存在"):
            service.create_room(RoomCreate(room_number="101", room_type="Double", price_per_day=Decimal("80")))

    def test_update_price_and_type(self, db_session):
        room = _room(db_session)
        service = RoomService(db_session, event_publisher=_noop)
        updated = service.update_room(room.id, RoomUpdate(room_type="Double", price_per_day=Decimal("75")))
        assert updated.room_type == "Double"
        assert updated.price_per_day == Decimal("75")
        assert updated.status == RoomStatus.AVAILABLE

    def test_update_to_taken_number(self, db_session):
        _room(db_session, "101")
        other = _room(db_session, "102")
        service = RoomService(db_session, event_publisher=_noop)
        with pytest.raises(ConflictError):
            service.update_room(other.id, RoomUpdate(room_number="101"))

    def test_update_missing_room(self, db_session):
        service = RoomService(db_session, event_publisher=_noop)
        with pytest.raises(NotFoundError):
            service.update_room(999, RoomUpdate(price_per_day=Decimal("1")))

    @pytest.mark.parametrize("status", [RoomStatus.RESERVED, RoomStatus.OCCUPIED])
    def test_type_locked_while_claimed(self, db_session, status):
        room = _room(db_session, status=status)
        service = RoomService(db_session, event_publisher=_noop)
        with pytest.raises(ConflictError, match="不能修改房型"):
            service.update_room(room.id, RoomUpdate(room_type="Double"))
        db_session.refresh(room)
        assert room.room_type == "Single"

    def test_claimed_room_accepts_price_and_same_type(self, db_session):
        room = _room(db_session, status=RoomStatus.OCCUPIED)
        service = RoomService(db_session, event_publisher=_noop)
        updated = service.update_room(room.id, RoomUpdate(room_type="Single", price_per_day=Decimal("60")))
        assert updated.price_per_day == Decimal("60")
        assert updated.status == RoomStatus.OCCUPIED

    def test_maintenance_room_type_change(self, db_session):
        room = _room(db_session, status=RoomStatus.MAINTENANCE)
        service = RoomService(db_session, event_publisher=_noop)
        assert service.update_room(room.id, RoomUpdate(room_type="Suite")).room_type == "Suite"

    def test_status_summary(self, db_session):
        _room(db_session, "101")
        _room(db_session, "102", status=RoomStatus.OCCUPIED)
        _room(db_session, "103", status=RoomStatus.RESERVED)
        _room(db_session, "104", status=RoomStatus.MAINTENANCE)
        _room(db_session, "105")
        summary = RoomService(db_session).get_status_summary()
        assert summary == {
            "total": 5, "available": 2, "occupied": 1, "reserved": 1, "maintenance": 1
        }

    def test_get_rooms_filters(self, db_session):
        _room(db_session, "101")
        _room(db_session, "201", room_type="Double", status=RoomStatus.OCCUPIED)
        service = RoomService(db_session)
        assert [r.room_number for r in service.get_rooms(room_type="Double")] == ["201"]
        assert [r.room_number for r in service.get_rooms(status=RoomStatus.AVAILABLE)] == ["101"]


class TestSetMaintenance:
    """维修切换"""

    def test_enable_and_disable(self, db_session):
        room = _room(db_session)
        events = []
        service = RoomService(db_session, event_publisher=events.append)

        assert service.set_maintenance(room.id, True).status == RoomStatus.MAINTENANCE
        assert service.set_maintenance(room.id, False).status == RoomStatus.AVAILABLE

        assert [e.event_type for e in events] == [EventType.ROOM_STATUS_CHANGED.value] * 2
        assert events[0].data["new_status"] == "maintenance"

    def test_occupied_room_cannot_enter_maintenance(self, db_session):
        room = _room(db_session, status=RoomStatus.OCCUPIED)
        service = RoomService(db_session, event_publisher=_noop)
        with pytest.raises(ConflictError) as exc_info:
            service.set_maintenance(room.id, True)
        assert exc_info.value.current_state == "occupied"
        db_session.refresh(room)
        assert room.status == RoomStatus.OCCUPIED

    def test_reserved_room_cannot_enter_maintenance(self, db_session):
        room = _room(db_session, status=RoomStatus.RESERVED)
        service = RoomService(db_session, event_publisher=_noop)
        with pytest.raises(ConflictError):
            service.set_maintenance(room.id, True)


class TestTransition:
    """条件房态迁移"""

    def test_reserve_then_occupy_then_release(self, db_session):
        room = _room(db_session)
        service = RoomService(db_session)
        assert service.reserve(room.id).status == RoomStatus.RESERVED
        assert service.occupy(room.id, (RoomStatus.RESERVED,)).status == RoomStatus.OCCUPIED
        assert service.release(room.id).status == RoomStatus.AVAILABLE

    def test_second_claimant_loses(self, db_session):
        """两个请求争用同一空闲房，只有第一个成功"""
        room = _room(db_session)
        service = RoomService(db_session)

        service.occupy(room.id)
        db_session.commit()

        with pytest.raises(ConflictError, match="occupied"):
            service.occupy(room.id)
        db_session.rollback()

        db_session.refresh(room)
        assert room.status == RoomStatus.OCCUPIED

    def test_lost_race_against_stale_read(self, db_session):
        """读取时空闲、写入前已被他人占用：条件更新失败"""
        room = _room(db_session)
        service = RoomService(db_session)
        assert room.status == RoomStatus.AVAILABLE

        db_session.query(Room).filter(Room.id == room.id).update(
            {Room.status: RoomStatus.RESERVED}, synchronize_session=False)
        db_session.commit()

        with pytest.raises(ConflictError) as exc_info:
            service.occupy(room.id)
        assert exc_info.value.retryable is True
        assert exc_info.value.current_state == "reserved"

    def test_missing_room(self, db_session):
        with pytest.raises(NotFoundError):
            RoomService(db_session).reserve(42)

    def test_stamps_local_time(self, db_session):
        """房态时间戳与入住、退房时间使用同一本地时钟"""
        room = _room(db_session)
        before = datetime.now()
        RoomService(db_session).reserve(room.id)
        db_session.commit()
        db_session.refresh(room)
        assert before <= room.updated_at <= datetime.now()

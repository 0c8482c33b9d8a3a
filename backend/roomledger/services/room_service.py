"""
房间服务 - 房态生命周期
房态只能由状态机通过 transition 写入（比较并交换），前台不可直接修改，维修切换除外
"""
from datetime import datetime
from typing import Callable, List, Optional, Sequence
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from roomledger.database import transaction
from roomledger.models.ontology import Room, RoomStatus
from roomledger.models.schemas import RoomCreate, RoomUpdate
from roomledger.models.events import EventType, RoomStatusChangedData
from roomledger.services.event_bus import event_bus, Event, build_event
from roomledger.services.errors import NotFoundError, ConflictError

logger = logging.getLogger(__name__)


def room_status_event(room: Room, old_status: RoomStatus, new_status: RoomStatus,
                      reason: str = "", source: str = "room_service") -> Event:
    """构造房态变更事件"""
    return build_event(
        EventType.ROOM_STATUS_CHANGED,
        RoomStatusChangedData(
            room_id=room.id,
            room_number=room.room_number,
            old_status=old_status.value,
            new_status=new_status.value,
            reason=reason,
        ),
        source,
    )


class RoomService:
    """房间服务"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None):
        self.db = db
        # 支持依赖注入事件发布器，便于测试
        self._publish_event = event_publisher or event_bus.publish

    # ============== 查询 ==============

    def get_room(self, room_id: int) -> Optional[Room]:
        """获取单个房间"""
        return self.db.query(Room).filter(Room.id == room_id).first()

    def get_room_or_404(self, room_id: int) -> Room:
        room = self.get_room(room_id)
        if not room:
            raise NotFoundError("房间不存在")
        return room

    def get_room_by_number(self, room_number: str) -> Optional[Room]:
        """根据房间号获取房间"""
        return self.db.query(Room).filter(Room.room_number == room_number).first()

    def get_rooms(self, room_type: Optional[str] = None,
                  status: Optional[RoomStatus] = None) -> List[Room]:
        """获取房间列表"""
        query = self.db.query(Room)
        if room_type is not None:
            query = query.filter(Room.room_type == room_type)
        if status is not None:
            query = query.filter(Room.status == status)
        return query.order_by(Room.room_number).all()

    def get_status_summary(self) -> dict:
        """房态统计"""
        summary = {'total': 0}
        summary.update({s.value: 0 for s in RoomStatus})
        for room in self.get_rooms():
            summary['total'] += 1
            summary[room.status.value] += 1
        return summary

    # ============== 房间维护 ==============

    def create_room(self, data: RoomCreate) -> Room:
        """创建房间"""
        if self.get_room_by_number(data.room_number):
            raise ConflictError(f"房间号 '{data.room_number}' 已存在")

        room = Room(**data.model_dump(), status=RoomStatus.AVAILABLE)
        with transaction(self.db):
            self.db.add(room)
        self.db.refresh(room)
        logger.info(f"Room {room.room_number} created ({room.room_type}, {room.price_per_day}/day)")
        return room

    def update_room(self, room_id: int, data: RoomUpdate) -> Room:
        """更新房间资料（房号 / 房型 / 挂牌价），房态不可在此修改"""
        room = self.get_room_or_404(room_id)
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)

        if 'room_number' in update_data:
            existing = self.get_room_by_number(update_data['room_number'])
            if existing and existing.id != room_id:
                raise ConflictError(f"房间号 '{update_data['room_number']}' 已存在")

        # 有预订或在住占用时房型不可改，否则占用单据与房间房型不一致
        if ('room_type' in update_data and update_data['room_type'] != room.room_type
                and room.status not in (RoomStatus.AVAILABLE, RoomStatus.MAINTENANCE)):
            raise ConflictError(
                f"房间 {room.room_number} 当前状态为 {room.status.value}，不能修改房型",
                current_state=room.status.value
            )

        with transaction(self.db):
            for key, value in update_data.items():
                setattr(room, key, value)
        self.db.refresh(room)
        return room

    def set_maintenance(self, room_id: int, enabled: bool) -> Room:
        """
        维修切换：空闲 <-> 维修
        有预订或在住占用的房间不能进入维修
        """
        if enabled:
            expected, target = (RoomStatus.AVAILABLE,), RoomStatus.MAINTENANCE
        else:
            expected, target = (RoomStatus.MAINTENANCE,), RoomStatus.AVAILABLE

        with transaction(self.db):
            room = self.transition(room_id, expected, target)

        self._publish_event(room_status_event(room, expected[0], target, "维修切换"))
        return room

    # ============== 房态迁移（比较并交换） ==============

    def transition(self, room_id: int, expected: Sequence[RoomStatus],
                   target: RoomStatus) -> Room:
        """
        条件更新房态：仅当当前房态属于 expected 时改为 target

        在调用方事务内执行，不提交。两个并发请求争用同一房间时只有一个能
        命中该条件，另一个得到 ConflictError。
        """
        room = self.get_room_or_404(room_id)

        result = self.db.execute(
            update(Room)
            .where(Room.id == room_id, Room.status.in_(list(expected)))
            .values(status=target, updated_at=datetime.now())
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(room)

        if result.rowcount != 1:
            logger.warning(
                f"Room {room.room_number} transition to {target.value} rejected, "
                f"current status {room.status.value}"
            )
            raise ConflictError(
                f"房间 {room.room_number} 当前状态为 {room.status.value}，无法变更为 {target.value}",
                current_state=room.status.value
            )
        return room

    def reserve(self, room_id: int) -> Room:
        """空闲 -> 已预留"""
        return self.transition(room_id, (RoomStatus.AVAILABLE,), RoomStatus.RESERVED)

    def occupy(self, room_id: int,
               expected: Sequence[RoomStatus] = (RoomStatus.AVAILABLE,)) -> Room:
        """-> 入住中"""
        return self.transition(room_id, expected, RoomStatus.OCCUPIED)

    def release(self, room_id: int,
                expected: Sequence[RoomStatus] = (RoomStatus.RESERVED, RoomStatus.OCCUPIED)) -> Room:
        """已预留 / 入住中 -> 空闲"""
        return self.transition(room_id, expected, RoomStatus.AVAILABLE)

"""
事件处理器
订阅领域事件写入流水日志，供对账与报表排查
"""
from typing import Callable, List
import logging

from roomledger.models.events import EventType
from roomledger.services.event_bus import event_bus, Event, EventBus

logger = logging.getLogger(__name__)


class LedgerEventHandlers:
    """
    流水日志处理器

    支持注入 sink 以便测试收集事件，默认写入日志
    """

    def __init__(self, bus: EventBus = None, sink: Callable[[Event], None] = None):
        self._bus = bus or event_bus
        self._sink = sink
        self._registered = False

    def handle_event(self, event: Event) -> None:
        """记录单条领域事件"""
        if self._sink:
            self._sink(event)
            return
        if event.event_type == EventType.PAYMENT_RECEIVED.value:
            logger.info(
                f"[{event.source}] payment {event.data.get('amount')} "
                f"({event.data.get('method')}) on {event.data.get('claim_type')} "
                f"{event.data.get('claim_id')} -> {event.data.get('payment_status')}"
            )
        else:
            logger.info(f"[{event.source}] {event.event_type}: {event.data}")

    def register_handlers(self) -> None:
        """注册到事件总线（重复调用无副作用）"""
        if self._registered:
            return
        for event_type in EventType:
            self._bus.subscribe(event_type.value, self.handle_event)
        self._registered = True
        logger.info("Ledger event handlers registered")

    def unregister_handlers(self) -> None:
        """从事件总线注销"""
        if not self._registered:
            return
        for event_type in EventType:
            self._bus.unsubscribe(event_type.value, self.handle_event)
        self._registered = False

    @property
    def subscribed_types(self) -> List[str]:
        return [t.value for t in EventType] if self._registered else []


# 全局事件处理器实例
event_handlers = LedgerEventHandlers()


def register_event_handlers():
    """注册所有事件处理器（应用启动时调用）"""
    event_handlers.register_handlers()

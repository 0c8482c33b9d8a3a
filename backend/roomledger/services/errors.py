"""
业务异常分类

全部继承 ValueError，路由层统一按 status_code 转换为 HTTP 响应。
任何被拒绝的操作都必须在事务内回滚，不留下部分写入。
"""
from typing import Optional


class LedgerError(ValueError):
    """房态账本业务异常基类"""
    status_code = 400

    def __init__(self, message: str, current_state: Optional[str] = None):
        self.message = message
        self.current_state = current_state
        super().__init__(message)


class NotFoundError(LedgerError):
    """引用的房间 / 预订 / 入住记录不存在，不可重试"""
    status_code = 404


class InvalidStateError(LedgerError):
    """单据当前状态不允许该操作，消息中带出当前状态"""
    status_code = 409


class ConflictError(LedgerError):
    """房间在该时段不可用、房型不符或并发抢房失败，可重新查询后重试"""
    status_code = 409
    retryable = True


class ValidationError(LedgerError):
    """入参不合法（日期区间、金额等），在访问存储前拒绝"""
    status_code = 422

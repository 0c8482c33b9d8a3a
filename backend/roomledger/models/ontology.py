"""
本体对象定义 (Ontology Objects)
房间、预订、入住三类实体构成单一酒店的房态账本
房态与收款状态是由单据派生的缓存字段，只能经由状态机写入
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, Date,
    ForeignKey, Text, Enum as SQLEnum, Boolean, Numeric
)
from sqlalchemy.orm import relationship
from roomledger.database import Base


# ============== 枚举定义 ==============

class RoomStatus(str, Enum):
    """房间状态枚举"""
    AVAILABLE = "available"        # 空闲
    OCCUPIED = "occupied"          # 入住中
    RESERVED = "reserved"          # 已预留
    MAINTENANCE = "maintenance"    # 维修中


class ReservationStatus(str, Enum):
    """预订状态枚举"""
    PENDING = "pending"        # 待确认
    CONFIRMED = "confirmed"    # 已确认
    CHECKED_IN = "checked_in"  # 已转入住
    CANCELLED = "cancelled"    # 已取消


class CheckInStatus(str, Enum):
    """入住状态"""
    CHECKED_IN = "checked_in"    # 在住
    CHECKED_OUT = "checked_out"  # 已退房


class PaymentStatus(str, Enum):
    """收款状态"""
    UNPAID = "unpaid"      # 未付
    PARTIAL = "partial"    # 部分付款
    PAID = "paid"          # 已结清


class PaymentMethod(str, Enum):
    """支付方式"""
    CASH = "cash"                    # 现金
    CARD = "card"                    # 刷卡
    MOBILE_MONEY = "mobile_money"    # 移动支付
    BANK_TRANSFER = "bank_transfer"  # 银行转账
    FREE = "free"                    # 免单


class AttendantRole(str, Enum):
    """前台人员角色"""
    ADMIN = "admin"            # 管理员
    ATTENDANT = "attendant"    # 前台


# 占用房间的单据状态
ACTIVE_RESERVATION_STATUSES = (
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
    ReservationStatus.CHECKED_IN,
)
# 仍可修改（分房、收款、取消、转入住）的预订状态
OPEN_RESERVATION_STATUSES = (
    ReservationStatus.PENDING,
    ReservationStatus.CONFIRMED,
)


# ============== 本体对象定义 ==============

class Room(Base):
    """
    房间对象 - 房态账本的核心资源
    status 是当前占用单据的投影，由 RoomService.transition 维护
    """
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    room_number = Column(String(10), unique=True, nullable=False)  # 房间号
    room_type = Column(String(50), nullable=False, index=True)     # 房型
    price_per_day = Column(Numeric(10, 2), nullable=False)         # 挂牌日价
    status = Column(SQLEnum(RoomStatus), default=RoomStatus.AVAILABLE, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # 链接
    reservations = relationship("Reservation", back_populates="room")
    check_ins = relationship("CheckIn", back_populates="room")


class Attendant(Base):
    """
    前台人员对象
    账号由外部身份系统开通，本系统仅解析令牌并记录经办人
    """
    __tablename__ = "attendants"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)  # 登录账号
    name = Column(String(100), nullable=False)                  # 姓名
    email = Column(String(100))                                 # 邮箱
    role = Column(SQLEnum(AttendantRole), nullable=False, default=AttendantRole.ATTENDANT)
    is_active = Column(Boolean, default=True)                   # 是否启用
    created_at = Column(DateTime, default=datetime.now)


class Reservation(Base):
    """
    预订对象 - 到店前的预先占用
    日期区间为左闭右开 [check_in_date, check_out_date)
    """
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    client_name = Column(String(100), nullable=False)        # 客人姓名
    phone_number = Column(String(30), nullable=False)        # 手机号
    email = Column(String(100))                              # 邮箱
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)  # 可只指定房型
    room_type = Column(String(50), nullable=False)           # 房型
    check_in_date = Column(Date, nullable=False)             # 入住日期
    check_out_date = Column(Date, nullable=False)            # 离店日期
    number_of_days = Column(Integer, nullable=False)         # 间夜数
    price_per_day = Column(Numeric(10, 2), nullable=False)   # 日价
    total_amount = Column(Numeric(10, 2), nullable=False)    # 应收总额
    amount_paid = Column(Numeric(10, 2), default=0, nullable=False)   # 累计已付
    balance_due = Column(Numeric(10, 2), nullable=False)     # 待付余额
    payment_method = Column(SQLEnum(PaymentMethod), default=PaymentMethod.CASH, nullable=False)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False)
    status = Column(SQLEnum(ReservationStatus), default=ReservationStatus.PENDING, nullable=False)
    notes = Column(Text)                                     # 备注（只追加）
    attendant_id = Column(Integer, ForeignKey("attendants.id"))  # 经办人
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # 链接
    room = relationship("Room", back_populates="reservations")
    attendant = relationship("Attendant")
    check_in = relationship("CheckIn", back_populates="reservation", uselist=False)

    @property
    def check_in_id(self):
        """转入住后生成的入住记录 ID"""
        return self.check_in.id if self.check_in else None


class CheckIn(Base):
    """
    入住对象 - 在住及已离店的住宿记录
    可由散客直接入住产生，也可由预订转入住产生
    """
    __tablename__ = "check_ins"

    id = Column(Integer, primary_key=True, index=True)
    client_name = Column(String(100), nullable=False)        # 客人姓名
    phone_number = Column(String(30), nullable=False)        # 手机号
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False)
    room_number = Column(String(10), nullable=False)         # 房间号快照
    check_in_date = Column(DateTime, nullable=False)         # 入住时间
    check_out_date = Column(DateTime)                        # 离店时间（在住时为计划离店或空）
    days_stayed = Column(Integer)                            # 入住天数（退房时计算）
    room_price = Column(Numeric(10, 2), nullable=False)      # 入住时日价快照
    total_amount = Column(Numeric(10, 2))                    # 应收总额（退房时计算）
    amount_paid = Column(Numeric(10, 2), default=0, nullable=False)   # 累计已付
    payment_method = Column(SQLEnum(PaymentMethod), default=PaymentMethod.CASH, nullable=False)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False)
    status = Column(SQLEnum(CheckInStatus), default=CheckInStatus.CHECKED_IN, nullable=False)
    notes = Column(Text)                                     # 备注
    reservation_id = Column(Integer, ForeignKey("reservations.id"), unique=True, nullable=True)
    attendant_id = Column(Integer, ForeignKey("attendants.id"))  # 经办人
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # 链接
    room = relationship("Room", back_populates="check_ins")
    reservation = relationship("Reservation", back_populates="check_in")
    attendant = relationship("Attendant")

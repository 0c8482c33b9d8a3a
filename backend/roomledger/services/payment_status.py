"""
收款状态计算 - 纯函数
预订预付、入住收款、退房结算三个入口共用同一规则，POS 销售亦复用
"""
from decimal import Decimal
from typing import Union

from roomledger.models.ontology import PaymentMethod, PaymentStatus

Amount = Union[Decimal, int, float, str]


def to_decimal(value: Amount) -> Decimal:
    """金额统一转换为 Decimal（float 经 str 转换，避免二进制误差）"""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def derive_payment_status(amount_due: Amount, cumulative_paid: Amount,
                          payment_method: PaymentMethod) -> PaymentStatus:
    """
    根据应收、累计已付和支付方式推导收款状态

    - 免单：始终为已结清
    - 已付 >= 应收：已结清
    - 已付 > 0：部分付款
    - 否则：未付

    比较时不做任何舍入
    """
    if payment_method == PaymentMethod.FREE:
        return PaymentStatus.PAID

    due = to_decimal(amount_due)
    paid = to_decimal(cumulative_paid)

    if paid >= due:
        return PaymentStatus.PAID
    if paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID

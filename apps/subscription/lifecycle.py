# ==============================================================================
# 模块: subscription/lifecycle.py
# 功能: 订阅状态机（纯函数，不访问数据库）
# 状态: active / expired / cancelled
# 转换:
#   - renew(type)：任意状态 -> active，end = now + 1 个月（monthly）或 1 年（yearly）
#   - 注册：初始为 active，end = now + 1 年
#   - 没有自动过期任务；状态只会因续订或管理员编辑而改变
# 日期运算使用 dateutil.relativedelta：1 月 31 日 + 1 个月 = 2 月末，不会溢出到 3 月
# ==============================================================================

"""Subscription state machine for NewsDesk."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from dateutil.relativedelta import relativedelta

from core.exceptions import ValidationError
from core.models.base import utc_now
from core.models.user import SubscriptionStatus


class SubscriptionType(str, Enum):
    """Renewable subscription terms."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


# 每种订阅类型对应的时长
PERIODS: dict[SubscriptionType, relativedelta] = {
    SubscriptionType.MONTHLY: relativedelta(months=1),
    SubscriptionType.YEARLY: relativedelta(years=1),
}

# 注册时默认赠送的订阅时长
REGISTRATION_GRANT = relativedelta(years=1)


@dataclass(frozen=True)
class SubscriptionTerm:
    """Result of a state transition: the new live subscription fields."""

    subscription_type: Optional[SubscriptionType]
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime


def parse_subscription_type(value: object) -> SubscriptionType:
    """Parse a client-supplied subscription type.

    Raises:
        ValidationError: If ``value`` is not ``monthly`` or ``yearly``.
    """
    if isinstance(value, SubscriptionType):
        return value
    try:
        return SubscriptionType(value)
    except ValueError:
        raise ValidationError("Invalid subscription type")


def renew(subscription_type: object, now: Optional[datetime] = None) -> SubscriptionTerm:
    """Compute the term produced by renewing from any state.

    Args:
        subscription_type: ``monthly`` or ``yearly``.
        now: Renewal timestamp (defaults to the current UTC time).

    Returns:
        SubscriptionTerm: Active term starting at ``now``.

    Raises:
        ValidationError: If the type is not recognised.
    """
    kind = parse_subscription_type(subscription_type)
    start = now or utc_now()
    return SubscriptionTerm(
        subscription_type=kind,
        status=SubscriptionStatus.ACTIVE,
        start_date=start,
        end_date=start + PERIODS[kind],
    )


def registration_term(now: Optional[datetime] = None) -> SubscriptionTerm:
    """Compute the default subscription granted at registration."""
    start = now or utc_now()
    return SubscriptionTerm(
        subscription_type=None,
        status=SubscriptionStatus.ACTIVE,
        start_date=start,
        end_date=start + REGISTRATION_GRANT,
    )

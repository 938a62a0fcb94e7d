# ==============================================================================
# 模块: subscription/service.py
# 功能: 订阅续订与历史查询
# 架构角色: 订阅端路由 /subscriber/subscription* 调用。
# 设计决策:
#   - 续订同时写入用户表的当前订阅字段和一条 subscriptions 流水，
#     两者在同一个请求事务中提交，起止时间完全一致
#   - 续订返回新的 Principal 快照，由调用方决定如何刷新身份信息
#   - 类型校验在任何写入之前完成，非法类型不会修改 end_date
# ==============================================================================

"""Subscription renewal service for NewsDesk."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.subscription.lifecycle import SubscriptionType, renew
from apps.subscription.models import Subscription
from core.exceptions import NotFoundError
from core.models.user import User
from core.policy import Principal

logger = logging.getLogger(__name__)


def price_for(subscription_type: SubscriptionType) -> Decimal:
    """Return the configured price of a subscription term."""
    from settings import settings

    if subscription_type is SubscriptionType.MONTHLY:
        return settings.subscription_monthly_price
    return settings.subscription_yearly_price


class SubscriptionService:
    """Subscription renewal and ledger queries.

    订阅续订与流水查询服务。
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def renew(
        self,
        user_id: int,
        subscription_type: object,
        now: Optional[datetime] = None,
    ) -> tuple[Principal, Subscription]:
        """Renew a user's subscription.

        Args:
            user_id: Renewing user.
            subscription_type: ``monthly`` or ``yearly``.
            now: Renewal timestamp, current UTC time by default.

        Returns:
            tuple[Principal, Subscription]: The updated principal snapshot and
            the appended ledger entry.

        Raises:
            ValidationError: If the subscription type is invalid.
            NotFoundError: If the user does not exist.
        """
        # 先计算新期限：类型非法时在任何写入之前失败
        term = renew(subscription_type, now=now)

        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        user.subscription_status = term.status.value
        user.subscription_end_date = term.end_date

        entry = Subscription(
            user_id=user_id,
            subscription_type=term.subscription_type.value,
            start_date=term.start_date,
            end_date=term.end_date,
            amount=price_for(term.subscription_type),
            status=term.status.value,
        )
        self.session.add(entry)
        await self.session.flush()

        logger.info(
            f"User {user_id} renewed {term.subscription_type.value} subscription "
            f"until {term.end_date.isoformat()}"
        )
        return user.to_principal(), entry

    async def history(self, user_id: int) -> list[Subscription]:
        """List a user's ledger entries, newest first."""
        result = await self.session.execute(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        )
        return list(result.scalars().all())

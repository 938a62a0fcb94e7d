"""Pydantic schemas for subscriptions."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from apps.auth.schemas import PrincipalResponse


class RenewSubscriptionRequest(BaseModel):
    """Request schema for renewing a subscription.

    续订请求模型。类型在服务层校验，非法值返回 "Invalid subscription type"。
    """

    subscription_type: str


class SubscriptionEntryResponse(BaseModel):
    """One ledger entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    subscription_type: str
    start_date: datetime
    end_date: datetime
    amount: Decimal
    status: str
    created_at: datetime


class RenewSubscriptionResponse(BaseModel):
    """Updated principal snapshot and the appended ledger entry."""

    message: str
    user: PrincipalResponse
    subscription: SubscriptionEntryResponse


class SubscriptionInfoResponse(BaseModel):
    """Current subscription state plus ledger history."""

    subscription_status: str
    subscription_end_date: datetime | None = None
    history: list[SubscriptionEntryResponse]

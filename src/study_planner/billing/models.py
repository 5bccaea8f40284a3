"""Subscription and webhook bookkeeping records."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class SubscriptionStatus(str, Enum):
	PENDING = "pending"
	ACTIVE = "active"
	CANCELLED = "cancelled"
	EXPIRED = "expired"


def _now() -> str:
	return datetime.now(timezone.utc).isoformat()


class Subscription(BaseModel):
	"""A user's subscription as reported by the payment provider."""
	id: str = ""
	user_id: str
	status: SubscriptionStatus = SubscriptionStatus.PENDING
	transaction_id: Optional[str] = Field(default=None, description="Provider transaction id")
	start_date: Optional[str] = None
	end_date: Optional[str] = None
	created_at: str = Field(default_factory=_now)


class WebhookLog(BaseModel):
	"""Raw webhook delivery, kept until processed."""
	id: str = ""
	event_type: str
	payload: dict[str, Any] = Field(default_factory=dict)
	processed: bool = False
	error_message: Optional[str] = None
	created_at: str = Field(default_factory=_now)

"""Billing module - Subscription status and webhook log bookkeeping."""

from .models import Subscription, SubscriptionStatus, WebhookLog
from .store import BillingStore

__all__ = [
	"BillingStore",
	"Subscription",
	"SubscriptionStatus",
	"WebhookLog",
]

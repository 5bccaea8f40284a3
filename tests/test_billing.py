"""Tests for subscription and webhook bookkeeping."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from study_planner.billing import BillingStore, Subscription, SubscriptionStatus, WebhookLog


def _iso(delta: timedelta) -> str:
	return (datetime.now(timezone.utc) + delta).isoformat()


@pytest.fixture
def store(tmp_path: Path) -> BillingStore:
	return BillingStore(str(tmp_path / "billing.db"))


class TestSubscriptions:
	@pytest.mark.asyncio
	async def test_create_and_fetch_active(self, store: BillingStore):
		await store.init()
		created = await store.create_subscription(Subscription(
			user_id="user-1",
			status=SubscriptionStatus.ACTIVE,
			transaction_id="HP123",
		))

		assert created.id
		active = await store.get_active_subscription("user-1")
		assert active.transaction_id == "HP123"
		assert await store.get_active_subscription("user-2") is None

	@pytest.mark.asyncio
	async def test_newest_active_wins(self, store: BillingStore):
		await store.init()
		await store.create_subscription(Subscription(
			user_id="u", status=SubscriptionStatus.ACTIVE, transaction_id="old",
			created_at="2024-01-01T00:00:00+00:00",
		))
		await store.create_subscription(Subscription(
			user_id="u", status=SubscriptionStatus.ACTIVE, transaction_id="new",
			created_at="2024-06-01T00:00:00+00:00",
		))
		assert (await store.get_active_subscription("u")).transaction_id == "new"

	@pytest.mark.asyncio
	async def test_duplicate_transaction_returns_none(self, store: BillingStore):
		await store.init()
		await store.create_subscription(Subscription(user_id="u", transaction_id="HP1"))
		assert await store.create_subscription(Subscription(user_id="u", transaction_id="HP1")) is None

	@pytest.mark.asyncio
	async def test_update_status(self, store: BillingStore):
		await store.init()
		await store.create_subscription(Subscription(user_id="u", transaction_id="HP1"))

		end = _iso(timedelta(days=30))
		assert await store.update_status("HP1", SubscriptionStatus.ACTIVE, end_date=end) is True

		sub = await store.get_by_transaction_id("HP1")
		assert sub.status == SubscriptionStatus.ACTIVE
		assert sub.end_date == end
		assert await store.update_status("missing", SubscriptionStatus.CANCELLED) is False

	@pytest.mark.asyncio
	async def test_expire_old_subscriptions(self, store: BillingStore):
		await store.init()
		await store.create_subscription(Subscription(
			user_id="u1", status=SubscriptionStatus.ACTIVE, transaction_id="past",
			end_date=_iso(timedelta(days=-1)),
		))
		await store.create_subscription(Subscription(
			user_id="u2", status=SubscriptionStatus.ACTIVE, transaction_id="future",
			end_date=_iso(timedelta(days=1)),
		))

		assert await store.expire_old_subscriptions() == 1

		assert (await store.get_by_transaction_id("past")).status == SubscriptionStatus.EXPIRED
		assert (await store.get_by_transaction_id("future")).status == SubscriptionStatus.ACTIVE
		assert await store.get_expired_subscriptions() == []

	@pytest.mark.asyncio
	async def test_uninitialized_database_degrades(self, store: BillingStore):
		assert await store.get_active_subscription("u") is None
		assert await store.get_expired_subscriptions() == []
		assert await store.update_status("HP1", SubscriptionStatus.EXPIRED) is False


class TestWebhookLogs:
	@pytest.mark.asyncio
	async def test_create_and_mark_processed(self, store: BillingStore):
		await store.init()
		log = await store.create_webhook_log(WebhookLog(
			event_type="PURCHASE_APPROVED",
			payload={"transaction": "HP1", "status": "approved"},
		))

		assert await store.mark_webhook_processed(log.id) is True

		stored = await store.get_webhook_log(log.id)
		assert stored.processed is True
		assert stored.payload["transaction"] == "HP1"
		assert stored.error_message is None

	@pytest.mark.asyncio
	async def test_mark_processed_with_error(self, store: BillingStore):
		await store.init()
		log = await store.create_webhook_log(WebhookLog(event_type="PURCHASE_REFUNDED"))

		await store.mark_webhook_processed(log.id, error_message="unknown transaction")

		assert (await store.get_webhook_log(log.id)).error_message == "unknown transaction"

	@pytest.mark.asyncio
	async def test_unknown_log(self, store: BillingStore):
		await store.init()
		assert await store.mark_webhook_processed("nope") is False
		assert await store.get_webhook_log("nope") is None


@pytest.mark.asyncio
async def test_malformed_end_date_is_skipped(store: BillingStore):
	await store.init()
	await store.create_subscription(Subscription(
		user_id="u1", status=SubscriptionStatus.ACTIVE, transaction_id="bad", end_date="next month",
	))
	await store.create_subscription(Subscription(
		user_id="u2", status=SubscriptionStatus.ACTIVE, transaction_id="past",
		end_date=_iso(timedelta(days=-1)),
	))

	expired = await store.get_expired_subscriptions()

	assert [s.transaction_id for s in expired] == ["past"]
	assert await store.expire_old_subscriptions() == 1
	assert (await store.get_by_transaction_id("bad")).status == SubscriptionStatus.ACTIVE

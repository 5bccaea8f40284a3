"""SQLite database for subscription and webhook bookkeeping."""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiosqlite

from ..plans.models import parse_timestamp
from .models import Subscription, SubscriptionStatus, WebhookLog

logger = logging.getLogger(__name__)


def _subscription_from_row(row: aiosqlite.Row) -> Subscription:
	return Subscription(
		id=row["id"],
		user_id=row["user_id"],
		status=row["status"],
		transaction_id=row["transaction_id"],
		start_date=row["start_date"],
		end_date=row["end_date"],
		created_at=row["created_at"],
	)


def _webhook_log_from_row(row: aiosqlite.Row) -> WebhookLog:
	return WebhookLog(
		id=row["id"],
		event_type=row["event_type"],
		payload=json.loads(row["payload"]),
		processed=bool(row["processed"]),
		error_message=row["error_message"],
		created_at=row["created_at"],
	)


class BillingStore:
	"""
	Subscriptions and webhook logs.

	Lookups return None or [] and updates return False when the database
	errors; failures are logged rather than raised.
	"""

	def __init__(self, db_path: str = ""):
		if not db_path:
			from ..config import get_config
			db_path = str(get_config().billing_db_path)
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)

	async def init(self):
		"""Initialize database schema."""
		async with aiosqlite.connect(self.db_path) as db:
			await db.executescript("""
				CREATE TABLE IF NOT EXISTS subscriptions (
					id TEXT PRIMARY KEY,
					user_id TEXT NOT NULL,
					status TEXT NOT NULL DEFAULT 'pending',
					transaction_id TEXT UNIQUE,
					start_date TEXT,
					end_date TEXT,
					created_at TEXT NOT NULL
				);

				CREATE TABLE IF NOT EXISTS webhook_logs (
					id TEXT PRIMARY KEY,
					event_type TEXT NOT NULL,
					payload TEXT NOT NULL,
					processed INTEGER DEFAULT 0,
					error_message TEXT,
					created_at TEXT NOT NULL
				);

				CREATE INDEX IF NOT EXISTS idx_subscriptions_user ON subscriptions(user_id, status);
			""")
			await db.commit()

	# --- Subscriptions ---

	async def create_subscription(self, subscription: Subscription) -> Optional[Subscription]:
		"""Insert a subscription. Returns None if the insert fails."""
		subscription.id = subscription.id or str(uuid.uuid4())
		try:
			async with aiosqlite.connect(self.db_path) as db:
				await db.execute(
					"""
					INSERT INTO subscriptions (id, user_id, status, transaction_id,
						start_date, end_date, created_at)
					VALUES (?, ?, ?, ?, ?, ?, ?)
					""",
					(
						subscription.id,
						subscription.user_id,
						subscription.status.value,
						subscription.transaction_id,
						subscription.start_date,
						subscription.end_date,
						subscription.created_at,
					),
				)
				await db.commit()
		except aiosqlite.Error as e:
			logger.error(f"Failed to create subscription: {e}")
			return None
		return subscription

	async def get_active_subscription(self, user_id: str) -> Optional[Subscription]:
		"""Newest active subscription for a user."""
		try:
			async with aiosqlite.connect(self.db_path) as db:
				db.row_factory = aiosqlite.Row
				async with db.execute(
					"""
					SELECT * FROM subscriptions
					WHERE user_id = ? AND status = ?
					ORDER BY created_at DESC LIMIT 1
					""",
					(user_id, SubscriptionStatus.ACTIVE.value),
				) as cursor:
					row = await cursor.fetchone()
		except aiosqlite.Error as e:
			logger.error(f"Failed to load subscription for user {user_id}: {e}")
			return None
		return _subscription_from_row(row) if row else None

	async def get_by_transaction_id(self, transaction_id: str) -> Optional[Subscription]:
		try:
			async with aiosqlite.connect(self.db_path) as db:
				db.row_factory = aiosqlite.Row
				async with db.execute(
					"SELECT * FROM subscriptions WHERE transaction_id = ?", (transaction_id,)
				) as cursor:
					row = await cursor.fetchone()
		except aiosqlite.Error as e:
			logger.error(f"Failed to load subscription {transaction_id}: {e}")
			return None
		return _subscription_from_row(row) if row else None

	async def update_status(
		self,
		transaction_id: str,
		status: SubscriptionStatus,
		end_date: Optional[str] = None,
	) -> bool:
		"""Set a subscription's status, and its end date when given."""
		updates = {"status": SubscriptionStatus(status).value}
		if end_date:
			updates["end_date"] = end_date
		set_clause = ", ".join(f"{k} = ?" for k in updates.keys())

		try:
			async with aiosqlite.connect(self.db_path) as db:
				cursor = await db.execute(
					f"UPDATE subscriptions SET {set_clause} WHERE transaction_id = ?",
					(*updates.values(), transaction_id),
				)
				await db.commit()
				return cursor.rowcount > 0
		except aiosqlite.Error as e:
			logger.error(f"Failed to update subscription {transaction_id}: {e}")
			return False

	async def get_expired_subscriptions(self) -> list[Subscription]:
		"""Active subscriptions whose end date has passed."""
		try:
			async with aiosqlite.connect(self.db_path) as db:
				db.row_factory = aiosqlite.Row
				async with db.execute(
					"SELECT * FROM subscriptions WHERE status = ? AND end_date IS NOT NULL",
					(SubscriptionStatus.ACTIVE.value,),
				) as cursor:
					rows = await cursor.fetchall()
		except aiosqlite.Error as e:
			logger.error(f"Failed to load expired subscriptions: {e}")
			return []

		now = datetime.now(timezone.utc)
		expired = []
		for row in rows:
			subscription = _subscription_from_row(row)
			try:
				end = parse_timestamp(subscription.end_date)
			except ValueError:
				logger.warning(
					f"Skipping subscription {subscription.id} with malformed end date "
					f"{subscription.end_date!r}"
				)
				continue
			if end < now:
				expired.append(subscription)
		return expired

	async def expire_old_subscriptions(self) -> int:
		"""Mark every overdue active subscription as expired. Returns how many were found."""
		expired = await self.get_expired_subscriptions()
		for subscription in expired:
			if subscription.transaction_id:
				await self.update_status(subscription.transaction_id, SubscriptionStatus.EXPIRED)
		if expired:
			logger.info(f"Expired {len(expired)} subscriptions")
		return len(expired)

	# --- Webhook logs ---

	async def create_webhook_log(self, log: WebhookLog) -> Optional[WebhookLog]:
		log.id = log.id or str(uuid.uuid4())
		try:
			async with aiosqlite.connect(self.db_path) as db:
				await db.execute(
					"""
					INSERT INTO webhook_logs (id, event_type, payload, processed, error_message, created_at)
					VALUES (?, ?, ?, ?, ?, ?)
					""",
					(
						log.id,
						log.event_type,
						json.dumps(log.payload),
						int(log.processed),
						log.error_message,
						log.created_at,
					),
				)
				await db.commit()
		except aiosqlite.Error as e:
			logger.error(f"Failed to create webhook log: {e}")
			return None
		return log

	async def get_webhook_log(self, log_id: str) -> Optional[WebhookLog]:
		try:
			async with aiosqlite.connect(self.db_path) as db:
				db.row_factory = aiosqlite.Row
				async with db.execute(
					"SELECT * FROM webhook_logs WHERE id = ?", (log_id,)
				) as cursor:
					row = await cursor.fetchone()
		except aiosqlite.Error as e:
			logger.error(f"Failed to load webhook log {log_id}: {e}")
			return None
		return _webhook_log_from_row(row) if row else None

	async def mark_webhook_processed(self, log_id: str, error_message: Optional[str] = None) -> bool:
		updates: dict = {"processed": 1}
		if error_message:
			updates["error_message"] = error_message
		set_clause = ", ".join(f"{k} = ?" for k in updates.keys())

		try:
			async with aiosqlite.connect(self.db_path) as db:
				cursor = await db.execute(
					f"UPDATE webhook_logs SET {set_clause} WHERE id = ?",
					(*updates.values(), log_id),
				)
				await db.commit()
				return cursor.rowcount > 0
		except aiosqlite.Error as e:
			logger.error(f"Failed to mark webhook log {log_id} processed: {e}")
			return False

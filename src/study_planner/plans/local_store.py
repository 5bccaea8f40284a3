"""
Local Store - synchronous, durable key/value persistence for plans and activity.

Values are JSON arrays kept under fixed keys in a small SQLite table, so
reads and writes complete before the caller continues. Malformed JSON is
treated as an empty store; individual records that fail validation are
skipped on read and preserved on write.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from pydantic import ValidationError

from .models import ActivityEntry, StudyPlan

logger = logging.getLogger(__name__)

PLANS_KEY = "study_plans"
ACTIVITY_KEY = "activity_log"


class KeyValueStore:
	"""SQLite-backed string key/value storage."""

	def __init__(self, db_path: str):
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self._ensure_table()

	def _ensure_table(self) -> None:
		with self._connect() as conn:
			conn.execute("""
				CREATE TABLE IF NOT EXISTS kv (
					key TEXT PRIMARY KEY,
					value TEXT NOT NULL
				)
			""")

	@contextmanager
	def _connect(self) -> Iterator[sqlite3.Connection]:
		conn = sqlite3.connect(str(self.db_path))
		try:
			with conn:
				yield conn
		finally:
			conn.close()

	def get_item(self, key: str) -> Optional[str]:
		with self._connect() as conn:
			row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
		return row[0] if row else None

	def set_item(self, key: str, value: str) -> None:
		with self._connect() as conn:
			conn.execute(
				"INSERT INTO kv (key, value) VALUES (?, ?) "
				"ON CONFLICT(key) DO UPDATE SET value = excluded.value",
				(key, value),
			)

	def remove_item(self, key: str) -> None:
		with self._connect() as conn:
			conn.execute("DELETE FROM kv WHERE key = ?", (key,))


class LocalStore:
	"""
	Plan collection and activity log on top of a KeyValueStore.

	Usage:
		local = LocalStore(KeyValueStore("data/local_store.db"))
		plans = local.read_plans()
		local.write_plans(plans + [new_plan])
	"""

	def __init__(self, kv: KeyValueStore):
		self.kv = kv

	@classmethod
	def open(cls, db_path: str) -> "LocalStore":
		return cls(KeyValueStore(db_path))

	def _read_array(self, key: str) -> Optional[list]:
		raw = self.kv.get_item(key)
		if raw is None:
			return None
		try:
			data = json.loads(raw)
		except json.JSONDecodeError as e:
			logger.warning(f"Corrupt JSON under '{key}', treating as empty: {e}")
			return None
		if not isinstance(data, list):
			logger.warning(f"Value under '{key}' is not an array, treating as empty")
			return None
		return data

	def read_raw_plans(self) -> list:
		"""Stored plan records as plain JSON values, without validation."""
		return self._read_array(PLANS_KEY) or []

	def _split_plans(self, data: list) -> tuple[list[StudyPlan], list]:
		valid, invalid = [], []
		for item in data:
			try:
				valid.append(StudyPlan.model_validate(item))
			except ValidationError as e:
				invalid.append((item, e))
		return valid, invalid

	def read_plans(self) -> list[StudyPlan]:
		"""
		All stored plans that pass validation.

		Records that fail validation are logged and skipped; they stay in
		storage untouched (see ``write_plans``).
		"""
		plans, invalid = self._split_plans(self.read_raw_plans())
		for item, error in invalid:
			record_id = item.get("id") if isinstance(item, dict) else None
			logger.warning(
				f"Skipping stored plan {record_id!r} that failed validation "
				f"({error.error_count()} errors)"
			)
		return plans

	def write_plans(self, plans: list[StudyPlan]) -> None:
		"""
		Replace the stored plans with ``plans``.

		Stored records that fail validation are never visible to callers, so
		they are carried over unchanged unless ``plans`` holds a plan with
		the same id.
		"""
		ids = {plan.id for plan in plans}
		_, invalid = self._split_plans(self.read_raw_plans())
		kept = [
			item for item, _ in invalid
			if not (isinstance(item, dict) and item.get("id") in ids)
		]
		payload = [plan.to_wire() for plan in plans] + kept
		self.kv.set_item(PLANS_KEY, json.dumps(payload))

	def stored_ids(self) -> set:
		"""Ids of every stored record, valid or not."""
		return {item.get("id") for item in self.read_raw_plans() if isinstance(item, dict)}

	def delete_plan(self, plan_id: str) -> bool:
		"""
		Remove exactly one plan by id.

		Fails closed: a missing, corrupt or non-array partition, or an unknown
		id, returns False without touching the stored bytes.
		"""
		data = self._read_array(PLANS_KEY)
		if data is None:
			logger.error("No readable plan data in local store")
			return False

		index = next(
			(i for i, item in enumerate(data) if isinstance(item, dict) and item.get("id") == plan_id),
			None,
		)
		if index is None:
			logger.error(f"Plan not found in local store: {plan_id}")
			return False

		removed = data.pop(index)
		self.kv.set_item(PLANS_KEY, json.dumps(data))
		logger.info(f"Deleted plan {plan_id} ('{removed.get('title', '')}') from local store")
		return True

	def read_activity(self) -> list[ActivityEntry]:
		entries = []
		for item in self._read_array(ACTIVITY_KEY) or []:
			try:
				entries.append(ActivityEntry.model_validate(item))
			except ValidationError as e:
				logger.warning(f"Dropping invalid activity entry: {e.error_count()} errors")
		return entries

	def write_activity(self, entries: list[ActivityEntry]) -> None:
		payload = [entry.model_dump(mode="json", by_alias=True) for entry in entries]
		self.kv.set_item(ACTIVITY_KEY, json.dumps(payload))

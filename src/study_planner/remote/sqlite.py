"""
SQLite-backed remote mirror.

Stands in for a hosted database in single-machine deployments and tests.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import aiosqlite
from pydantic import ValidationError

from ..plans.models import StudyPlan
from .base import RemoteStore

logger = logging.getLogger(__name__)


class SqliteRemoteStore(RemoteStore):
	"""
	Plan mirror kept in its own SQLite database.

	Usage:
		remote = SqliteRemoteStore("data/remote.db")
		await remote.initialize_database()
		await remote.save(plan)
		plans = await remote.load_all()
	"""

	name = "sqlite"

	def __init__(self, db_path: str):
		self.db_path = Path(db_path)
		self.db_path.parent.mkdir(parents=True, exist_ok=True)
		self._db: Optional[aiosqlite.Connection] = None

	async def initialize_database(self) -> None:
		"""Open the connection and create the schema."""
		if self._db is None:
			self._db = await aiosqlite.connect(str(self.db_path))
			self._db.row_factory = aiosqlite.Row

		await self._db.execute("""
			CREATE TABLE IF NOT EXISTS study_plans (
				id TEXT PRIMARY KEY,
				data TEXT NOT NULL,
				created_at TEXT NOT NULL,
				updated_at TEXT NOT NULL
			)
		""")

		await self._db.execute("""
			CREATE INDEX IF NOT EXISTS idx_study_plans_created ON study_plans(created_at)
		""")

		await self._db.commit()
		logger.info(f"Remote plan store initialized: {self.db_path}")

	async def close(self) -> None:
		if self._db:
			await self._db.close()
			self._db = None

	async def _conn(self) -> aiosqlite.Connection:
		if not self._db:
			await self.initialize_database()
		return self._db

	async def save(self, plan: StudyPlan) -> None:
		db = await self._conn()
		await db.execute(
			"""
			INSERT INTO study_plans (id, data, created_at, updated_at)
			VALUES (?, ?, ?, ?)
			ON CONFLICT(id) DO UPDATE SET
				data = excluded.data,
				updated_at = excluded.updated_at
			""",
			(plan.id, json.dumps(plan.to_wire()), plan.created_at, plan.updated_at),
		)
		await db.commit()
		logger.info(f"Saved plan {plan.id} to remote")

	async def update(self, plan_id: str, plan: StudyPlan) -> None:
		db = await self._conn()
		await db.execute(
			"UPDATE study_plans SET data = ?, updated_at = ? WHERE id = ?",
			(json.dumps(plan.to_wire()), plan.updated_at, plan_id),
		)
		await db.commit()
		logger.info(f"Updated plan {plan_id} in remote")

	async def delete(self, plan_id: str) -> None:
		db = await self._conn()
		await db.execute("DELETE FROM study_plans WHERE id = ?", (plan_id,))
		await db.commit()
		logger.info(f"Deleted plan {plan_id} from remote")

	async def load_all(self) -> list[StudyPlan]:
		db = await self._conn()
		async with db.execute(
			"SELECT id, data FROM study_plans ORDER BY created_at DESC"
		) as cursor:
			rows = await cursor.fetchall()

		plans = []
		for row in rows:
			try:
				plans.append(StudyPlan.model_validate_json(row["data"]))
			except ValidationError as e:
				logger.warning(f"Skipping remote plan {row['id']}: {e.error_count()} validation errors")
		return plans

	def is_transient_error(self, exc: BaseException) -> bool:
		# "database is locked" and friends surface as OperationalError
		return isinstance(exc, aiosqlite.OperationalError) or super().is_transient_error(exc)

"""
Hybrid Storage - local-first plan persistence with a best-effort remote mirror.

Every mutation runs in two phases:
1. Local store write (synchronous). Its outcome is the operation's result.
2. Remote store write (asynchronous). Failures are logged, never raised.

Async variants await phase 2; ``*_sync`` variants schedule it on the running
event loop and return right after phase 1.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Awaitable, Callable, Optional, TypeVar, Union

from .config import Config, get_config
from .plans.activity import (
	ActivityLog,
	completed_task_description,
	created_description,
	updated_description,
)
from .plans.local_store import LocalStore
from .plans.models import (
	ActivityEntry,
	ActivityType,
	PlanDraft,
	PlanStats,
	StudyPlan,
	find_plan,
	generate_id,
	parse_timestamp,
	plan_fields,
	utc_now_iso,
)
from .plans.stats import compute_stats
from .remote import RemoteStore, SyncReport, create_remote_store

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fields an update may never overwrite
_PROTECTED_FIELDS = ("id", "created_at", "updated_at")


class PlanNotFoundError(Exception):
	"""Raised when a plan is not found."""
	pass


def _clean_id(plan_id: object) -> Optional[str]:
	if not isinstance(plan_id, str) or not plan_id.strip():
		return None
	return plan_id.strip()


def _next_timestamp(previous: str) -> str:
	"""Now, nudged forward if needed so it is strictly after ``previous``."""
	now = utc_now_iso()
	last = parse_timestamp(previous)
	if parse_timestamp(now) <= last:
		return (last + timedelta(microseconds=1)).isoformat()
	return now


class HybridStorage:
	"""
	Orchestrates dual writes to the local store and the remote mirror.

	Usage:
		storage = create_storage()
		await storage.initialize()

		plan_id = await storage.save_plan({"title": "TJ-CE Analista", ...})
		storage.update_completed_tasks(plan_id, ["day1-task1"])
		stats = storage.get_stats()
	"""

	def __init__(
		self,
		local: LocalStore,
		remote: RemoteStore,
		activity: Optional[ActivityLog] = None,
	):
		self.local = local
		self.remote = remote
		self.activity = activity or ActivityLog(local)
		self._pending: set[asyncio.Task] = set()

	# --- Lifecycle ---

	async def initialize(self) -> None:
		"""Prepare the remote mirror and pull its plans. Falls back to local-only."""
		logger.info("Initializing hybrid storage")
		report = await self._remote_call("initialize", self._initialize_remote)
		if report is None:
			logger.warning("Hybrid storage running on local store only")
		else:
			logger.info("Hybrid storage initialized")

	async def _initialize_remote(self) -> SyncReport:
		await self.remote.initialize_database()
		return await self.remote.sync(self.local)

	async def drain(self) -> None:
		"""Wait for every scheduled background remote call to finish."""
		while self._pending:
			await asyncio.gather(*list(self._pending), return_exceptions=True)

	async def close(self) -> None:
		await self.drain()
		await self.remote.close()

	# --- Remote phase ---

	async def _remote_call(
		self,
		operation_name: str,
		operation: Callable[[], Awaitable[T]],
		fallback: Optional[Callable[[], T]] = None,
	) -> Optional[T]:
		"""Run a remote operation, routing any failure to ``fallback`` (or None)."""
		if not self.remote.is_configured:
			logger.info(f"{operation_name}: remote store not configured, using fallback")
			return fallback() if fallback else None

		try:
			return await operation()
		except Exception as e:
			if self.remote.is_transient_error(e):
				logger.warning(f"{operation_name}: {self.remote.name} unreachable, using fallback: {e}")
			else:
				logger.error(f"{operation_name}: {self.remote.name} failed", exc_info=e)
			return fallback() if fallback else None

	def _schedule(self, operation_name: str, operation: Callable[[], Awaitable]) -> Optional[asyncio.Task]:
		"""Fire a remote operation without waiting for it."""
		if not self.remote.is_configured:
			logger.debug(f"{operation_name}: remote store not configured, skipping")
			return None

		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			logger.warning(f"{operation_name}: no running event loop, remote write deferred to next sync")
			return None

		task = loop.create_task(self._remote_call(operation_name, operation))
		self._pending.add(task)
		task.add_done_callback(self._pending.discard)
		return task

	# --- Local phase ---

	def _create_local(self, data: Union[PlanDraft, dict]) -> StudyPlan:
		if isinstance(data, PlanDraft):
			content = data.model_dump(include=set(PlanDraft.model_fields))
		else:
			content = PlanDraft.model_validate(data).model_dump()

		plans = self.local.read_plans()
		existing_ids = self.local.stored_ids()
		plan_id = generate_id("plan")
		while plan_id in existing_ids:
			plan_id = generate_id("plan")

		now = utc_now_iso()
		plan = StudyPlan(**content, id=plan_id, created_at=now, updated_at=now)

		plans.append(plan)
		self.local.write_plans(plans)
		logger.info(f"Saved plan {plan.id} to local store")

		self.activity.log(ActivityType.CREATED, plan.title, created_description(plan.title))
		return plan

	def _update_local(self, plan_id: str, updates: dict) -> StudyPlan:
		plans = self.local.read_plans()
		index = next((i for i, plan in enumerate(plans) if plan.id == plan_id), None)
		if index is None:
			raise PlanNotFoundError(f"Plan not found: {plan_id}")

		current = plans[index]
		fields = plan_fields(updates)
		for name in _PROTECTED_FIELDS:
			fields.pop(name, None)

		data = current.model_dump()
		data.update(fields)
		data["updated_at"] = _next_timestamp(current.updated_at)
		updated = StudyPlan.model_validate(data)

		plans[index] = updated
		self.local.write_plans(plans)
		logger.info(f"Updated plan {plan_id} in local store")

		if "completed_tasks" in fields and len(updated.completed_tasks) > len(current.completed_tasks):
			self.activity.log(
				ActivityType.COMPLETED_TASK,
				updated.title,
				completed_task_description(updated.title),
			)
		self.activity.log(ActivityType.UPDATED, updated.title, updated_description(updated.title))
		return updated

	def _try_update_local(self, plan_id: str, updates: dict) -> Optional[StudyPlan]:
		try:
			return self._update_local(plan_id, updates)
		except PlanNotFoundError as e:
			logger.warning(str(e))
		except Exception:
			logger.exception(f"Failed to update plan {plan_id}")
		return None

	def _try_delete_local(self, plan_id: object) -> Optional[str]:
		clean_id = _clean_id(plan_id)
		if clean_id is None:
			logger.error(f"Invalid plan id: {plan_id!r}")
			return None

		try:
			deleted = self.local.delete_plan(clean_id)
		except Exception:
			logger.exception(f"Failed to delete plan {clean_id}")
			return None
		return clean_id if deleted else None

	# --- Mutations ---

	async def save_plan(self, data: Union[PlanDraft, dict]) -> Optional[str]:
		"""
		Create a plan and mirror it remotely.

		Args:
			data: Plan content without id or timestamps

		Returns:
			The new plan id, or None if the local write failed
		"""
		try:
			plan = self._create_local(data)
		except Exception:
			logger.exception("Failed to save plan")
			return None

		await self._remote_call("save_plan", lambda: self.remote.save(plan))
		return plan.id

	def save_plan_sync(self, data: Union[PlanDraft, dict]) -> Optional[str]:
		"""Create a plan locally and mirror it in the background."""
		try:
			plan = self._create_local(data)
		except Exception:
			logger.exception("Failed to save plan")
			return None

		self._schedule("save_plan", lambda: self.remote.save(plan))
		return plan.id

	async def update_plan(self, plan_id: str, updates: dict) -> bool:
		"""
		Merge ``updates`` into a plan.

		Args:
			plan_id: Plan to update
			updates: Fields to change, by camelCase alias or field name

		Returns:
			False if the plan does not exist or the update is invalid
		"""
		plan = self._try_update_local(plan_id, updates)
		if plan is None:
			return False

		await self._remote_call("update_plan", lambda: self.remote.update(plan.id, plan))
		return True

	def update_plan_sync(self, plan_id: str, updates: dict) -> bool:
		plan = self._try_update_local(plan_id, updates)
		if plan is None:
			return False

		self._schedule("update_plan", lambda: self.remote.update(plan.id, plan))
		return True

	async def delete_plan(self, plan_id: str) -> bool:
		"""Delete a plan locally, then from the remote mirror. Local result decides."""
		clean_id = self._try_delete_local(plan_id)
		if clean_id is None:
			return False

		await self._remote_call("delete_plan", lambda: self.remote.delete(clean_id))
		return True

	def delete_plan_sync(self, plan_id: str) -> bool:
		clean_id = self._try_delete_local(plan_id)
		if clean_id is None:
			return False

		self._schedule("delete_plan", lambda: self.remote.delete(clean_id))
		return True

	def update_completed_tasks(self, plan_id: str, task_ids: list[str]) -> bool:
		"""Replace a plan's completed task ids, then re-serialize the plan list."""
		if not _clean_id(plan_id) or not isinstance(task_ids, (list, tuple)):
			logger.error("Invalid arguments for update_completed_tasks")
			return False

		success = self.update_plan_sync(plan_id, {"completed_tasks": list(task_ids)})
		if not success:
			return False

		try:
			plans = self.local.read_plans()
			if plans:
				self.local.write_plans(plans)
		except Exception:
			logger.exception("Failed to re-serialize plan list")
		return True

	# --- Reads ---

	def get_all_plans(self) -> list[StudyPlan]:
		return self.local.read_plans()

	def get_plan_by_id(self, plan_id: str) -> Optional[StudyPlan]:
		return find_plan(self.get_all_plans(), plan_id)

	async def load_from_remote(self) -> list[StudyPlan]:
		"""
		Fetch the remote plan set and overwrite the local store with it.

		An empty remote set leaves the local store untouched. Any failure
		returns the current local plans.
		"""
		async def fetch() -> list[StudyPlan]:
			plans = await self.remote.load_all()
			if plans:
				self.local.write_plans(plans)
				logger.info(f"Loaded {len(plans)} plans from {self.remote.name}")
			return plans

		return await self._remote_call("load_from_remote", fetch, fallback=self.local.read_plans)

	async def sync_data(self) -> Optional[SyncReport]:
		"""Two-way reconciliation with the remote mirror. Returns None on failure."""
		return await self._remote_call("sync_data", lambda: self.remote.sync(self.local))

	def verify_data_integrity(self) -> bool:
		"""Check ids are unique and every plan has id, title and createdAt. Read-only."""
		try:
			records = self.local.read_raw_plans()
			logger.info(
				f"Verifying integrity: {len(records)} plans, "
				f"{len(self.activity.entries())} activity entries"
			)

			ids = [record.get("id") if isinstance(record, dict) else None for record in records]
			if len(ids) != len(set(ids)):
				logger.error("Duplicate plan ids found")
				return False

			for record in records:
				if not isinstance(record, dict) or not all(
					record.get(key) for key in ("id", "title", "createdAt")
				):
					logger.error(f"Plan with invalid structure: {record!r:.80}")
					return False

			return True
		except Exception:
			logger.exception("Integrity check failed")
			return False

	def get_stats(self) -> PlanStats:
		stats = compute_stats(self.get_all_plans())
		logger.debug(f"Stats computed: {stats}")
		return stats

	def get_activity_log(self) -> list[ActivityEntry]:
		return self.activity.entries()

	def log_activity(self, activity_type: ActivityType, plan_title: str, description: str) -> ActivityEntry:
		return self.activity.log(activity_type, plan_title, description)

	def get_recent_activity(self) -> list[ActivityEntry]:
		return self.activity.recent(self.get_all_plans())


def create_storage(
	config: Optional[Config] = None,
	*,
	local: Optional[LocalStore] = None,
	remote: Optional[RemoteStore] = None,
) -> HybridStorage:
	"""Build a HybridStorage from config, with optional injected collaborators."""
	config = config or get_config()
	local = local or LocalStore.open(str(config.local_store_path))
	remote = remote or create_remote_store(config)
	activity = ActivityLog(
		local,
		capacity=config.activity_log_limit,
		recent_limit=config.recent_activity_limit,
	)
	return HybridStorage(local, remote, activity)


# Global storage instance
_storage: Optional[HybridStorage] = None


async def get_storage() -> HybridStorage:
	"""Get or create the global storage service."""
	global _storage
	if _storage is None:
		_storage = create_storage()
		await _storage.initialize()
	return _storage


def set_storage(storage: Optional[HybridStorage]) -> None:
	"""Replace the global storage service (None resets it)."""
	global _storage
	_storage = storage

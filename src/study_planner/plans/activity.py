"""
Activity Log - capped, newest-first record of plan lifecycle events.

The persisted log holds at most ``capacity`` entries; the oldest are evicted
first. When nothing has been logged yet, recent activity is synthesized from
the current plans on every call and never written back.
"""

import logging
from datetime import datetime, timedelta, timezone

from .local_store import LocalStore
from .models import ActivityEntry, ActivityType, StudyPlan, generate_id, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50
DEFAULT_RECENT_LIMIT = 10
SYNTHETIC_TASK_ENTRIES = 3


def created_description(title: str) -> str:
	return f'Plan "{title}" was created'


def updated_description(title: str) -> str:
	return f'Plan "{title}" was updated'


def completed_task_description(title: str) -> str:
	return f'Task completed in plan "{title}"'


class ActivityLog:
	"""Ring buffer of ActivityEntry records persisted in the local store."""

	def __init__(
		self,
		local: LocalStore,
		capacity: int = DEFAULT_CAPACITY,
		recent_limit: int = DEFAULT_RECENT_LIMIT,
	):
		self.local = local
		self.capacity = capacity
		self.recent_limit = recent_limit

	def entries(self) -> list[ActivityEntry]:
		"""The persisted log, newest first."""
		return self.local.read_activity()

	def log(self, activity_type: ActivityType, plan_title: str, description: str) -> ActivityEntry:
		"""
		Prepend an entry and evict anything past capacity.

		Storage failures are logged and swallowed; the entry is returned either way.
		"""
		entry = ActivityEntry(
			id=generate_id("activity"),
			type=activity_type,
			plan_title=plan_title,
			timestamp=utc_now_iso(),
			description=description,
		)
		try:
			activities = self.entries()
			activities.insert(0, entry)
			self.local.write_activity(activities[:self.capacity])
			logger.debug(f"Activity logged: {description}")
		except Exception:
			logger.exception("Failed to record activity")
		return entry

	def merge(self, incoming: list[ActivityEntry]) -> list[ActivityEntry]:
		"""Union incoming entries into the log by id, keeping the newest ``capacity``."""
		by_id = {entry.id: entry for entry in self.entries()}
		for entry in incoming:
			by_id.setdefault(entry.id, entry)
		merged = sorted(by_id.values(), key=ActivityEntry.sort_key, reverse=True)[:self.capacity]
		self.local.write_activity(merged)
		return merged

	def recent(self, plans: list[StudyPlan]) -> list[ActivityEntry]:
		"""Up to ``recent_limit`` entries, synthesized from plans when the log is empty."""
		logged = self.entries()
		if logged:
			return logged[:self.recent_limit]

		synthesized = []
		now = datetime.now(timezone.utc)
		for plan in plans:
			synthesized.append(ActivityEntry(
				id=f"{plan.id}_created",
				type=ActivityType.CREATED,
				plan_title=plan.title,
				timestamp=plan.created_at,
				description=created_description(plan.title),
			))

			if plan.updated_at != plan.created_at:
				synthesized.append(ActivityEntry(
					id=f"{plan.id}_updated",
					type=ActivityType.UPDATED,
					plan_title=plan.title,
					timestamp=plan.updated_at,
					description=updated_description(plan.title),
				))

			for i in range(min(SYNTHETIC_TASK_ENTRIES, len(plan.completed_tasks))):
				synthesized.append(ActivityEntry(
					id=f"{plan.id}_task_{i}",
					type=ActivityType.COMPLETED_TASK,
					plan_title=plan.title,
					timestamp=(now - timedelta(hours=i)).isoformat(),
					description=completed_task_description(plan.title),
				))

		synthesized.sort(key=ActivityEntry.sort_key, reverse=True)
		return synthesized[:self.recent_limit]

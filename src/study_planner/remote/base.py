"""
Remote Store - contract for the best-effort plan mirror.

Any backend that implements save/update/delete/load_all can stand in here.
Adapters classify their own failures through ``is_transient_error`` so the
storage facade never has to inspect error text.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ..plans.local_store import LocalStore
from ..plans.models import StudyPlan, parse_timestamp

logger = logging.getLogger(__name__)


class RemoteStoreError(Exception):
	"""Raised by adapters for failures they detect themselves."""

	def __init__(self, message: str, transient: bool = False):
		super().__init__(message)
		self.transient = transient


@dataclass
class SyncReport:
	"""Outcome of a two-way reconciliation."""
	pulled: list[str] = field(default_factory=list)
	pushed: list[str] = field(default_factory=list)
	total: int = 0


@dataclass
class Reconciliation:
	merged: list[StudyPlan]
	to_push: list[StudyPlan]
	pulled: list[str]


def _is_newer(candidate: StudyPlan, current: StudyPlan) -> bool:
	return parse_timestamp(candidate.updated_at) > parse_timestamp(current.updated_at)


def reconcile_plans(local: list[StudyPlan], remote: list[StudyPlan]) -> Reconciliation:
	"""
	Merge local and remote plan sets by id, last writer wins on ``updated_at``.

	Ties go to the remote copy. Local ordering is preserved and remote-only
	plans are appended in remote order.
	"""
	remote_by_id = {plan.id: plan for plan in remote}
	local_ids = set()
	merged = []
	to_push = []
	pulled = []

	for plan in local:
		local_ids.add(plan.id)
		remote_plan = remote_by_id.get(plan.id)
		if remote_plan is None or _is_newer(plan, remote_plan):
			merged.append(plan)
			to_push.append(plan)
		else:
			merged.append(remote_plan)
			if remote_plan != plan:
				pulled.append(plan.id)

	for plan in remote:
		if plan.id not in local_ids:
			merged.append(plan)
			pulled.append(plan.id)

	return Reconciliation(merged=merged, to_push=to_push, pulled=pulled)


class RemoteStore(ABC):
	"""
	Asynchronous plan mirror.

	Usage:
		remote = SqliteRemoteStore("data/remote.db")
		await remote.initialize_database()
		await remote.save(plan)
		report = await remote.sync(local_store)
	"""

	name = "remote"

	@property
	def is_configured(self) -> bool:
		return True

	async def initialize_database(self) -> None:
		"""Prepare the backend. Called once at startup."""

	@abstractmethod
	async def save(self, plan: StudyPlan) -> None:
		...

	@abstractmethod
	async def update(self, plan_id: str, plan: StudyPlan) -> None:
		...

	@abstractmethod
	async def delete(self, plan_id: str) -> None:
		...

	@abstractmethod
	async def load_all(self) -> list[StudyPlan]:
		...

	def is_transient_error(self, exc: BaseException) -> bool:
		"""Whether a failure is connectivity-related rather than a real fault."""
		return isinstance(exc, RemoteStoreError) and exc.transient

	async def sync(self, local: LocalStore) -> SyncReport:
		"""
		Two-way reconciliation between this mirror and the local store.

		Pushes local-only and locally newer plans, then writes the merged set
		back to the local store.
		"""
		remote_plans = await self.load_all()
		remote_ids = {plan.id for plan in remote_plans}
		result = reconcile_plans(local.read_plans(), remote_plans)

		for plan in result.to_push:
			if plan.id in remote_ids:
				await self.update(plan.id, plan)
			else:
				await self.save(plan)

		local.write_plans(result.merged)
		report = SyncReport(
			pulled=result.pulled,
			pushed=[plan.id for plan in result.to_push],
			total=len(result.merged),
		)
		logger.info(
			f"Synced with {self.name}: {len(report.pulled)} pulled, "
			f"{len(report.pushed)} pushed, {report.total} total"
		)
		return report

	async def close(self) -> None:
		"""Release backend resources."""


class DisabledRemoteStore(RemoteStore):
	"""Stand-in used when no remote backend is configured."""

	name = "disabled"

	@property
	def is_configured(self) -> bool:
		return False

	async def save(self, plan: StudyPlan) -> None:
		raise RemoteStoreError("Remote store is not configured")

	async def update(self, plan_id: str, plan: StudyPlan) -> None:
		raise RemoteStoreError("Remote store is not configured")

	async def delete(self, plan_id: str) -> None:
		raise RemoteStoreError("Remote store is not configured")

	async def load_all(self) -> list[StudyPlan]:
		raise RemoteStoreError("Remote store is not configured")

"""Shared test fixtures and helpers for study-planner tests."""

from pathlib import Path
from typing import Optional

from study_planner.plans.activity import ActivityLog
from study_planner.plans.local_store import LocalStore
from study_planner.plans.models import DayPlan, FormData, PlanDraft, StudyPlan
from study_planner.remote.base import RemoteStore, RemoteStoreError
from study_planner.storage import HybridStorage


def make_days(normal: int = 1, special: int = 1, rest: int = 1) -> list[DayPlan]:
	"""Days in normal, special, rest order."""
	return (
		[DayPlan(day=i + 1) for i in range(normal)]
		+ [DayPlan(is_special_day=True) for _ in range(special)]
		+ [DayPlan(is_rest_day=True) for _ in range(rest)]
	)


def make_draft(
	title: str = "TJ-CE Analista Judiciário",
	days: Optional[list[DayPlan]] = None,
	completed: Optional[list[str]] = None,
	hours: str = "4 horas",
	subjects: Optional[list[str]] = None,
) -> PlanDraft:
	"""Create a PlanDraft with realistic content for testing."""
	days = make_days() if days is None else days
	return PlanDraft(
		title=title,
		concurso="TJ-CE",
		cargo="Analista Judiciário",
		total_days=len(days),
		completed_tasks=completed or [],
		plans=days,
		form_data=FormData(
			concurso="TJ-CE",
			cargo="Analista Judiciário",
			horas_liquidas=hours,
			disciplinas_dificuldade=["Direito Constitucional"] if subjects is None else subjects,
			plataforma_estudo="PDF",
			tempo_estudo="30 dias",
		),
	)


def make_plan(
	plan_id: str = "plan_1",
	updated_at: str = "2024-05-01T10:00:00+00:00",
	created_at: str = "2024-05-01T10:00:00+00:00",
	**draft_kwargs,
) -> StudyPlan:
	draft = make_draft(**draft_kwargs)
	return StudyPlan(
		**draft.model_dump(),
		id=plan_id,
		created_at=created_at,
		updated_at=updated_at,
	)


class FakeRemoteStore(RemoteStore):
	"""In-memory remote mirror that records calls and can be told to fail."""

	name = "fake"

	def __init__(self, configured: bool = True):
		self.configured = configured
		self.plans: dict[str, StudyPlan] = {}
		self.calls: list[tuple] = []
		self.fail_with: Optional[Exception] = None

	@property
	def is_configured(self) -> bool:
		return self.configured

	def go_offline(self) -> None:
		self.fail_with = RemoteStoreError("connection refused", transient=True)

	def _check(self) -> None:
		if self.fail_with is not None:
			raise self.fail_with

	async def save(self, plan: StudyPlan) -> None:
		self.calls.append(("save", plan.id))
		self._check()
		self.plans[plan.id] = plan

	async def update(self, plan_id: str, plan: StudyPlan) -> None:
		self.calls.append(("update", plan_id))
		self._check()
		self.plans[plan_id] = plan

	async def delete(self, plan_id: str) -> None:
		self.calls.append(("delete", plan_id))
		self._check()
		self.plans.pop(plan_id, None)

	async def load_all(self) -> list[StudyPlan]:
		self.calls.append(("load_all",))
		self._check()
		return list(self.plans.values())


def make_storage(tmp_path: Path, remote: Optional[RemoteStore] = None) -> HybridStorage:
	local = LocalStore.open(str(tmp_path / "local.db"))
	return HybridStorage(local, remote or FakeRemoteStore(), ActivityLog(local))

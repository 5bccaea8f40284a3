"""
Plan Models - Pydantic schemas for study plans and their activity log.

Persisted JSON uses camelCase keys (``createdAt``, ``completedTasks`` ...);
attributes are snake_case. Dump with ``by_alias=True`` to get the wire format.
"""

import random
import re
import string
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TASKS_PER_DAY = 5
TASKS_PER_SPECIAL_DAY = 3

_BASE36 = string.digits + string.ascii_lowercase
_LEADING_INT = re.compile(r"[+-]?\d+")


def utc_now_iso() -> str:
	"""Current time as an ISO-8601 UTC string."""
	return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str) -> datetime:
	"""Parse an ISO-8601 timestamp. Naive values are taken as UTC."""
	parsed = datetime.fromisoformat(value)
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed


def _iso_timestamp(value: str) -> str:
	# Raises ValueError, which pydantic reports as a validation error
	parse_timestamp(value)
	return value


def generate_id(prefix: str) -> str:
	"""Time-based prefix plus a random base36 suffix, e.g. ``plan_1718000000000_k3j9x0a1b``."""
	suffix = "".join(random.choices(_BASE36, k=9))
	return f"{prefix}_{time.time_ns() // 1_000_000}_{suffix}"


class CamelModel(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActivityType(str, Enum):
	"""Kind of plan lifecycle event."""
	CREATED = "created"
	UPDATED = "updated"
	COMPLETED_TASK = "completed_task"


class DayPlan(CamelModel):
	"""
	One scheduled day of a plan.

	Generator output carries more fields than the ones used here (subjects,
	dates, notes); they are kept as extras so round trips are lossless.
	"""
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

	is_rest_day: bool = False
	is_special_day: bool = False

	@property
	def task_slots(self) -> int:
		if self.is_rest_day:
			return 0
		if self.is_special_day:
			return TASKS_PER_SPECIAL_DAY
		return TASKS_PER_DAY


class FormData(CamelModel):
	"""Snapshot of the inputs the plan was generated from."""
	concurso: str = ""
	cargo: str = ""
	horas_liquidas: str = Field(default="", description="Hours per day, e.g. '4 horas'")
	disciplinas_dificuldade: list[str] = Field(default_factory=list)
	plataforma_estudo: str = ""
	tempo_estudo: str = ""

	def hours_per_day(self) -> int:
		"""Leading integer of the first token of ``horas_liquidas``, 0 if absent."""
		token = (self.horas_liquidas or "").split(" ")[0]
		match = _LEADING_INT.match(token)
		return int(match.group()) if match else 0


class PlanDraft(CamelModel):
	"""Plan content before it gets an identity."""
	title: str
	concurso: str = ""
	cargo: str = ""
	total_days: int = 0
	completed_tasks: list[str] = Field(default_factory=list)
	plans: list[DayPlan] = Field(default_factory=list)
	form_data: FormData = Field(default_factory=FormData)


class StudyPlan(PlanDraft):
	"""A stored study plan."""
	id: str
	created_at: str
	updated_at: str

	@field_validator("created_at", "updated_at")
	@classmethod
	def validate_timestamps(cls, value: str) -> str:
		return _iso_timestamp(value)

	def task_count(self) -> int:
		"""Number of task slots across all days."""
		return sum(day.task_slots for day in self.plans)

	def progress_percent(self) -> float:
		total = self.task_count()
		if total == 0:
			return 0
		return len(self.completed_tasks) / total * 100

	def hours_studied(self) -> float:
		hours_per_task = self.form_data.hours_per_day() / TASKS_PER_DAY
		return len(self.completed_tasks) * hours_per_task

	def to_wire(self) -> dict:
		"""JSON-ready dict with camelCase keys."""
		return self.model_dump(mode="json", by_alias=True)


class ActivityEntry(CamelModel):
	"""A human-readable record of a plan lifecycle event."""
	id: str
	type: ActivityType
	plan_title: str
	timestamp: str = Field(default_factory=utc_now_iso)
	description: str = ""

	@field_validator("timestamp")
	@classmethod
	def validate_timestamp(cls, value: str) -> str:
		return _iso_timestamp(value)

	def sort_key(self) -> datetime:
		return parse_timestamp(self.timestamp)


class PlanStats(CamelModel):
	"""Aggregates derived from the current plan set."""
	total_plans: int = 0
	active_plans: int = 0
	total_hours_studied: float = 0
	total_subjects: int = 0
	average_progress: int = 0


def plan_fields(updates: dict) -> dict:
	"""
	Normalize update keys to field names.

	Accepts either camelCase aliases or snake_case field names; unknown keys
	are dropped.
	"""
	by_alias = {info.alias or name: name for name, info in StudyPlan.model_fields.items()}
	normalized = {}
	for key, value in updates.items():
		if key in StudyPlan.model_fields:
			normalized[key] = value
		elif key in by_alias:
			normalized[by_alias[key]] = value
	return normalized


def find_plan(plans: list[StudyPlan], plan_id: str) -> Optional[StudyPlan]:
	for plan in plans:
		if plan.id == plan_id:
			return plan
	return None

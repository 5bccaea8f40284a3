"""Statistics over the current plan set. Recomputed on every call."""

import math

from .models import PlanStats, StudyPlan


def _round_half_up(value: float, digits: int = 0) -> float:
	factor = 10 ** digits
	return math.floor(value * factor + 0.5) / factor


def compute_stats(plans: list[StudyPlan]) -> PlanStats:
	"""
	Aggregate progress, hours and subjects.

	``active_plans`` mirrors ``total_plans``: plans carry no status field.
	"""
	if not plans:
		return PlanStats()

	subjects: set[str] = set()
	total_progress = 0.0
	total_hours = 0.0

	for plan in plans:
		total_progress += plan.progress_percent()
		total_hours += plan.hours_studied()
		subjects.update(plan.form_data.disciplinas_dificuldade)

	return PlanStats(
		total_plans=len(plans),
		active_plans=len(plans),
		total_hours_studied=_round_half_up(total_hours, 1),
		total_subjects=len(subjects),
		average_progress=int(_round_half_up(total_progress / len(plans))),
	)

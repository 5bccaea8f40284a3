"""Plans module - Study plan models, local persistence, activity and stats."""

from .activity import ActivityLog
from .local_store import KeyValueStore, LocalStore
from .models import (
	ActivityEntry,
	ActivityType,
	DayPlan,
	FormData,
	PlanDraft,
	PlanStats,
	StudyPlan,
)
from .stats import compute_stats

__all__ = [
	"StudyPlan",
	"PlanDraft",
	"DayPlan",
	"FormData",
	"ActivityEntry",
	"ActivityType",
	"PlanStats",
	"KeyValueStore",
	"LocalStore",
	"ActivityLog",
	"compute_stats",
]

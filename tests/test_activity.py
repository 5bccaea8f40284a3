"""Tests for the activity log ring buffer and synthesized fallback."""

from pathlib import Path

import pytest

from study_planner.plans.activity import ActivityLog
from study_planner.plans.local_store import ACTIVITY_KEY, LocalStore
from study_planner.plans.models import ActivityEntry, ActivityType
from tests.helpers import make_plan


@pytest.fixture
def activity(tmp_path: Path) -> ActivityLog:
	return ActivityLog(LocalStore.open(str(tmp_path / "local.db")))


class TestLogging:
	def test_newest_first(self, activity: ActivityLog):
		activity.log(ActivityType.CREATED, "A", "first")
		activity.log(ActivityType.UPDATED, "A", "second")
		assert [e.description for e in activity.entries()] == ["second", "first"]

	def test_retention_caps_at_fifty(self, activity: ActivityLog):
		for i in range(60):
			activity.log(ActivityType.UPDATED, "A", f"event {i + 1}")

		entries = activity.entries()
		assert len(entries) <= 50
		assert entries[0].description == "event 60"
		assert entries[-1].description == "event 11"

	def test_corrupt_log_reads_empty_and_recovers(self, activity: ActivityLog):
		activity.local.kv.set_item(ACTIVITY_KEY, "not json")
		assert activity.entries() == []
		activity.log(ActivityType.CREATED, "A", "fresh")
		assert len(activity.entries()) == 1

	def test_entry_ids_are_distinct(self, activity: ActivityLog):
		ids = {activity.log(ActivityType.CREATED, "A", "x").id for _ in range(20)}
		assert len(ids) == 20


class TestRecent:
	def test_returns_ten_most_recent_logged(self, activity: ActivityLog):
		for i in range(15):
			activity.log(ActivityType.UPDATED, "A", f"event {i}")

		recent = activity.recent([make_plan()])
		assert len(recent) == 10
		assert recent[0].description == "event 14"

	def test_synthesizes_from_plans_when_log_empty(self, activity: ActivityLog):
		plan = make_plan(
			"plan_x",
			created_at="2024-05-01T10:00:00+00:00",
			updated_at="2024-05-02T10:00:00+00:00",
			completed=["t1", "t2", "t3", "t4"],
		)
		recent = activity.recent([plan])

		types = [e.type for e in recent]
		assert types.count(ActivityType.CREATED) == 1
		assert types.count(ActivityType.UPDATED) == 1
		assert types.count(ActivityType.COMPLETED_TASK) == 3
		# synthetic task entries are "now", so they sort ahead of the plan timestamps
		assert recent[-1].id == "plan_x_created"
		assert recent[-2].id == "plan_x_updated"
		timestamps = [e.sort_key() for e in recent]
		assert timestamps == sorted(timestamps, reverse=True)

	def test_no_updated_entry_when_untouched(self, activity: ActivityLog):
		recent = activity.recent([make_plan("plan_x")])
		assert [e.id for e in recent] == ["plan_x_created"]

	def test_synthesized_entries_are_not_persisted(self, activity: ActivityLog):
		activity.recent([make_plan("plan_x", completed=["t1"])])
		assert activity.entries() == []

	def test_synthesized_truncated_to_ten(self, activity: ActivityLog):
		plans = [make_plan(f"plan_{i}", completed=["t1", "t2", "t3"]) for i in range(5)]
		assert len(activity.recent(plans)) == 10

	def test_empty_everything(self, activity: ActivityLog):
		assert activity.recent([]) == []


def test_merge_unions_by_id_and_caps(tmp_path: Path):
	activity = ActivityLog(LocalStore.open(str(tmp_path / "local.db")), capacity=3)
	kept = activity.log(ActivityType.CREATED, "A", "local")
	incoming = [
		kept,
		ActivityEntry(id="remote_1", type=ActivityType.UPDATED, plan_title="B", timestamp="2020-01-01T00:00:00+00:00"),
		ActivityEntry(id="remote_2", type=ActivityType.UPDATED, plan_title="B", timestamp="2020-01-02T00:00:00+00:00"),
		ActivityEntry(id="remote_3", type=ActivityType.UPDATED, plan_title="B", timestamp="2019-01-01T00:00:00+00:00"),
	]

	merged = activity.merge(incoming)

	assert [e.id for e in merged] == [kept.id, "remote_2", "remote_1"]
	assert activity.entries() == merged

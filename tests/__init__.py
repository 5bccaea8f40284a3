"""Tests for study-planner."""

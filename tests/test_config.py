"""Tests for the configuration system."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from study_planner.config import Config, _apply_env_overrides, _apply_toml, load_config


def test_config_defaults():
	"""Config should have sensible defaults."""
	config = Config()
	assert config.config_dir.is_absolute()
	assert config.data_dir.is_absolute()
	assert config.local_store_path == config.data_dir / "local_store.db"
	assert config.remote_db_path == config.data_dir / "remote.db"
	assert config.billing_db_path == config.data_dir / "billing.db"
	assert config.log_dir == config.data_dir / "logs"
	assert config.activity_log_limit == 50
	assert config.recent_activity_limit == 10


def test_config_env_overrides():
	"""Environment variables should override defaults."""
	config = Config()
	with patch.dict(os.environ, {
		"STUDY_PLANNER_DATA_DIR": "/tmp/test-data",
		"STUDY_PLANNER_CONFIG_DIR": "/tmp/test-config",
		"SUPABASE_URL": "https://abc.supabase.co",
		"SUPABASE_ANON_KEY": "anon",
	}):
		config = _apply_env_overrides(config)
		assert config.data_dir == Path("/tmp/test-data")
		assert config.config_dir == Path("/tmp/test-config")
		assert config.supabase_url == "https://abc.supabase.co"
		assert config.supabase_key == "anon"
		# Derived paths should be recomputed
		assert config.local_store_path == Path("/tmp/test-data/local_store.db")


def test_remote_configured():
	"""Supabase needs both URL and key; sqlite needs nothing; none is never configured."""
	assert not Config(supabase_url="https://abc.supabase.co").remote_configured
	assert Config(supabase_url="https://abc.supabase.co", supabase_key="k").remote_configured
	assert Config(remote_backend="sqlite").remote_configured
	assert not Config(remote_backend="none", supabase_url="u", supabase_key="k").remote_configured


def test_toml_overrides(tmp_path: Path):
	"""config.toml values should be applied."""
	config_dir = tmp_path / "config"
	config_dir.mkdir()
	(config_dir / "config.toml").write_text(
		'remote_backend = "sqlite"\n'
		f'data_dir = "{tmp_path / "elsewhere"}"\n'
		"activity_log_limit = 20\n"
	)
	config = _apply_toml(Config(config_dir=config_dir, data_dir=tmp_path / "data"))
	assert config.remote_backend == "sqlite"
	assert config.activity_log_limit == 20
	assert config.remote_db_path == tmp_path / "elsewhere" / "remote.db"


def test_config_ensure_dirs(tmp_path: Path):
	"""ensure_dirs should create all required directories."""
	config = Config(
		config_dir=tmp_path / "config",
		data_dir=tmp_path / "data",
	)
	assert not config.config_dir.exists()
	assert not config.data_dir.exists()

	config.ensure_dirs()

	assert config.config_dir.exists()
	assert config.data_dir.exists()
	assert config.log_dir.exists()


def test_load_config_creates_dirs(tmp_path: Path):
	"""load_config should create directories."""
	with patch.dict(os.environ, {
		"STUDY_PLANNER_DATA_DIR": str(tmp_path / "data"),
		"STUDY_PLANNER_CONFIG_DIR": str(tmp_path / "config"),
	}):
		config = load_config()
		assert config.data_dir.exists()
		assert config.config_dir.exists()


def test_load_config_rejects_unknown_backend(tmp_path: Path):
	with patch.dict(os.environ, {
		"STUDY_PLANNER_DATA_DIR": str(tmp_path / "data"),
		"STUDY_PLANNER_CONFIG_DIR": str(tmp_path / "config"),
		"STUDY_PLANNER_REMOTE_BACKEND": "firebase",
	}):
		with pytest.raises(ValueError, match="firebase"):
			load_config()

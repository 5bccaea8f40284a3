"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import platformdirs
from dotenv import load_dotenv

APP_NAME = "study-planner"
APP_AUTHOR = "study-planner"

REMOTE_BACKENDS = ("supabase", "sqlite", "none")


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	local_store_path: Path = field(init=False)
	remote_db_path: Path = field(init=False)
	billing_db_path: Path = field(init=False)
	log_dir: Path = field(init=False)

	# Remote mirror
	remote_backend: str = "supabase"
	supabase_url: str = ""
	supabase_key: str = ""
	supabase_table: str = "study_plans"
	request_timeout: float = 30.0

	# Activity log
	activity_log_limit: int = 50
	recent_activity_limit: int = 10

	def __post_init__(self) -> None:
		self.local_store_path = self.data_dir / "local_store.db"
		self.remote_db_path = self.data_dir / "remote.db"
		self.billing_db_path = self.data_dir / "billing.db"
		self.log_dir = self.data_dir / "logs"

	@property
	def remote_configured(self) -> bool:
		"""Whether the remote mirror has what it needs to run."""
		if self.remote_backend == "sqlite":
			return True
		if self.remote_backend == "supabase":
			return bool(self.supabase_url and self.supabase_key)
		return False

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)


def _apply_env_overrides(config: Config) -> Config:
	"""Apply STUDY_PLANNER_* and SUPABASE_* environment variable overrides."""
	path_map = {
		"STUDY_PLANNER_CONFIG_DIR": "config_dir",
		"STUDY_PLANNER_DATA_DIR": "data_dir",
	}
	for env_key, attr in path_map.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, Path(val))

	value_map = {
		"STUDY_PLANNER_REMOTE_BACKEND": "remote_backend",
		"SUPABASE_URL": "supabase_url",
		"SUPABASE_ANON_KEY": "supabase_key",
		"SUPABASE_TABLE": "supabase_table",
	}
	for env_key, attr in value_map.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, val)

	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	path_fields = {"config_dir", "data_dir"}
	for key, val in data.items():
		if hasattr(config, key):
			if key in path_fields:
				setattr(config, key, Path(os.path.expanduser(val)))
			else:
				setattr(config, key, val)

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def _validate(config: Config) -> Config:
	if config.remote_backend not in REMOTE_BACKENDS:
		raise ValueError(
			f"Unknown remote backend {config.remote_backend!r}, "
			f"expected one of {', '.join(REMOTE_BACKENDS)}"
		)
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	load_dotenv()
	config = Config()
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config = _validate(config)
	config.ensure_dirs()
	return config


# Singleton
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config

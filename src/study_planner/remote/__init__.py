"""Remote module - best-effort plan mirrors and reconciliation."""

import logging
from typing import Optional

from ..config import Config, get_config
from .base import (
	DisabledRemoteStore,
	Reconciliation,
	RemoteStore,
	RemoteStoreError,
	SyncReport,
	reconcile_plans,
)
from .rest import SupabaseRestStore
from .sqlite import SqliteRemoteStore

logger = logging.getLogger(__name__)


def create_remote_store(config: Optional[Config] = None) -> RemoteStore:
	"""Pick the remote backend from config. Missing credentials mean fallback mode."""
	config = config or get_config()

	if config.remote_backend == "sqlite":
		return SqliteRemoteStore(str(config.remote_db_path))

	if config.remote_backend == "supabase" and config.remote_configured:
		return SupabaseRestStore(
			config.supabase_url,
			config.supabase_key,
			table=config.supabase_table,
			timeout=config.request_timeout,
		)

	logger.info("Remote store not configured, running local-only")
	return DisabledRemoteStore()


__all__ = [
	"RemoteStore",
	"RemoteStoreError",
	"DisabledRemoteStore",
	"SqliteRemoteStore",
	"SupabaseRestStore",
	"SyncReport",
	"Reconciliation",
	"reconcile_plans",
	"create_remote_store",
]

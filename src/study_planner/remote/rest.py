"""Supabase (PostgREST) plan mirror over HTTP."""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from ..plans.models import StudyPlan
from .base import RemoteStore, RemoteStoreError

logger = logging.getLogger(__name__)

# Row columns are snake_case; plan JSON is camelCase.
_ROW_FIELDS = {
	"id": "id",
	"title": "title",
	"concurso": "concurso",
	"cargo": "cargo",
	"created_at": "createdAt",
	"updated_at": "updatedAt",
	"total_days": "totalDays",
	"completed_tasks": "completedTasks",
	"plans": "plans",
	"form_data": "formData",
}

TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def plan_to_row(plan: StudyPlan) -> dict:
	wire = plan.to_wire()
	return {column: wire[key] for column, key in _ROW_FIELDS.items()}


def row_to_plan(row: dict) -> StudyPlan:
	return StudyPlan.model_validate({key: row[column] for column, key in _ROW_FIELDS.items() if column in row})


class SupabaseRestStore(RemoteStore):
	"""HTTP client for a Supabase ``study_plans`` table.

	Handles auth headers, status classification and row mapping.
	"""

	name = "supabase"

	def __init__(
		self,
		url: str,
		api_key: str,
		table: str = "study_plans",
		timeout: float = 30.0,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.url = url.rstrip("/")
		self.api_key = api_key
		self.table = table
		self._client = httpx.AsyncClient(
			base_url=f"{self.url}/rest/v1" if self.url else "http://localhost/rest/v1",
			timeout=timeout,
			transport=transport,
			headers={
				"apikey": api_key,
				"Authorization": f"Bearer {api_key}",
				"Content-Type": "application/json",
				"x-client-info": "study-planner",
			},
		)

	@property
	def is_configured(self) -> bool:
		return bool(self.url and self.api_key)

	async def close(self) -> None:
		"""Close the HTTP client."""
		await self._client.aclose()

	async def _request(self, method: str, **kwargs: Any) -> httpx.Response:
		"""Make a table request and raise RemoteStoreError on non-success."""
		response = await self._client.request(method, f"/{self.table}", **kwargs)
		if response.is_success:
			return response
		raise RemoteStoreError(
			f"{method} /{self.table} failed with {response.status_code}: {response.text[:200]}",
			transient=response.status_code in TRANSIENT_STATUS_CODES,
		)

	async def initialize_database(self) -> None:
		"""Check the table is reachable. Schema is managed on the Supabase side."""
		await self._request("GET", params={"select": "id", "limit": 1})
		logger.info(f"Connected to Supabase table '{self.table}'")

	async def save(self, plan: StudyPlan) -> None:
		await self._request(
			"POST",
			json=plan_to_row(plan),
			headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
		)
		logger.info(f"Saved plan {plan.id} to Supabase")

	async def update(self, plan_id: str, plan: StudyPlan) -> None:
		row = plan_to_row(plan)
		row.pop("id")
		await self._request(
			"PATCH",
			params={"id": f"eq.{plan_id}"},
			json=row,
			headers={"Prefer": "return=minimal"},
		)
		logger.info(f"Updated plan {plan_id} in Supabase")

	async def delete(self, plan_id: str) -> None:
		await self._request("DELETE", params={"id": f"eq.{plan_id}"})
		logger.info(f"Deleted plan {plan_id} from Supabase")

	async def load_all(self) -> list[StudyPlan]:
		response = await self._request(
			"GET",
			params={"select": "*", "order": "created_at.desc"},
		)
		plans = []
		for row in response.json():
			try:
				plans.append(row_to_plan(row))
			except ValidationError as e:
				logger.warning(f"Skipping remote plan {row.get('id')}: {e.error_count()} validation errors")
		return plans

	def is_transient_error(self, exc: BaseException) -> bool:
		# TransportError covers connect/read failures and timeouts
		return isinstance(exc, httpx.TransportError) or super().is_transient_error(exc)

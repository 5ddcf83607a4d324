"""Supabase (PostgREST) adapter - HTTP client for the task and list tables."""

import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from dueday.config import Config, load_config
from dueday.core.tasks import Task, TaskList
from dueday.errors import NotFoundError, StoreError

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"
TASK_TABLE = "todos"
LIST_TABLE = "lists"

# POST is left out: retrying an insert could create duplicate rows.
RETRY_METHODS = frozenset({"GET", "PATCH", "DELETE"})
RETRY_STATUSES = (502, 503, 504)


def build_session(retries: int = 2, backoff: float = 0.5) -> requests.Session:
    """Session with bounded retry/backoff on idempotent requests."""
    session = requests.Session()
    retry = Retry(
        total=retries,
        backoff_factor=backoff,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=RETRY_METHODS,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class SupabaseClient:
    """
    Thin PostgREST client.

    Handles headers, timeouts and error mapping. No business logic - just I/O.
    """

    def __init__(self, config: Config | None = None, session: requests.Session | None = None):
        self.config = config or load_config()
        if not self.config.supabase_url or not self.config.supabase_key:
            raise StoreError("Missing Supabase credentials. Set SUPABASE_URL and SUPABASE_KEY in dueday.conf")
        self._session = session or build_session(self.config.store_retries, self.config.store_backoff)
        self._base = f"{self.config.supabase_url}{REST_PATH}"

    def _headers(self) -> dict:
        token = self.config.access_token or self.config.supabase_key
        return {
            "apikey": self.config.supabase_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    def request(
        self,
        method: str,
        table: str,
        params: dict | None = None,
        payload: dict | None = None,
    ) -> list[dict]:
        """Make an API request; always returns the affected rows."""
        url = f"{self._base}/{table}"
        try:
            resp = self._session.request(
                method,
                url,
                params=params,
                json=payload,
                headers=self._headers(),
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            logger.error(f"{method} {table} failed: {e}")
            raise StoreError(f"Could not reach store: {e}") from e

        if resp.status_code >= 400:
            logger.error(f"{method} {table} returned {resp.status_code}: {resp.text}")
            raise StoreError(
                f"Store rejected {method} {table} ({resp.status_code}): {resp.text}",
                status_code=resp.status_code,
            )

        if not resp.content:
            return []
        data = resp.json()
        return data if isinstance(data, list) else [data]


class SupabaseTaskStore:
    """Implements TaskStore protocol over the todos table."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    def fetch_all(self) -> list[Task]:
        rows = self.client.request("GET", TASK_TABLE, params={"select": "*", "order": "created_at.asc"})
        return [Task.from_row(r) for r in rows]

    def create(self, task: Task) -> Task:
        rows = self.client.request("POST", TASK_TABLE, payload=task.to_row())
        if not rows:
            raise StoreError("Store returned no row for created task")
        return Task.from_row(rows[0])

    def update(self, task_id: int, fields: dict) -> Task:
        rows = self.client.request("PATCH", TASK_TABLE, params={"id": f"eq.{task_id}"}, payload=fields)
        if not rows:
            raise NotFoundError(f"Task {task_id} not found")
        return Task.from_row(rows[0])

    def delete(self, task_id: int) -> None:
        rows = self.client.request("DELETE", TASK_TABLE, params={"id": f"eq.{task_id}"})
        if not rows:
            raise NotFoundError(f"Task {task_id} not found")

    def reassign_list(self, from_list_id: int, to_list_id: int) -> int:
        rows = self.client.request(
            "PATCH",
            TASK_TABLE,
            params={"list_id": f"eq.{from_list_id}"},
            payload={"list_id": to_list_id},
        )
        return len(rows)


class SupabaseListStore:
    """Implements ListStore protocol over the lists table."""

    def __init__(self, client: SupabaseClient):
        self.client = client

    def fetch_all(self) -> list[TaskList]:
        rows = self.client.request("GET", LIST_TABLE, params={"select": "*", "order": "created_at.asc"})
        return [TaskList.from_row(r) for r in rows]

    def create(self, task_list: TaskList) -> TaskList:
        rows = self.client.request("POST", LIST_TABLE, payload=task_list.to_row())
        if not rows:
            raise StoreError("Store returned no row for created list")
        return TaskList.from_row(rows[0])

    def update(self, list_id: int, fields: dict) -> TaskList:
        rows = self.client.request("PATCH", LIST_TABLE, params={"id": f"eq.{list_id}"}, payload=fields)
        if not rows:
            raise NotFoundError(f"List {list_id} not found")
        return TaskList.from_row(rows[0])

    def delete(self, list_id: int) -> None:
        rows = self.client.request("DELETE", LIST_TABLE, params={"id": f"eq.{list_id}"})
        if not rows:
            raise NotFoundError(f"List {list_id} not found")


def create_stores(config: Config | None = None) -> tuple[SupabaseTaskStore, SupabaseListStore]:
    """Build both stores sharing one HTTP session."""
    client = SupabaseClient(config)
    return SupabaseTaskStore(client), SupabaseListStore(client)

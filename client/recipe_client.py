# ============================================================================
# RECIPE ENGINE HTTP CLIENT
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Client - Sync HTTP client for the recipe engine API
# PURPOSE: Start executions and poll them to a terminal state
# CREATED: 19 OCT 2026
# ============================================================================
"""
Recipe Engine HTTP Client

Sync httpx client for callers that start an execution and then poll it.

Polling contract: fixed interval, bounded attempts. The default window
(5s x 36 = 180s) is longer than any server-side timeout, so a run that
is still RUNNING when the window closes is a client-side timeout, not a
server verdict. The execution keeps running; poll again later or cancel.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx

from core.config import get_defaults

logger = logging.getLogger(__name__)

# Timeout: 10s connect, 30s read (execute returns once the record exists)
DEFAULT_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=30.0, pool=30.0)

TERMINAL_STATUSES = ("completed", "failed")


class RecipeClientError(Exception):
    """Non-2xx response or transport failure."""

    def __init__(self, status_code: int, detail: Any):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


class PollingTimeoutError(Exception):
    """Execution did not reach a terminal state within the polling window."""

    def __init__(self, execution_id: str, attempts: int, interval_seconds: float, last_status: Optional[str] = None):
        self.execution_id = execution_id
        self.attempts = attempts
        self.interval_seconds = interval_seconds
        self.last_status = last_status
        super().__init__(
            f"Execution {execution_id} still {last_status or 'unknown'} after "
            f"{attempts} polls ({attempts * interval_seconds:.0f}s)"
        )


class RecipeClient:
    """Sync HTTP client for the recipe engine API."""

    def __init__(
        self,
        base_url: str,
        timeout: Optional[httpx.Timeout] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=f"{self._base_url}/api/v1",
            timeout=timeout or DEFAULT_TIMEOUT,
            transport=transport,
        )
        self._sleep = sleep

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RecipeClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make a request and return the decoded JSON body.

        Raises:
            RecipeClientError: on connection failure or a non-2xx status
        """
        try:
            resp = self._client.request(method, path, json=json_body, params=params)
        except httpx.TimeoutException as e:
            logger.error(f"Recipe engine timeout: {path}: {e}")
            raise RecipeClientError(504, str(e)) from e
        except httpx.HTTPError as e:
            logger.error(f"Cannot reach recipe engine at {self._base_url}: {e}")
            raise RecipeClientError(502, str(e)) from e

        try:
            body = resp.json()
        except ValueError:
            body = {"detail": resp.text}

        if resp.status_code >= 400:
            detail = body.get("detail", body) if isinstance(body, dict) else body
            raise RecipeClientError(resp.status_code, detail)
        return body

    # ------------------------------------------------------------------
    # EXECUTIONS
    # ------------------------------------------------------------------

    def execute(
        self,
        recipe_id: str,
        external_input: Optional[Dict[str, Any]] = None,
        project_id: Optional[str] = None,
        stage_id: Optional[str] = None,
        triggered_by: Optional[str] = None,
        version: Optional[int] = None,
    ) -> str:
        """POST /recipes/{recipe_id}/execute. Returns the execution id."""
        body = {
            "external_input": external_input or {},
            "project_id": project_id,
            "stage_id": stage_id,
            "triggered_by": triggered_by,
            "version": version,
        }
        data = self._request("POST", f"/recipes/{recipe_id}/execute", json_body=body)
        return data["execution_id"]

    def get_status(self, execution_id: str) -> Dict[str, Any]:
        """GET /executions/{execution_id}"""
        return self._request("GET", f"/executions/{execution_id}")

    def get_summary(self, execution_id: str) -> Dict[str, Any]:
        """GET /executions/{execution_id}/summary"""
        return self._request("GET", f"/executions/{execution_id}/summary")

    def cancel(self, execution_id: str) -> Dict[str, Any]:
        """POST /executions/{execution_id}/cancel"""
        return self._request("POST", f"/executions/{execution_id}/cancel")

    def retry(self, execution_id: str) -> str:
        """POST /executions/{execution_id}/retry. Returns the new execution id."""
        return self._request("POST", f"/executions/{execution_id}/retry")["execution_id"]

    def wait_for_completion(
        self,
        execution_id: str,
        interval_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        on_poll: Optional[Callable[[int, Dict[str, Any]], None]] = None,
    ) -> Dict[str, Any]:
        """
        Poll until the execution is terminal.

        Args:
            execution_id: Execution to watch
            interval_seconds: Pause between polls (default from PollingDefaults)
            max_attempts: Polls before giving up (default from PollingDefaults)
            on_poll: Called with (attempt, record) after each poll

        Returns:
            The terminal execution record

        Raises:
            PollingTimeoutError: still running after max_attempts polls
        """
        polling = get_defaults().polling
        interval = polling.interval_seconds if interval_seconds is None else interval_seconds
        attempts = polling.max_attempts if max_attempts is None else max_attempts

        status = None
        for attempt in range(1, attempts + 1):
            record = self.get_status(execution_id)
            status = record.get("status")
            if on_poll is not None:
                on_poll(attempt, record)
            if status in TERMINAL_STATUSES:
                return record
            if attempt < attempts:
                self._sleep(interval)

        raise PollingTimeoutError(execution_id, attempts, interval, status)

    def run(self, recipe_id: str, external_input: Optional[Dict[str, Any]] = None, **kwargs) -> Dict[str, Any]:
        """Execute and wait. kwargs go to execute()."""
        execution_id = self.execute(recipe_id, external_input, **kwargs)
        return self.wait_for_completion(execution_id)

    # ------------------------------------------------------------------
    # RECIPES
    # ------------------------------------------------------------------

    def list_recipes(self, stage_type: Optional[str] = None) -> Dict[str, Any]:
        """GET /recipes"""
        params = {"stage_type": stage_type} if stage_type else None
        return self._request("GET", "/recipes", params=params)

    def preview_node(
        self,
        recipe_id: str,
        node_id: str,
        external_input: Optional[Dict[str, Any]] = None,
        mock_outputs: Optional[Dict[str, Any]] = None,
        execute_dependencies: bool = True,
    ) -> Dict[str, Any]:
        """POST /recipes/{recipe_id}/nodes/{node_id}/preview"""
        body = {
            "external_input": external_input or {},
            "mock_outputs": mock_outputs or {},
            "execute_dependencies": execute_dependencies,
        }
        return self._request("POST", f"/recipes/{recipe_id}/nodes/{node_id}/preview", json_body=body)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "RecipeClient",
    "RecipeClientError",
    "PollingTimeoutError",
    "TERMINAL_STATUSES",
]

"""
Admin API client for the runtime-under-test.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any
from urllib.parse import quote

import requests

from .exceptions import AdminApiError

logger = logging.getLogger(__name__)


class TerminationMode(str, Enum):
    CANCEL = "cancel"
    KILL = "kill"


class AdminClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.trust_env = False

    def __enter__(self) -> "AdminClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def health(self) -> bool:
        try:
            response = self._session.get(f"{self.base_url}/health", timeout=2.0)
        except requests.exceptions.RequestException:
            return False
        return response.status_code == 200

    def register_deployment(self, uri: str, *, force: bool = False) -> dict[str, Any]:
        """Register a service deployment reachable at `uri` and return the runtime's reply."""
        logger.info("Registering deployment %s (force=%s)", uri, force)
        return self._request("POST", "/deployments", json={"uri": uri, "force": force}) or {}

    def list_deployments(self) -> list[dict[str, Any]]:
        data = self._request("GET", "/deployments") or {}
        return list(data.get("deployments", []))

    def modify_service(
        self,
        service: str,
        *,
        idempotency_retention: str | None = None,
        public: bool | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if idempotency_retention is not None:
            payload["idempotency_retention"] = idempotency_retention
        if public is not None:
            payload["public"] = public
        return self._request("PATCH", f"/services/{quote(service, safe='')}", json=payload) or {}

    def terminate_invocation(
        self, invocation_id: str, mode: TerminationMode = TerminationMode.KILL
    ) -> None:
        logger.info("Terminating invocation %s (mode=%s)", invocation_id, mode.value)
        self._request(
            "DELETE",
            f"/invocations/{quote(invocation_id, safe='')}",
            params={"mode": mode.value},
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        kwargs.setdefault("timeout", self._timeout)
        try:
            response = self._session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as exc:
            raise AdminApiError(method, path, None, str(exc)) from exc
        if response.status_code >= 400:
            raise AdminApiError(method, path, response.status_code, response.text)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

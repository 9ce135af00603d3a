"""
Ingress client for the runtime-under-test.

Supports:
- call: request/response invocation of a handler
- send: fire-and-forget invocation, optionally idempotent
- attach / output: follow an invocation by id or by idempotency key
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable
from urllib.parse import quote

import requests

from .exceptions import IngressError, IngressTimeoutError

logger = logging.getLogger(__name__)

IDEMPOTENCY_KEY_HEADER = "idempotency-key"
# The runtime answers "output not ready yet" with this non-standard status.
OUTPUT_NOT_READY_STATUS = 470

_NO_BODY = object()


class SendStatus(str, Enum):
    ACCEPTED = "Accepted"
    PREVIOUSLY_ACCEPTED = "PreviouslyAccepted"


@dataclass(frozen=True)
class Target:
    """Handler address. `key` is set for virtual objects."""

    service: str
    handler: str
    key: str | None = None

    @classmethod
    def for_service(cls, service: str, handler: str) -> "Target":
        return cls(service=service, handler=handler)

    @classmethod
    def for_object(cls, service: str, key: str, handler: str) -> "Target":
        return cls(service=service, handler=handler, key=key)

    def path(self) -> str:
        parts = [self.service]
        if self.key is not None:
            parts.append(self.key)
        parts.append(self.handler)
        return "/" + "/".join(quote(part, safe="") for part in parts)


@dataclass(frozen=True)
class SendResponse:
    invocation_id: str
    status: SendStatus


@dataclass(frozen=True)
class Output:
    ready: bool
    value: Any = None


class InvocationHandle:
    """Handle on an existing invocation, addressed by id or idempotency key."""

    def __init__(self, client: "IngressClient", path: str):
        self._client = client
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def attach(self, *, timeout: float | None = None) -> Any:
        response = self._client._request("GET", f"{self._path}/attach", timeout=timeout)
        self._client._raise_for_status(response, "GET", f"{self._path}/attach")
        return _decode(response)

    def attach_async(self) -> Future:
        return self._client._submit(self.attach)

    def output(self) -> Output:
        response = self._client._request("GET", f"{self._path}/output")
        if response.status_code == OUTPUT_NOT_READY_STATUS:
            return Output(ready=False)
        self._client._raise_for_status(response, "GET", f"{self._path}/output")
        return Output(ready=True, value=_decode(response))


class IngressClient:
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
        # Talk to the local containers directly, never through HTTP(S)_PROXY.
        self._session.trust_env = False
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    def __enter__(self) -> "IngressClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
        self._session.close()

    def call(
        self,
        target: Target,
        body: Any = None,
        *,
        idempotency_key: str | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        path = target.path()
        response = self._request(
            "POST",
            path,
            body,
            headers=_merge_headers(headers, idempotency_key),
            timeout=timeout,
        )
        self._raise_for_status(response, "POST", path)
        return _decode(response)

    def send(
        self,
        target: Target,
        body: Any = None,
        *,
        idempotency_key: str | None = None,
        headers: dict[str, str] | None = None,
        delay: str | None = None,
    ) -> SendResponse:
        path = f"{target.path()}/send"
        params = {"delay": delay} if delay else None
        response = self._request(
            "POST",
            path,
            body,
            headers=_merge_headers(headers, idempotency_key),
            params=params,
        )
        self._raise_for_status(response, "POST", path)
        data = response.json()
        return SendResponse(invocation_id=data["invocationId"], status=SendStatus(data["status"]))

    def invocation_handle(self, invocation_id: str) -> InvocationHandle:
        return InvocationHandle(self, f"/restate/invocation/{quote(invocation_id, safe='')}")

    def idempotent_invocation_handle(self, target: Target, idempotency_key: str) -> InvocationHandle:
        path = f"/restate/invocation{target.path()}/{quote(idempotency_key, safe='')}"
        return InvocationHandle(self, path)

    def _request(
        self,
        method: str,
        path: str,
        body: Any = _NO_BODY,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        request_timeout = timeout if timeout is not None else self._timeout
        kwargs: dict[str, Any] = {"headers": headers, "params": params, "timeout": request_timeout}
        if body is not _NO_BODY and body is not None:
            kwargs["json"] = body
        logger.debug("%s %s", method, url)
        try:
            return self._session.request(method, url, **kwargs)
        except requests.exceptions.Timeout as exc:
            raise IngressTimeoutError(
                f"{method} {path} timed out after {request_timeout}s"
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise IngressError(f"{method} {path} failed: {exc}") from exc

    def _raise_for_status(self, response: requests.Response, method: str, path: str) -> None:
        if response.status_code < 400:
            return
        body = response.text
        raise IngressError(
            f"{method} {path} returned {response.status_code}: {body}",
            status_code=response.status_code,
            body=body,
        )

    def _submit(self, fn: Callable[[], Any]) -> Future:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=4, thread_name_prefix="ingress-attach"
                )
            return self._executor.submit(fn)


def _merge_headers(
    headers: dict[str, str] | None, idempotency_key: str | None
) -> dict[str, str]:
    merged = dict(headers or {})
    if idempotency_key:
        merged[IDEMPOTENCY_KEY_HEADER] = idempotency_key
    return merged


def _decode(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text

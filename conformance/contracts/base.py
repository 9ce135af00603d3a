"""
Shared plumbing for the typed test-service clients.
"""

from __future__ import annotations

from typing import Any, Callable, ClassVar, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from conformance.clients.ingress import IngressClient, Target

ClientT = TypeVar("ClientT", bound="ContractClient")


class ContractModel(BaseModel):
    """Wire payload. Fields are snake_case in Python and camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ContractClient:
    """
    Base for typed service clients.

    A client either calls handlers (request/response) or, once obtained through
    send(), fires invocations and returns the runtime's SendResponse instead of
    the handler output.
    """

    SERVICE_NAME: ClassVar[str]
    KEYED: ClassVar[bool] = False

    def __init__(
        self,
        ingress: IngressClient,
        key: str | None = None,
        *,
        send_mode: bool = False,
        delay: str | None = None,
    ):
        if self.KEYED and key is None:
            raise ValueError(f"{self.SERVICE_NAME} is a virtual object and requires a key")
        self._ingress = ingress
        self._key = key
        self._send_mode = send_mode
        self._delay = delay

    @classmethod
    def from_client(cls: type[ClientT], ingress: IngressClient, key: str | None = None) -> ClientT:
        return cls(ingress, key)

    @property
    def key(self) -> str | None:
        return self._key

    def send(self: ClientT, delay: str | None = None) -> ClientT:
        return type(self)(self._ingress, self._key, send_mode=True, delay=delay)

    def target(self, handler: str) -> Target:
        if self.KEYED:
            return Target.for_object(self.SERVICE_NAME, self._key, handler)
        return Target.for_service(self.SERVICE_NAME, handler)

    def _invoke(
        self,
        handler: str,
        body: Any = None,
        *,
        parse: Callable[[Any], Any] | None = None,
        idempotency_key: str | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        if isinstance(body, ContractModel):
            body = body.to_json()
        target = self.target(handler)
        if self._send_mode:
            return self._ingress.send(
                target,
                body,
                idempotency_key=idempotency_key,
                headers=headers,
                delay=self._delay,
            )
        result = self._ingress.call(
            target,
            body,
            idempotency_key=idempotency_key,
            headers=headers,
            timeout=timeout,
        )
        return parse(result) if parse else result

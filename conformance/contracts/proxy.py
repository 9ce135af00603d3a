from __future__ import annotations

import json
from typing import Any

from conformance.contracts.base import ContractClient, ContractModel


class ProxyRequest(ContractModel):
    """Invocation forwarded by the proxy. `message` carries the raw JSON body bytes."""

    service_name: str
    virtual_object_key: str | None = None
    handler_name: str
    message: list[int]
    delay_millis: int | None = None

    @classmethod
    def for_json_body(
        cls,
        service_name: str,
        virtual_object_key: str | None,
        handler_name: str,
        body: Any,
        *,
        delay_millis: int | None = None,
    ) -> "ProxyRequest":
        return cls(
            service_name=service_name,
            virtual_object_key=virtual_object_key,
            handler_name=handler_name,
            message=list(json.dumps(body).encode("utf-8")),
            delay_millis=delay_millis,
        )


class ManyCallRequest(ContractModel):
    proxy_request: ProxyRequest
    one_way_call: bool
    await_at_the_end: bool


class ProxyClient(ContractClient):
    SERVICE_NAME = "Proxy"

    def call(self, request: ProxyRequest, **options) -> list[int]:
        return self._invoke("call", request, **options)

    def one_way_call(self, request: ProxyRequest, **options) -> str:
        return self._invoke("oneWayCall", request, **options)

    def many_calls(self, requests: list[ManyCallRequest], **options) -> None:
        return self._invoke("manyCalls", [request.to_json() for request in requests], **options)

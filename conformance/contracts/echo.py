from __future__ import annotations

from conformance.contracts.base import ContractClient


class EchoClient(ContractClient):
    SERVICE_NAME = "Echo"

    def block_then_echo(self, awakeable_key: str, **options) -> str:
        return self._invoke("blockThenEcho", awakeable_key, **options)


class HeadersPassThroughTestClient(ContractClient):
    SERVICE_NAME = "HeadersPassThroughTest"

    def echo_headers(self, **options) -> dict[str, str]:
        return self._invoke("echoHeaders", parse=lambda value: dict(value or {}), **options)

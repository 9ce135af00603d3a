from __future__ import annotations

from conformance.contracts.base import ContractClient


class ReceiverClient(ContractClient):
    SERVICE_NAME = "Receiver"
    KEYED = True

    def ping(self, **options) -> str:
        return self._invoke("ping", **options)

    def set_value(self, value: str, **options) -> None:
        return self._invoke("setValue", value, **options)

    def get_value(self, **options) -> str:
        return self._invoke("getValue", **options)

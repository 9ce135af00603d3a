from __future__ import annotations

from conformance.contracts.base import ContractClient


class ListObjectClient(ContractClient):
    SERVICE_NAME = "ListObject"
    KEYED = True

    def append(self, value: str, **options) -> None:
        return self._invoke("append", value, **options)

    def get(self, **options) -> list[str]:
        return self._invoke("get", parse=lambda values: list(values or []), **options)

    def clear(self, **options) -> list[str]:
        return self._invoke("clear", parse=lambda values: list(values or []), **options)

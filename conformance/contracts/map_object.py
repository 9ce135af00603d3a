from __future__ import annotations

from conformance.contracts.base import ContractClient, ContractModel


class Entry(ContractModel):
    key: str
    value: str


class MapObjectClient(ContractClient):
    SERVICE_NAME = "MapObject"
    KEYED = True

    def set(self, entry: Entry, **options) -> None:
        return self._invoke("set", entry, **options)

    def get(self, key: str, **options) -> str:
        return self._invoke("get", key, parse=lambda value: value or "", **options)

    def clear_all(self, **options) -> list[Entry]:
        return self._invoke(
            "clearAll",
            parse=lambda entries: [Entry.model_validate(e) for e in entries or []],
            **options,
        )

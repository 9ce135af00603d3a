from __future__ import annotations

from conformance.contracts.base import ContractClient


class AwakeableHolderClient(ContractClient):
    """Parks an awakeable id under a key so a test can complete it later."""

    SERVICE_NAME = "AwakeableHolder"
    KEYED = True

    def hold(self, awakeable_id: str, **options) -> None:
        return self._invoke("hold", awakeable_id, **options)

    def has_awakeable(self, **options) -> bool:
        return self._invoke("hasAwakeable", parse=bool, **options)

    def unlock(self, payload: str, **options) -> None:
        return self._invoke("unlock", payload, **options)

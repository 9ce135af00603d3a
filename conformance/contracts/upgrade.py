from __future__ import annotations

from conformance.contracts.base import ContractClient


class UpgradeTestClient(ContractClient):
    SERVICE_NAME = "UpgradeTest"

    def execute_simple(self, **options) -> str:
        return self._invoke("executeSimple", **options)

    def execute_complex(self, **options) -> str:
        return self._invoke("executeComplex", **options)

from __future__ import annotations

from conformance.contracts.base import ContractClient


class KillTestRunnerClient(ContractClient):
    SERVICE_NAME = "KillTestRunner"

    def start_call_tree(self, **options) -> None:
        return self._invoke("startCallTree", **options)


class KillTestSingletonClient(ContractClient):
    SERVICE_NAME = "KillTestSingleton"
    KEYED = True

    def recursive_call(self, **options) -> None:
        return self._invoke("recursiveCall", **options)

    def is_unlocked(self, **options) -> None:
        return self._invoke("isUnlocked", **options)

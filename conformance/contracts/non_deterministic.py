from __future__ import annotations

from conformance.contracts.base import ContractClient

HANDLERS = (
    "leftSleepRightCall",
    "callDifferentMethod",
    "backgroundInvokeWithDifferentTargets",
    "setDifferentKey",
)


class NonDeterministicClient(ContractClient):
    """Every handler takes a different code path on replay."""

    SERVICE_NAME = "NonDeterministic"
    KEYED = True

    def invoke(self, handler: str, **options) -> None:
        if handler not in HANDLERS:
            raise ValueError(f"Unknown {self.SERVICE_NAME} handler: {handler}")
        return self._invoke(handler, **options)

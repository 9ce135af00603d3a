from __future__ import annotations

from conformance.contracts.base import ContractClient, ContractModel


class CounterUpdateResponse(ContractModel):
    old_value: int
    new_value: int


class AddRequest(ContractModel):
    counter_name: str
    value: int


class CounterClient(ContractClient):
    SERVICE_NAME = "Counter"
    KEYED = True

    def reset(self, **options) -> None:
        return self._invoke("reset", **options)

    def get(self, **options) -> int:
        return self._invoke("get", parse=int, **options)

    def add(self, value: int, **options) -> CounterUpdateResponse:
        return self._invoke("add", value, parse=CounterUpdateResponse.model_validate, **options)

    def get_and_add(self, value: int, **options) -> CounterUpdateResponse:
        return self._invoke(
            "getAndAdd", value, parse=CounterUpdateResponse.model_validate, **options
        )

    def add_then_fail(self, value: int, **options) -> None:
        return self._invoke("addThenFail", value, **options)


class ProxyCounterClient(ContractClient):
    SERVICE_NAME = "ProxyCounter"

    def add_in_background(self, request: AddRequest, **options) -> None:
        return self._invoke("addInBackground", request, **options)

# Where: conformance/contracts/tests/test_contracts.py
# What: Unit tests for the typed service clients and their payloads.
# Why: Handler names and camelCase payloads must match what the test services expect.
from __future__ import annotations

import pytest

from conformance.clients.ingress import SendResponse, SendStatus
from conformance.contracts import (
    ALL_SERVICES,
    AddRequest,
    CounterClient,
    CounterUpdateResponse,
    CreateAwakeableAndAwaitIt,
    GetEnvVariable,
    InterpretRequest,
    NonDeterministicClient,
    ProxyCounterClient,
    ProxyRequest,
)


class _FakeIngress:
    def __init__(self, result=None) -> None:
        self.result = result
        self.calls: list[tuple] = []

    def call(self, target, body=None, **options):
        self.calls.append(("call", target, body, options))
        return self.result

    def send(self, target, body=None, **options):
        self.calls.append(("send", target, body, options))
        return SendResponse(invocation_id="inv_1", status=SendStatus.ACCEPTED)


def test_all_services_lists_every_contract():
    assert {"Counter", "Proxy", "AwakeableHolder", "TestUtilsService", "UpgradeTest"} <= ALL_SERVICES


def test_models_serialize_with_camel_case():
    assert AddRequest(counter_name="c", value=2).to_json() == {"counterName": "c", "value": 2}
    parsed = CounterUpdateResponse.model_validate({"oldValue": 1, "newValue": 3})
    assert (parsed.old_value, parsed.new_value) == (1, 3)


def test_interpret_request_tags_commands():
    request = InterpretRequest(
        list_name="l",
        commands=[GetEnvVariable(env_name="V"), CreateAwakeableAndAwaitIt(awakeable_key="k")],
    )

    assert request.to_json() == {
        "listName": "l",
        "commands": [
            {"type": "getEnvVariable", "envName": "V"},
            {"type": "createAwakeableAndAwaitIt", "awakeableKey": "k"},
        ],
    }


def test_proxy_request_encodes_json_body_as_bytes():
    request = ProxyRequest.for_json_body("Counter", "k", "add", 1)
    assert request.message == [ord("1")]


def test_virtual_object_client_requires_key():
    with pytest.raises(ValueError):
        CounterClient(_FakeIngress())


def test_call_parses_response_and_targets_key():
    fake = _FakeIngress({"oldValue": 0, "newValue": 1})

    result = CounterClient.from_client(fake, "my-key").add(1, idempotency_key="idem")

    assert result.new_value == 1
    kind, target, body, options = fake.calls[0]
    assert (kind, target.service, target.key, target.handler, body) == (
        "call",
        "Counter",
        "my-key",
        "add",
        1,
    )
    assert options["idempotency_key"] == "idem"


def test_send_mode_returns_send_response():
    fake = _FakeIngress()

    sent = ProxyCounterClient.from_client(fake).send().add_in_background(
        AddRequest(counter_name="c", value=2)
    )

    assert sent.status is SendStatus.ACCEPTED
    kind, target, body, _ = fake.calls[0]
    assert kind == "send"
    assert target.key is None
    assert body == {"counterName": "c", "value": 2}


def test_non_deterministic_client_rejects_unknown_handler():
    client = NonDeterministicClient.from_client(_FakeIngress(), "k")
    with pytest.raises(ValueError):
        client.invoke("notAHandler")

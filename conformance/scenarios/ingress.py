# Where: conformance/scenarios/ingress.py
# What: Ingress features: idempotency keys, send/attach, header propagation.
# Why: SDKs must cooperate with the runtime's request deduplication and attach APIs.
from __future__ import annotations

import uuid

from conformance.clients import SendStatus, Target
from conformance.contracts import (
    AddRequest,
    AwakeableHolderClient,
    CounterClient,
    EchoClient,
    HeadersPassThroughTestClient,
    ProxyCounterClient,
)
from conformance.runner.discovery import deployment, test
from conformance.runner.models import ServiceSpec

ATTACH_TIMEOUT = 10.0


def _configure(builder):
    builder.with_service_spec(ServiceSpec.DEFAULT)


def _assert_update(response, old_value: int, new_value: int) -> None:
    assert (response.old_value, response.new_value) == (old_value, new_value)


def _unblock_and_check(ctx, handle, awakeable_key: str, response: str) -> None:
    blocked = handle.attach_async()

    # Output is not ready while the handler waits on the awakeable
    assert not handle.output().ready
    assert not blocked.done()

    holder = AwakeableHolderClient.from_client(ctx.ingress, awakeable_key)
    ctx.awaiter().until(holder.has_awakeable)
    holder.unlock(response)

    assert blocked.result(timeout=ATTACH_TIMEOUT) == response
    output = handle.output()
    assert output.ready
    assert output.value == response


@deployment(_configure)
class IngressTest:
    @test(name="Idempotent invocation to a virtual object", concurrent=True, timeout=15)
    def idempotent_invoke_virtual_object(self, ctx):
        # Short retention so the idempotency key expires within the test
        ctx.admin.modify_service(CounterClient.SERVICE_NAME, idempotency_retention="3s")

        idempotency_key = str(uuid.uuid4())
        counter = CounterClient.from_client(ctx.ingress, str(uuid.uuid4()))

        _assert_update(counter.get_and_add(2, idempotency_key=idempotency_key), 0, 2)
        # Same key, same response, no second update
        _assert_update(counter.get_and_add(2, idempotency_key=idempotency_key), 0, 2)

        def key_expired():
            _assert_update(counter.get_and_add(2, idempotency_key=idempotency_key), 2, 4)

        ctx.awaiter().until_asserted(key_expired)
        assert counter.get() == 4

    @test(name="Idempotent invocation to a service", concurrent=True, timeout=15)
    def idempotent_invoke_service(self, ctx):
        counter_name = str(uuid.uuid4())
        idempotency_key = str(uuid.uuid4())
        counter = CounterClient.from_client(ctx.ingress, counter_name)
        proxy_counter = ProxyCounterClient.from_client(ctx.ingress)

        request = AddRequest(counter_name=counter_name, value=2)
        proxy_counter.add_in_background(request, idempotency_key=idempotency_key)
        proxy_counter.add_in_background(request, idempotency_key=idempotency_key)

        def counted_once():
            assert counter.get() == 2

        ctx.awaiter().until_asserted(counted_once)
        _assert_update(counter.get_and_add(2), 2, 4)

    @test(name="Idempotent invocation to a virtual object using send", concurrent=True, timeout=15)
    def idempotent_invoke_send(self, ctx):
        idempotency_key = str(uuid.uuid4())
        counter = CounterClient.from_client(ctx.ingress, str(uuid.uuid4()))

        first = counter.send().add(2, idempotency_key=idempotency_key)
        assert first.status == SendStatus.ACCEPTED
        second = counter.send().add(2, idempotency_key=idempotency_key)
        assert second.status == SendStatus.PREVIOUSLY_ACCEPTED

        assert first.invocation_id.startswith("inv")
        assert first.invocation_id == second.invocation_id

        def counted_once():
            assert counter.get() == 2

        ctx.awaiter().until_asserted(counted_once)
        _assert_update(counter.get_and_add(2), 2, 4)

    @test(name="Idempotent send then attach/getOutput", concurrent=True, timeout=15)
    def idempotent_send_then_attach(self, ctx):
        awakeable_key = str(uuid.uuid4())
        idempotency_key = str(uuid.uuid4())

        echo = EchoClient.from_client(ctx.ingress)
        sent = echo.send().block_then_echo(awakeable_key, idempotency_key=idempotency_key)
        handle = ctx.ingress.invocation_handle(sent.invocation_id)

        _unblock_and_check(ctx, handle, awakeable_key, "response")

    @test(
        name="Idempotent send then attach/getOutput with idempotency key",
        concurrent=True,
        timeout=15,
    )
    def idempotent_send_then_attach_with_idempotency_key(self, ctx):
        awakeable_key = str(uuid.uuid4())
        idempotency_key = str(uuid.uuid4())

        echo = EchoClient.from_client(ctx.ingress)
        sent = echo.send().block_then_echo(awakeable_key, idempotency_key=idempotency_key)
        assert sent.status == SendStatus.ACCEPTED

        handle = ctx.ingress.idempotent_invocation_handle(
            Target.for_service(EchoClient.SERVICE_NAME, "blockThenEcho"), idempotency_key
        )
        _unblock_and_check(ctx, handle, awakeable_key, "response")

    @test(concurrent=True, timeout=15)
    def headers_pass_through(self, ctx):
        header_name = "x-my-custom-header"
        header_value = "x-my-custom-value"

        headers = HeadersPassThroughTestClient.from_client(ctx.ingress).echo_headers(
            headers={header_name: header_value}
        )
        assert headers.get(header_name) == header_value

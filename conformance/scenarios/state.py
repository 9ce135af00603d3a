# Where: conformance/scenarios/state.py
# What: Virtual object state: increments, one-way calls, state clearing.
# Why: State handling is the core SDK contract every implementation must honour.
from __future__ import annotations

import uuid

from conformance.contracts import (
    CounterClient,
    Entry,
    MapObjectClient,
    ProxyClient,
    ProxyRequest,
)
from conformance.runner.discovery import deployment, tag, test
from conformance.runner.models import ServiceSpec


def _configure(builder):
    builder.with_service_spec(
        ServiceSpec.default_builder().with_services(
            CounterClient.SERVICE_NAME,
            ProxyClient.SERVICE_NAME,
            MapObjectClient.SERVICE_NAME,
        )
    )


@tag("always-suspending", "lazy-state")
@deployment(_configure)
class State:
    @test(concurrent=True)
    def add(self, ctx):
        counter = CounterClient.from_client(ctx.ingress, "add")

        first = counter.add(1)
        assert first.old_value == 0
        assert first.new_value == 1

        second = counter.add(2)
        assert second.old_value == 1
        assert second.new_value == 3

    @test(concurrent=True)
    def proxy_one_way_add(self, ctx):
        counter_id = str(uuid.uuid4())
        proxy = ProxyClient.from_client(ctx.ingress)
        counter = CounterClient.from_client(ctx.ingress, counter_id)

        for _ in range(3):
            proxy.one_way_call(
                ProxyRequest.for_json_body(CounterClient.SERVICE_NAME, counter_id, "add", 1)
            )

        def counted_three():
            assert counter.get() == 3

        ctx.awaiter().until_asserted(counted_three)

    @test(concurrent=True)
    def list_state_and_clear_all(self, ctx):
        map_name = str(uuid.uuid4())
        map_obj = MapObjectClient.from_client(ctx.ingress, map_name)
        another_map_obj = MapObjectClient.from_client(ctx.ingress, f"{map_name}1")

        map_obj.set(Entry(key="my-key-0", value="my-value-0"))
        map_obj.set(Entry(key="my-key-1", value="my-value-1"))
        another_map_obj.set(Entry(key="my-key-2", value="my-value-2"))

        cleared = map_obj.clear_all()
        assert sorted(entry.key for entry in cleared) == ["my-key-0", "my-key-1"]

        assert map_obj.get("my-key-0") == ""
        assert map_obj.get("my-key-1") == ""
        # The other object instance is untouched
        assert another_map_obj.get("my-key-2") == "my-value-2"

# Where: conformance/scenarios/non_determinism.py
# What: Handlers whose replay diverges from the recorded journal.
# Why: SDKs must detect non-determinism instead of executing side effects twice.
from __future__ import annotations

from conformance.clients import IngressError
from conformance.contracts import CounterClient, NonDeterministicClient
from conformance.contracts.non_deterministic import HANDLERS
from conformance.runner.discovery import deployment, tag, test
from conformance.runner.models import ServiceSpec


def _configure(builder):
    builder.with_service_spec(
        ServiceSpec.default_builder().with_services(
            NonDeterministicClient.SERVICE_NAME, CounterClient.SERVICE_NAME
        )
    )
    # Suspend after every step so each handler is replayed, and give up quickly.
    builder.with_runtime_env("RESTATE_WORKER__INVOKER__INACTIVITY_TIMEOUT", "0s")
    builder.with_runtime_env("RESTATE_WORKER__INVOKER__RETRY_POLICY__TYPE", "fixed-delay")
    builder.with_runtime_env("RESTATE_WORKER__INVOKER__RETRY_POLICY__INTERVAL", "100ms")
    builder.with_runtime_env("RESTATE_WORKER__INVOKER__RETRY_POLICY__MAX_ATTEMPTS", "1")


@tag("always-suspending")
@deployment(_configure)
class NonDeterminismErrors:
    @test(name="{0}", concurrent=True, parameters=HANDLERS)
    def method(self, ctx, handler: str):
        non_deterministic = NonDeterministicClient.from_client(ctx.ingress, handler)

        try:
            non_deterministic.invoke(handler)
        except IngressError:
            pass
        else:
            raise AssertionError(f"{handler} should have failed with a non-determinism error")

        # The side effect guarded by the journal never ran
        assert CounterClient.from_client(ctx.ingress, handler).get() == 0

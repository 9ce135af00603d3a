# Where: conformance/scenarios/user_errors.py
# What: Terminal errors raised by handlers and side effects.
# Why: Terminal failures must reach the caller and never roll back committed state.
from __future__ import annotations

import uuid

from conformance.clients import IngressError
from conformance.contracts import CounterClient, FailingClient
from conformance.runner.discovery import deployment, tag, test
from conformance.runner.models import ServiceSpec


def _configure(builder):
    builder.with_service_spec(
        ServiceSpec.default_builder().with_services(
            FailingClient.SERVICE_NAME, CounterClient.SERVICE_NAME
        )
    )


def assert_fails_with(call, expected: str) -> IngressError:
    try:
        call()
    except IngressError as e:
        assert expected in f"{e} {e.body}", f"'{expected}' not found in error: {e}"
        return e
    raise AssertionError(f"Expected the invocation to fail with '{expected}'")


@tag("always-suspending")
@deployment(_configure)
class UserErrors:
    @test(concurrent=True)
    def invocation_with_terminal_error(self, ctx):
        message = str(uuid.uuid4())
        failing = FailingClient.from_client(ctx.ingress, str(uuid.uuid4()))

        assert_fails_with(lambda: failing.terminally_failing_call(message), message)

    @test(concurrent=True)
    def set_state_then_fail_should_persist_state(self, ctx):
        counter_name = f"my-failure-counter-{uuid.uuid4()}"
        counter = CounterClient.from_client(ctx.ingress, counter_name)

        assert_fails_with(lambda: counter.add_then_fail(1), counter_name)

        assert counter.get() == 1

    @test(concurrent=True)
    def internal_call_failure_propagation(self, ctx):
        message = str(uuid.uuid4())
        failing = FailingClient.from_client(ctx.ingress, str(uuid.uuid4()))

        assert_fails_with(lambda: failing.call_terminally_failing_call(message), message)

    @test(concurrent=True)
    def side_effect_with_terminal_error(self, ctx):
        message = str(uuid.uuid4())
        failing = FailingClient.from_client(ctx.ingress, str(uuid.uuid4()))

        assert_fails_with(lambda: failing.terminally_failing_side_effect(message), message)

    @test(concurrent=True)
    def side_effect_with_eventual_success(self, ctx):
        failing = FailingClient.from_client(ctx.ingress, str(uuid.uuid4()))

        assert failing.side_effect_succeeds_after_given_attempts(4) >= 4

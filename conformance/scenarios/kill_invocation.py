# Where: conformance/scenarios/kill_invocation.py
# What: Killing a call tree that holds a virtual object lock.
# Why: Kill must release every lock held by the killed invocations.
from __future__ import annotations

from conformance.clients import TerminationMode
from conformance.contracts import (
    AwakeableHolderClient,
    KillTestRunnerClient,
    KillTestSingletonClient,
)
from conformance.runner.discovery import deployment, test
from conformance.runner.models import ServiceSpec


def _configure(builder):
    builder.with_service_spec(
        ServiceSpec.default_builder().with_services(
            KillTestRunnerClient.SERVICE_NAME,
            KillTestSingletonClient.SERVICE_NAME,
            AwakeableHolderClient.SERVICE_NAME,
        )
    )


@deployment(_configure)
class KillInvocation:
    @test
    def kill(self, ctx):
        runner = KillTestRunnerClient.from_client(ctx.ingress)
        invocation_id = runner.send().start_call_tree().invocation_id

        holder = AwakeableHolderClient.from_client(ctx.ingress, "kill")
        ctx.awaiter().until(holder.has_awakeable)

        ctx.admin.terminate_invocation(invocation_id, TerminationMode.KILL)

        # Succeeds only once the killed call tree released the singleton
        KillTestSingletonClient.from_client(ctx.ingress, "").is_unlocked()

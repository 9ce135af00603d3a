# Where: conformance/scenarios/cancel_invocation.py
# What: Cancelling an invocation blocked on a call, a sleep or an awakeable.
# Why: Cancellation must propagate through the call tree and release locks.
from __future__ import annotations

import uuid

from conformance.clients import IngressTimeoutError, TerminationMode
from conformance.contracts import (
    AwakeableHolderClient,
    BlockingOperation,
    CancelTestBlockingServiceClient,
    CancelTestRunnerClient,
)
from conformance.runner.discovery import deployment, test
from conformance.runner.models import ServiceSpec

VERIFY_TIMEOUT = 1.0


def _configure(builder):
    builder.with_service_spec(
        ServiceSpec.default_builder().with_services(
            CancelTestRunnerClient.SERVICE_NAME,
            CancelTestBlockingServiceClient.SERVICE_NAME,
            AwakeableHolderClient.SERVICE_NAME,
        )
    )


@deployment(_configure)
class CancelInvocation:
    @test(name="cancel blocked invocation on {0}", parameters=list(BlockingOperation))
    def cancel_invocation(self, ctx, operation: BlockingOperation):
        key = str(uuid.uuid4())
        runner = CancelTestRunnerClient.from_client(ctx.ingress, key)
        blocking_service = CancelTestBlockingServiceClient.from_client(ctx.ingress, key)

        invocation_id = runner.send().start_test(operation).invocation_id

        holder = AwakeableHolderClient.from_client(ctx.ingress, "cancel")
        ctx.awaiter().until(holder.has_awakeable)
        holder.unlock("cancel")

        # The cancel signal may arrive before the blocking call was made, so retry.
        def cancelled() -> bool:
            ctx.admin.terminate_invocation(invocation_id, TerminationMode.CANCEL)
            return runner.verify_test(timeout=VERIFY_TIMEOUT)

        ctx.awaiter().ignore_exceptions(IngressTimeoutError).until(cancelled)

        # The blocking service must have been unlocked
        blocking_service.is_unlocked()

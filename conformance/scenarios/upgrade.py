# Where: conformance/scenarios/upgrade.py
# What: Registering a new service revision while invocations are in flight.
# Why: In-flight invocations keep their revision; new invocations pick up the new one.
from __future__ import annotations

from conformance.contracts import (
    AwakeableHolderClient,
    CreateAwakeableAndAwaitIt,
    GetEnvVariable,
    InterpretRequest,
    ListObjectClient,
    TestUtilsServiceClient,
    UpgradeTestClient,
)
from conformance.runner.discovery import deployment, tag, test
from conformance.runner.models import ServiceSpec

UPGRADE_TEST_ENV = "UPGRADETEST_VERSION"
VERSION2 = "version2"


def register_version2(ctx) -> None:
    spec = ctx.deployment.services[VERSION2].spec
    ctx.admin.register_deployment(spec.registration_url, force=False)


def _in_flight_deployment(builder):
    builder.with_service_spec(
        ServiceSpec.builder("version1")
        .with_services(
            TestUtilsServiceClient.SERVICE_NAME,
            ListObjectClient.SERVICE_NAME,
            AwakeableHolderClient.SERVICE_NAME,
        )
        .with_env(UPGRADE_TEST_ENV, "v1")
    )
    builder.with_service_spec(
        ServiceSpec.builder(VERSION2)
        .skip_registration()
        .with_services(TestUtilsServiceClient.SERVICE_NAME)
        .with_env(UPGRADE_TEST_ENV, "v2")
    )


def _new_invocation_deployment(builder):
    builder.with_service_spec(
        ServiceSpec.builder("version1")
        .with_services(UpgradeTestClient.SERVICE_NAME)
        .with_env(UPGRADE_TEST_ENV, "v1")
    )
    builder.with_service_spec(
        ServiceSpec.builder(VERSION2)
        .skip_registration()
        .with_services(UpgradeTestClient.SERVICE_NAME)
        .with_env(UPGRADE_TEST_ENV, "v2")
    )


@tag("always-suspending")
@deployment(_in_flight_deployment)
class UpgradeWithInFlightInvocation:
    @test
    def in_flight_invocation(self, ctx):
        utils = TestUtilsServiceClient.from_client(ctx.ingress)
        awakeable_key = "upgrade"
        list_name = "upgrade-test"

        utils.send().interpret_commands(
            InterpretRequest(
                list_name=list_name,
                commands=[
                    GetEnvVariable(env_name=UPGRADE_TEST_ENV),
                    CreateAwakeableAndAwaitIt(awakeable_key=awakeable_key),
                    GetEnvVariable(env_name=UPGRADE_TEST_ENV),
                ],
            )
        )

        holder = AwakeableHolderClient.from_client(ctx.ingress, awakeable_key)
        ctx.awaiter().until(holder.has_awakeable)

        register_version2(ctx)

        # New invocations reach v2 once the registration is active
        ctx.awaiter().until_call_to(
            lambda: utils.get_env_variable(UPGRADE_TEST_ENV), lambda value: value == "v2"
        )

        holder.unlock("unlocked")

        # The in-flight invocation completed on v1
        list_obj = ListObjectClient.from_client(ctx.ingress, list_name)

        def completed_on_v1():
            assert list_obj.get() == ["v1", "unlocked", "v1"]

        ctx.awaiter().until_asserted(completed_on_v1)


@tag("always-suspending")
@deployment(_new_invocation_deployment)
class UpgradeWithNewInvocation:
    @test
    def executes_new_invocation_with_latest_service_revisions(self, ctx):
        upgrade_test = UpgradeTestClient.from_client(ctx.ingress)

        assert upgrade_test.execute_simple() == "v1"

        register_version2(ctx)

        ctx.awaiter().until_call_to(upgrade_test.execute_simple, lambda value: value == "v2")

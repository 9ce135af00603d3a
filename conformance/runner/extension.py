# Where: conformance/runner/extension.py
# What: Binds one deployment to the lifetime of one test class.
# Why: Tests receive endpoints through an explicit context instead of injection.
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

import docker.errors

from conformance.clients.admin import AdminClient
from conformance.clients.ingress import IngressClient
from conformance.runner.await_util import Awaiter
from conformance.runner.config import GlobalConfig
from conformance.runner.deployer import ContainerOrchestrator, lifecycle_deadline
from conformance.runner.discovery import Configure, TestId
from conformance.runner.exceptions import ContainerStartError, HarnessError
from conformance.runner.models import (
    DeploymentDescriptor,
    DeploymentDescriptorBuilder,
    RunningDeployment,
)

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[..., ContainerOrchestrator]


@dataclass
class TestContext:
    """Everything a test method needs to drive the deployment of its class."""

    test_id: TestId
    ingress: IngressClient
    admin_url: str
    admin: AdminClient
    deployment: RunningDeployment
    config: GlobalConfig
    _closed: bool = field(default=False, repr=False)

    __test__ = False

    @property
    def ingress_url(self) -> str:
        return self.deployment.ingress_url

    def awaiter(self) -> Awaiter:
        return Awaiter(timeout=self.config.AWAIT_TIMEOUT, poll_interval=self.config.AWAIT_POLL_INTERVAL)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.ingress.close()
        self.admin.close()


class DeployerExtension:
    def __init__(
        self,
        configure: Configure,
        config: GlobalConfig,
        *,
        class_name: str,
        report_dir: Optional[Path] = None,
        orchestrator_factory: Optional[OrchestratorFactory] = None,
    ):
        self.configure = configure
        self.config = config
        self.class_name = class_name
        self.report_dir = report_dir
        self._factory = orchestrator_factory or ContainerOrchestrator
        self._orchestrator: Optional[ContainerOrchestrator] = None
        self.deployment: Optional[RunningDeployment] = None

    def descriptor(self) -> DeploymentDescriptor:
        builder = DeploymentDescriptorBuilder()
        self.configure(builder)
        return builder.build()

    def before_all(self) -> RunningDeployment:
        descriptor = self.descriptor()
        try:
            self._orchestrator = self._factory(
                self.config, report_dir=self.report_dir, owner=self.class_name
            )
        except docker.errors.DockerException as e:
            raise ContainerStartError("docker", e) from e
        self.deployment = self._orchestrator.start(
            descriptor, deadline=lifecycle_deadline(self.config)
        )
        return self.deployment

    def after_all(self) -> None:
        orchestrator, self._orchestrator = self._orchestrator, None
        if orchestrator is None:
            return
        try:
            if self.deployment is not None:
                orchestrator.stop(self.deployment)
        finally:
            orchestrator.close()

    def context(self, test_id: TestId) -> TestContext:
        if self.deployment is None:
            raise HarnessError(f"{self.class_name} has no running deployment")
        timeout = self.config.REQUEST_TIMEOUT
        return TestContext(
            test_id=test_id,
            ingress=IngressClient(self.deployment.ingress_url, timeout=timeout),
            admin_url=self.deployment.admin_url,
            admin=AdminClient(self.deployment.admin_url, timeout=timeout),
            deployment=self.deployment,
            config=self.config,
        )


def describe_deployment(deployment: Any) -> str:
    if deployment is None:
        return "<none>"
    return f"{deployment.deployment_id} ingress={deployment.ingress_url} admin={deployment.admin_url}"

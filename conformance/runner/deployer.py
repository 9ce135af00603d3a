"""
Container orchestration for one test class.

Starts an isolated docker network with the runtime-under-test and the service
containers described by a DeploymentDescriptor, registers the services with
the runtime, and tears everything down again when the class is done.
"""

from __future__ import annotations

import contextvars
import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Optional

import docker
import docker.errors
import requests

from conformance.clients.admin import AdminClient
from conformance.clients.exceptions import AdminApiError
from conformance.runner.config import GlobalConfig
from conformance.runner.constants import (
    ADMIN_HEALTH_PATH,
    DEFAULT_RUNTIME_ENV,
    ENV_PORT,
    ENV_SERVICES,
    INGRESS_HEALTH_PATH,
    LABEL_DEPLOYMENT,
    LABEL_MANAGED,
    LABEL_ROLE,
    RESOURCE_PREFIX,
    RUNTIME_ADMIN_PORT,
    RUNTIME_ALIAS,
    RUNTIME_INGRESS_PORT,
)
from conformance.runner.exceptions import (
    ContainerStartError,
    DeploymentError,
    RegistrationError,
)
from conformance.runner.models import (
    ContainerTarget,
    DeploymentDescriptor,
    RunningDeployment,
    ServiceDeployment,
    ServiceSpec,
)
from conformance.runner.readiness import wait_for_http, wait_for_ports

logger = logging.getLogger(__name__)

# Images already pulled by this process, shared by every orchestrator.
_pulled_images: set[str] = set()
_pull_lock = threading.Lock()


class ContainerOrchestrator:
    """
    Owns the docker resources of a single test class.

    Only containers and networks recorded in the RunningDeployment it returned
    are ever stopped or removed.
    """

    def __init__(
        self,
        config: GlobalConfig,
        *,
        client: Optional[Any] = None,
        report_dir: Optional[Path] = None,
        owner: str = "deployment",
    ):
        self.config = config
        self.client = client or docker.from_env()
        self.report_dir = report_dir
        self.owner = owner

    def close(self) -> None:
        try:
            self.client.close()
        except docker.errors.DockerException as e:
            logger.warning(f"Failed to close docker client: {e}")

    def start(
        self, descriptor: DeploymentDescriptor, *, deadline: Optional[float] = None
    ) -> RunningDeployment:
        """
        Start the runtime and all service containers, then register the services.

        `deadline` is a time.monotonic() instant bounding every readiness wait.
        """
        deployment_id = uuid.uuid4().hex[:12]
        retain = (
            descriptor.retain_after_end
            if descriptor.retain_after_end is not None
            else self.config.RETAIN_AFTER_END
        )
        labels = {LABEL_MANAGED: "true", LABEL_DEPLOYMENT: deployment_id}
        created: list[ContainerTarget] = []
        created_lock = threading.Lock()
        network = None

        def track(target: ContainerTarget) -> None:
            with created_lock:
                created.append(target)

        logger.info(
            f"Starting deployment {deployment_id} for {self.owner} "
            f"with specs {[spec.name for spec in descriptor.service_specs]}"
        )
        try:
            network = self.client.networks.create(
                f"{RESOURCE_PREFIX}-{deployment_id}", driver="bridge", labels=labels
            )
            self._ensure_image(self.config.RUNTIME_CONTAINER_IMAGE)
            if not self.config.SERVICE_CONTAINER_IMAGE:
                raise ContainerStartError("services", "SERVICE_CONTAINER_IMAGE is not set")
            self._ensure_image(self.config.SERVICE_CONTAINER_IMAGE)

            runtime = self._start_runtime(deployment_id, network, descriptor, labels, track)
            deployment = RunningDeployment(
                deployment_id=deployment_id,
                network=network,
                runtime=runtime,
                admin_url=runtime.url(RUNTIME_ADMIN_PORT),
                ingress_url=runtime.url(RUNTIME_INGRESS_PORT),
                retain=retain,
            )
            self._wait_for_runtime(deployment, deadline)
            started = self._start_services(
                deployment_id, network, descriptor, labels, deadline, track
            )
            for spec in descriptor.service_specs:
                deployment.services[spec.name] = ServiceDeployment(
                    spec=spec, target=started[spec.name]
                )
            self._register_services(deployment)
        except DeploymentError:
            self._abort(deployment_id, created, network, retain)
            raise
        except Exception as e:
            # docker-py leaves transport errors from requests unwrapped.
            self._abort(deployment_id, created, network, retain)
            raise ContainerStartError(deployment_id, e) from e

        logger.info(
            f"Deployment {deployment_id} ready: ingress={deployment.ingress_url} "
            f"admin={deployment.admin_url}"
        )
        return deployment

    def stop(self, deployment: RunningDeployment) -> None:
        if deployment.stopped:
            return
        if deployment.retain:
            names = ", ".join(target.name for target in deployment.containers())
            logger.info(
                f"Retaining deployment {deployment.deployment_id} "
                f"(network {getattr(deployment.network, 'name', deployment.network)}): {names}"
            )
            return
        deployment.stopped = True
        services = [service.target for service in deployment.services.values()]
        self._teardown(list(reversed(services)) + [deployment.runtime], deployment.network)
        logger.info(f"Deployment {deployment.deployment_id} stopped")

    def _ensure_image(self, image: str) -> None:
        policy = self.config.IMAGE_PULL_POLICY
        if policy == "never":
            return
        with _pull_lock:
            if image in _pulled_images:
                return
            if policy == "missing":
                try:
                    self.client.images.get(image)
                    _pulled_images.add(image)
                    return
                except docker.errors.ImageNotFound:
                    pass
            logger.info(f"Pulling image {image}")
            try:
                self.client.images.pull(image)
            except docker.errors.APIError as e:
                raise ContainerStartError(image, e) from e
            _pulled_images.add(image)

    def _create_container(
        self,
        name: str,
        image: str,
        *,
        env: dict[str, str],
        ports: list[int],
        labels: dict[str, str],
        role: str,
    ) -> Any:
        try:
            container = self.client.containers.create(
                image,
                name=name,
                detach=True,
                environment=env,
                labels={**labels, LABEL_ROLE: role},
                ports={f"{port}/tcp": None for port in ports},
            )
        except docker.errors.APIError as e:
            raise ContainerStartError(name, e) from e
        return container

    def _connect_and_start(self, target: ContainerTarget, network: Any, alias: str) -> None:
        try:
            network.connect(target.container, aliases=[alias])
            target.container.start()
        except docker.errors.APIError as e:
            raise ContainerStartError(target.name, e) from e

    def _start_runtime(
        self,
        deployment_id: str,
        network: Any,
        descriptor: DeploymentDescriptor,
        labels: dict[str, str],
        track,
    ) -> ContainerTarget:
        env = dict(DEFAULT_RUNTIME_ENV)
        env.update(self.config.ADDITIONAL_RUNTIME_ENVS)
        env.update(descriptor.runtime_env)
        container = self._create_container(
            f"{RESOURCE_PREFIX}-{deployment_id}-{RUNTIME_ALIAS}",
            self.config.RUNTIME_CONTAINER_IMAGE,
            env=env,
            ports=[RUNTIME_INGRESS_PORT, RUNTIME_ADMIN_PORT],
            labels=labels,
            role="runtime",
        )
        target = ContainerTarget(
            container,
            exposed_ports_override=(RUNTIME_INGRESS_PORT, RUNTIME_ADMIN_PORT),
            host=self.config.DOCKER_HOST_ADDRESS,
        )
        track(target)
        self._connect_and_start(target, network, RUNTIME_ALIAS)
        return target

    def _wait_for_runtime(self, deployment: RunningDeployment, deadline: Optional[float]) -> None:
        timeout = self.config.CONTAINER_READY_TIMEOUT
        wait_for_ports(deployment.runtime, timeout=timeout, deadline=deadline)
        wait_for_http(
            "runtime admin",
            f"{deployment.admin_url}{ADMIN_HEALTH_PATH}",
            timeout=timeout,
            deadline=deadline,
            target=deployment.runtime,
        )
        wait_for_http(
            "runtime ingress",
            f"{deployment.ingress_url}{INGRESS_HEALTH_PATH}",
            timeout=timeout,
            deadline=deadline,
            target=deployment.runtime,
        )

    def _start_service(
        self,
        deployment_id: str,
        network: Any,
        spec: ServiceSpec,
        labels: dict[str, str],
        deadline: Optional[float],
        track,
    ) -> ContainerTarget:
        env = {ENV_SERVICES: ",".join(spec.services), ENV_PORT: str(spec.port)}
        env.update(spec.env)
        container = self._create_container(
            f"{RESOURCE_PREFIX}-{deployment_id}-{spec.name}",
            self.config.SERVICE_CONTAINER_IMAGE,
            env=env,
            ports=[spec.port],
            labels=labels,
            role="service",
        )
        target = ContainerTarget(
            container,
            exposed_ports_override=(spec.port,),
            host=self.config.DOCKER_HOST_ADDRESS,
        )
        track(target)
        self._connect_and_start(target, network, spec.name)
        wait_for_ports(target, timeout=self.config.CONTAINER_READY_TIMEOUT, deadline=deadline)
        logger.info(f"Service container {spec.name} is ready")
        return target

    def _start_services(
        self,
        deployment_id: str,
        network: Any,
        descriptor: DeploymentDescriptor,
        labels: dict[str, str],
        deadline: Optional[float],
        track,
    ) -> dict[str, ContainerTarget]:
        started: dict[str, ContainerTarget] = {}
        errors: list[BaseException] = []
        with ThreadPoolExecutor(
            max_workers=descriptor.start_workers(), thread_name_prefix="service-start"
        ) as pool:
            futures = {
                pool.submit(
                    contextvars.copy_context().run,
                    self._start_service,
                    deployment_id,
                    network,
                    spec,
                    labels,
                    deadline,
                    track,
                ): spec
                for spec in descriptor.service_specs
            }
            for future in as_completed(futures):
                spec = futures[future]
                try:
                    started[spec.name] = future.result()
                except Exception as e:
                    logger.error(f"Service container {spec.name} failed to start: {e}")
                    errors.append(e)
        if errors:
            first = errors[0]
            if isinstance(first, DeploymentError):
                raise first
            raise ContainerStartError(deployment_id, first) from first
        return started

    def _register_services(self, deployment: RunningDeployment) -> None:
        with AdminClient(deployment.admin_url, timeout=self.config.REQUEST_TIMEOUT) as admin:
            for name, service in deployment.services.items():
                if service.spec.skip_registration:
                    logger.info(f"Skipping registration of {name}")
                    continue
                uri = service.spec.registration_url
                try:
                    response = admin.register_deployment(uri, force=False)
                except AdminApiError as e:
                    raise RegistrationError(name, uri, e) from e
                service.registered = True
                service.registration_id = response.get("id")
                logger.info(f"Registered {name} at {uri} as {service.registration_id}")

    def _abort(
        self,
        deployment_id: str,
        created: list[ContainerTarget],
        network: Any,
        retain: bool,
    ) -> None:
        if retain:
            logger.warning(
                f"Deployment {deployment_id} failed; retaining "
                f"{[target.name for target in created]} for inspection"
            )
            return
        logger.warning(f"Deployment {deployment_id} failed; removing partial resources")
        self._teardown(list(reversed(created)), network)

    def _teardown(self, targets: list[ContainerTarget], network: Any) -> None:
        for target in targets:
            self._dump_logs(target)
            try:
                target.container.stop(timeout=self.config.CONTAINER_STOP_TIMEOUT)
            except docker.errors.NotFound:
                continue
            except (docker.errors.APIError, requests.exceptions.RequestException) as e:
                logger.warning(f"Failed to stop {target.name}, forcing removal: {e}")
            try:
                target.container.remove(force=True, v=True)
            except docker.errors.NotFound:
                pass
            except (docker.errors.APIError, requests.exceptions.RequestException) as e:
                logger.error(f"Docker API error while removing {target.name}: {e}")
        if network is None:
            return
        try:
            network.remove()
        except docker.errors.NotFound:
            pass
        except (docker.errors.APIError, requests.exceptions.RequestException) as e:
            logger.error(f"Docker API error while removing network: {e}")

    def _dump_logs(self, target: ContainerTarget) -> None:
        if self.report_dir is None:
            return
        log_dir = self.report_dir / self.owner
        try:
            logs = target.container.logs(stdout=True, stderr=True, timestamps=True)
        except docker.errors.NotFound:
            return
        except (docker.errors.APIError, requests.exceptions.RequestException) as e:
            logger.error(f"Failed to read logs of {target.name}: {e}")
            return
        log_dir.mkdir(parents=True, exist_ok=True)
        (log_dir / f"{target.name}.log").write_bytes(logs or b"")


def lifecycle_deadline(config: GlobalConfig) -> Optional[float]:
    timeout = config.lifecycle_timeout()
    if timeout is None:
        return None
    return time.monotonic() + timeout

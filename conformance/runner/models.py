# Where: conformance/runner/models.py
# What: Deployment descriptors and handles on running containers.
# Why: Keep deployment inputs explicit and immutable across threads.
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ClassVar, Mapping

from conformance.contracts import ALL_SERVICES
from conformance.runner.constants import SERVICE_PORT
from conformance.runner.exceptions import ContainerStartError, DescriptorError

DEFAULT_SPEC_NAME = "default"


@dataclass(frozen=True)
class ServiceSpec:
    """A service container: its network alias, hosted services and environment."""

    name: str
    services: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)
    skip_registration: bool = False
    port: int = SERVICE_PORT

    DEFAULT: ClassVar["ServiceSpec"]

    @staticmethod
    def builder(name: str) -> "ServiceSpecBuilder":
        return ServiceSpecBuilder(name)

    @staticmethod
    def default_builder() -> "ServiceSpecBuilder":
        return ServiceSpecBuilder(DEFAULT_SPEC_NAME)

    @property
    def registration_url(self) -> str:
        return f"http://{self.name}:{self.port}/"


class ServiceSpecBuilder:
    def __init__(self, name: str):
        self._name = name
        self._services: list[str] = []
        self._env: dict[str, str] = {}
        self._skip_registration = False
        self._port = SERVICE_PORT

    def with_services(self, *services: str) -> "ServiceSpecBuilder":
        for service in services:
            if service not in self._services:
                self._services.append(service)
        return self

    def with_env(self, key: str, value: str) -> "ServiceSpecBuilder":
        self._env[key] = value
        return self

    def with_envs(self, env: Mapping[str, str]) -> "ServiceSpecBuilder":
        self._env.update(env)
        return self

    def with_port(self, port: int) -> "ServiceSpecBuilder":
        self._port = port
        return self

    def skip_registration(self) -> "ServiceSpecBuilder":
        self._skip_registration = True
        return self

    def build(self) -> ServiceSpec:
        if not self._name or not self._name.strip():
            raise DescriptorError("ServiceSpec name must not be empty")
        if not self._services:
            raise DescriptorError(f"ServiceSpec '{self._name}' must host at least one service")
        unknown = sorted(set(self._services) - ALL_SERVICES)
        if unknown:
            raise DescriptorError(
                f"ServiceSpec '{self._name}' references unknown services: {', '.join(unknown)}"
            )
        return ServiceSpec(
            name=self._name,
            services=tuple(self._services),
            env=MappingProxyType(dict(self._env)),
            skip_registration=self._skip_registration,
            port=self._port,
        )


ServiceSpec.DEFAULT = ServiceSpec.default_builder().with_services(*sorted(ALL_SERVICES)).build()


@dataclass(frozen=True)
class DeploymentDescriptor:
    service_specs: tuple[ServiceSpec, ...]
    runtime_env: Mapping[str, str] = field(default_factory=dict)
    parallelism: int | None = None
    retain_after_end: bool | None = None

    def start_workers(self) -> int:
        if self.parallelism is None:
            return max(1, len(self.service_specs))
        return self.parallelism


class DeploymentDescriptorBuilder:
    """Handed to a test class's configuration callback."""

    def __init__(self):
        self._specs: list[ServiceSpec] = []
        self._runtime_env: dict[str, str] = {}
        self._parallelism: int | None = None
        self._retain: bool | None = None

    def with_service_spec(self, spec: ServiceSpec | ServiceSpecBuilder) -> "DeploymentDescriptorBuilder":
        if isinstance(spec, ServiceSpecBuilder):
            spec = spec.build()
        self._specs.append(spec)
        return self

    def with_runtime_env(self, key: str, value: str) -> "DeploymentDescriptorBuilder":
        self._runtime_env[key] = value
        return self

    def with_parallelism(self, parallelism: int) -> "DeploymentDescriptorBuilder":
        if parallelism < 1:
            raise DescriptorError("parallelism must be at least 1")
        self._parallelism = parallelism
        return self

    def retain_after_end(self, retain: bool = True) -> "DeploymentDescriptorBuilder":
        self._retain = retain
        return self

    def build(self) -> DeploymentDescriptor:
        if not self._specs:
            raise DescriptorError("A deployment needs at least one ServiceSpec")
        seen: set[str] = set()
        for spec in self._specs:
            if spec.name in seen:
                raise DescriptorError(f"Duplicate ServiceSpec name: {spec.name}")
            seen.add(spec.name)
        return DeploymentDescriptor(
            service_specs=tuple(self._specs),
            runtime_env=MappingProxyType(dict(self._runtime_env)),
            parallelism=self._parallelism,
            retain_after_end=self._retain,
        )


class ContainerTarget:
    """
    A docker container plus the port set readiness checks should wait for.

    When `exposed_ports_override` is set it replaces the ports declared by the
    image, so a service container is probed only on its endpoint port.
    """

    def __init__(
        self,
        container: Any,
        *,
        exposed_ports_override: tuple[int, ...] | None = None,
        host: str = "localhost",
    ):
        self.container = container
        self.exposed_ports_override = exposed_ports_override
        self.host = host

    @property
    def name(self) -> str:
        return self.container.name

    @property
    def id(self) -> str:
        return self.container.id

    def container_info(self) -> dict[str, Any]:
        self.container.reload()
        return self.container.attrs

    def exposed_ports(self) -> tuple[int, ...]:
        if self.exposed_ports_override is not None:
            return self.exposed_ports_override
        exposed = (self.container_info().get("Config") or {}).get("ExposedPorts") or {}
        return tuple(sorted(_port_number(key) for key in exposed))

    def mapped_port(self, port: int) -> int | None:
        ports = (self.container_info().get("NetworkSettings") or {}).get("Ports") or {}
        bindings = ports.get(f"{port}/tcp") or []
        for binding in bindings:
            host_port = binding.get("HostPort")
            if host_port:
                return int(host_port)
        return None

    def url(self, port: int, path: str = "") -> str:
        mapped = self.mapped_port(port)
        if mapped is None:
            raise ContainerStartError(self.name, f"port {port} is not published")
        return f"http://{self.host}:{mapped}{path}"

    def status(self) -> str:
        return str((self.container_info().get("State") or {}).get("Status", "unknown"))


def _port_number(key: str) -> int:
    return int(str(key).split("/", 1)[0])


@dataclass
class ServiceDeployment:
    spec: ServiceSpec
    target: ContainerTarget
    registered: bool = False
    registration_id: str | None = None


@dataclass
class RunningDeployment:
    deployment_id: str
    network: Any
    runtime: ContainerTarget
    admin_url: str
    ingress_url: str
    services: dict[str, ServiceDeployment] = field(default_factory=dict)
    retain: bool = False
    stopped: bool = False

    def containers(self) -> list[ContainerTarget]:
        return [deployment.target for deployment in self.services.values()] + [self.runtime]

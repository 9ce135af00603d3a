# Where: conformance/runner/tests/fakes.py
# What: In-memory stand-ins for the docker SDK objects the orchestrator touches.
# Why: Exercise orchestration without a docker daemon.
from __future__ import annotations

import itertools

import docker.errors

_host_ports = itertools.count(32768)


class FakeContainer:
    def __init__(self, name: str, image: str, environment: dict, labels: dict, ports: dict) -> None:
        self.name = name
        self.id = f"id-{name}"
        self.image = image
        self.environment = dict(environment)
        self.labels = dict(labels)
        self.ports = dict(ports)
        self.status = "created"
        self.stopped = False
        self.removed = False
        self.start_error: BaseException | None = None
        self.stop_error: BaseException | None = None
        self.attrs = {
            "Config": {"ExposedPorts": {key: {} for key in ports}},
            "NetworkSettings": {
                "Ports": {key: [{"HostIp": "0.0.0.0", "HostPort": str(next(_host_ports))}] for key in ports}
            },
            "State": {"Status": "created"},
        }

    def reload(self) -> None:
        self.attrs["State"]["Status"] = self.status

    def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.status = "running"

    def stop(self, timeout=None) -> None:
        if self.stop_error is not None:
            raise self.stop_error
        self.stopped = True
        self.status = "exited"

    def remove(self, force=False, v=False) -> None:
        self.removed = True

    def logs(self, stdout=True, stderr=True, timestamps=False) -> bytes:
        return f"log of {self.name}\n".encode("utf-8")


class FakeNetwork:
    def __init__(self, name: str, labels: dict) -> None:
        self.name = name
        self.labels = labels
        self.connected: list[tuple[str, list[str]]] = []
        self.removed = False

    def connect(self, container, aliases=None) -> None:
        self.connected.append((container.name, list(aliases or [])))

    def remove(self) -> None:
        self.removed = True


class FakeNetworks:
    def __init__(self) -> None:
        self.created: list[FakeNetwork] = []

    def create(self, name, driver=None, labels=None):
        network = FakeNetwork(name, dict(labels or {}))
        self.created.append(network)
        return network


class FakeImages:
    def __init__(self, present=()) -> None:
        self.present = set(present)
        self.pulled: list[str] = []
        self.fail_pull = False

    def get(self, image: str):
        if image not in self.present:
            raise docker.errors.ImageNotFound(f"No such image: {image}")
        return image

    def pull(self, image: str):
        if self.fail_pull:
            raise docker.errors.APIError(f"pull access denied for {image}")
        self.pulled.append(image)
        self.present.add(image)
        return image


class FakeContainers:
    def __init__(self) -> None:
        self.created: list[FakeContainer] = []
        self.fail_for: set[str] = set()
        # image -> error raised by start() / stop() of containers created from it
        self.start_errors: dict[str, BaseException] = {}
        self.stop_errors: dict[str, BaseException] = {}

    def create(self, image, name=None, detach=True, environment=None, labels=None, ports=None):
        if image in self.fail_for:
            raise docker.errors.APIError(f"cannot create {name}")
        container = FakeContainer(name, image, environment or {}, labels or {}, ports or {})
        container.start_error = self.start_errors.get(image)
        container.stop_error = self.stop_errors.get(image)
        self.created.append(container)
        return container

    def by_suffix(self, suffix: str) -> FakeContainer:
        for container in self.created:
            if container.name.endswith(suffix):
                return container
        raise KeyError(suffix)


class FakeDockerClient:
    def __init__(self, present_images=()) -> None:
        self.networks = FakeNetworks()
        self.images = FakeImages(present_images)
        self.containers = FakeContainers()
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeAdminClient:
    """Records registrations; `fail_uris` are rejected like a 400 from the runtime."""

    registrations: list[tuple[str, bool]] = []
    fail_uris: set[str] = set()

    def __init__(self, base_url: str, *, timeout: float = 30.0) -> None:
        self.base_url = base_url

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def register_deployment(self, uri: str, *, force: bool = False) -> dict:
        from conformance.clients.exceptions import AdminApiError

        if uri in self.fail_uris:
            raise AdminApiError("POST", "/deployments", 400, "bad deployment")
        self.registrations.append((uri, force))
        return {"id": f"dp_{len(self.registrations)}"}

# Where: conformance/runner/config.py
# What: Process-wide harness configuration and suite presets.
# Why: Read settings once, then hand each suite its own immutable copy.
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from conformance.runner.exceptions import HarnessError

SUITES_FILE = Path(__file__).resolve().parent.parent / "suites.yaml"


class GlobalConfig(BaseSettings):
    """
    Harness settings shared by every suite and test class.

    Instances are frozen. Use copy_with() to derive suite-specific variants.
    """

    RUNTIME_CONTAINER_IMAGE: str = Field(
        default="ghcr.io/restatedev/restate:main", description="Runtime-under-test image"
    )
    SERVICE_CONTAINER_IMAGE: str = Field(
        default="", description="Image hosting the test services"
    )
    IMAGE_PULL_POLICY: Literal["always", "missing", "never"] = Field(
        default="missing", description="When to pull container images"
    )
    RETAIN_AFTER_END: bool = Field(
        default=False, description="Keep containers running after a test class ends"
    )
    ADDITIONAL_RUNTIME_ENVS: dict[str, str] = Field(
        default_factory=dict, description="Extra env injected into the runtime container"
    )
    DOCKER_HOST_ADDRESS: str = Field(
        default="localhost", description="Host where published container ports are reachable"
    )
    CONTAINER_READY_TIMEOUT: float = Field(
        default=60.0, description="Timeout in seconds for a single container readiness check"
    )
    CONTAINER_STOP_TIMEOUT: int = Field(
        default=10, description="Grace period in seconds when stopping containers"
    )
    LIFECYCLE_TIMEOUT: float = Field(
        default=300.0, description="Budget in seconds for the setup of one test class"
    )
    SUITE_TIMEOUT: float | None = Field(
        default=None, description="Optional budget in seconds for a whole suite"
    )
    AWAIT_TIMEOUT: float = Field(default=10.0, description="Default await-until timeout")
    AWAIT_POLL_INTERVAL: float = Field(default=0.1, description="Default await-until interval")
    REQUEST_TIMEOUT: float = Field(
        default=30.0, description="Timeout in seconds for ingress/admin HTTP requests"
    )

    model_config = SettingsConfigDict(
        env_prefix="SDK_TEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    def copy_with(self, **overrides: Any) -> "GlobalConfig":
        return self.model_copy(update=overrides)

    def lifecycle_timeout(self) -> float | None:
        # Retained deployments are inspected manually; never reap them on a timer.
        if self.RETAIN_AFTER_END:
            return None
        return self.LIFECYCLE_TIMEOUT

    def suite_timeout(self) -> float | None:
        if self.RETAIN_AFTER_END:
            return None
        return self.SUITE_TIMEOUT


_registry_lock = threading.Lock()
_global_config: GlobalConfig | None = None


def register_global_config(config: GlobalConfig) -> None:
    global _global_config
    with _registry_lock:
        _global_config = config


def get_global_config() -> GlobalConfig:
    with _registry_lock:
        config = _global_config
    if config is None:
        raise HarnessError("GlobalConfig is not registered")
    return config


@dataclass(frozen=True)
class TestSuite:
    name: str
    include_tags: str = ""
    additional_envs: dict[str, str] = field(default_factory=dict)

    __test__ = False


def load_suites(path: Path = SUITES_FILE) -> dict[str, TestSuite]:
    if not path.exists():
        raise HarnessError(f"Suite file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    raw_suites = data.get("suites", {})
    if not isinstance(raw_suites, dict):
        raise HarnessError("suites must be a map of suite name to settings")

    suites: dict[str, TestSuite] = {}
    for name, entry in raw_suites.items():
        entry = entry or {}
        if not isinstance(entry, dict):
            raise HarnessError(f"suite '{name}' must be a map")
        env = entry.get("env") or {}
        if not isinstance(env, dict):
            raise HarnessError(f"suite '{name}' env must be a map")
        suites[str(name)] = TestSuite(
            name=str(name),
            include_tags=str(entry.get("tags", "") or "").strip(),
            additional_envs={str(k): str(v) for k, v in env.items()},
        )
    return suites


def select_suites(suites: dict[str, TestSuite], names: list[str] | None) -> list[TestSuite]:
    if not names:
        return list(suites.values())
    selected: list[TestSuite] = []
    for raw in names:
        for name in (part.strip() for part in raw.split(",")):
            if not name:
                continue
            if name not in suites:
                available = ", ".join(suites)
                raise HarnessError(f"Unknown test suite '{name}'. Available: {available}")
            if suites[name] not in selected:
                selected.append(suites[name])
    return selected

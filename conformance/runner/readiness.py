# Where: conformance/runner/readiness.py
# What: Bounded readiness probes for freshly started containers.
# Why: Tests must only start once every port and health endpoint answers.
from __future__ import annotations

import logging
import socket
import time

import requests

from conformance.runner.exceptions import ReadinessTimeoutError
from conformance.runner.models import ContainerTarget

logger = logging.getLogger(__name__)

EXITED_STATES = ("exited", "dead")


def effective_timeout(timeout: float, deadline: float | None) -> float:
    """Clamp `timeout` to what is left before the monotonic `deadline`."""
    if deadline is None:
        return timeout
    return max(0.0, min(timeout, deadline - time.monotonic()))


def wait_for_ports(
    target: ContainerTarget,
    *,
    timeout: float,
    interval: float = 0.5,
    deadline: float | None = None,
) -> None:
    """Wait until every exposed port of `target` accepts TCP connections on the host."""
    budget = effective_timeout(timeout, deadline)
    end = time.monotonic() + budget
    pending = list(target.exposed_ports())
    last_err: str | None = None

    while True:
        status = target.status()
        if status in EXITED_STATES:
            raise ReadinessTimeoutError(
                target.name, budget, f"container {status} while waiting for ports"
            )
        for port in list(pending):
            host_port = target.mapped_port(port)
            if host_port is None:
                last_err = f"port {port} not published yet"
                continue
            try:
                with socket.create_connection((target.host, host_port), timeout=1):
                    pending.remove(port)
            except OSError as e:
                last_err = f"port {port}: {e}"
        if not pending:
            logger.debug("Ports of %s are reachable", target.name)
            return
        if time.monotonic() >= end:
            raise ReadinessTimeoutError(target.name, budget, last_err)
        time.sleep(interval)


def wait_for_http(
    name: str,
    url: str,
    *,
    timeout: float,
    interval: float = 0.5,
    deadline: float | None = None,
    target: ContainerTarget | None = None,
) -> None:
    """Poll `url` until it answers 200."""
    budget = effective_timeout(timeout, deadline)
    end = time.monotonic() + budget
    last_err: str | None = None

    while True:
        if target is not None:
            status = target.status()
            if status in EXITED_STATES:
                raise ReadinessTimeoutError(name, budget, f"container {status} while probing {url}")
        try:
            with requests.Session() as session:
                session.trust_env = False
                response = session.get(url, timeout=2.0)
            if response.status_code == 200:
                logger.debug("%s is healthy at %s", name, url)
                return
            last_err = f"Status code {response.status_code}"
        except requests.exceptions.RequestException as e:
            last_err = str(e)
        if time.monotonic() >= end:
            raise ReadinessTimeoutError(name, budget, last_err)
        time.sleep(interval)

# Where: conformance/runner/constants.py
# What: Shared names, ports and defaults for the conformance runner.
# Why: Keep container topology constants in one place.

RUNTIME_INGRESS_PORT = 8080
RUNTIME_ADMIN_PORT = 9070
SERVICE_PORT = 9080

RUNTIME_ALIAS = "runtime"
RESOURCE_PREFIX = "sdk-test"

LABEL_MANAGED = "dev.sdk-test.managed"
LABEL_DEPLOYMENT = "dev.sdk-test.deployment"
LABEL_ROLE = "dev.sdk-test.role"

ADMIN_HEALTH_PATH = "/health"
INGRESS_HEALTH_PATH = "/restate/health"

ENV_SERVICES = "SERVICES"
ENV_PORT = "PORT"

DEFAULT_RUNTIME_ENV = {
    "RESTATE_LOG_FILTER": "restate=info",
    "RESTATE_LOG_FORMAT": "json",
    "RUST_BACKTRACE": "full",
}

SCENARIOS_PACKAGE = "conformance.scenarios"

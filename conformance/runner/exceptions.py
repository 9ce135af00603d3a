"""
Custom exception classes.

Represent errors raised while preparing and running a conformance suite.
"""


class HarnessError(Exception):
    """Harness-internal error. Fatal to the whole run."""

    pass


class DescriptorError(HarnessError):
    """Raised when a deployment descriptor is malformed."""

    pass


class DeploymentError(Exception):
    """Base exception for deployment setup failures. Fatal to the owning test class."""

    pass


class ContainerStartError(DeploymentError):
    """Raised when a container cannot be created or started."""

    def __init__(self, name: str, cause: Exception | str):
        self.name = name
        self.cause = cause
        super().__init__(f"Failed to start container {name}: {cause}")


class ReadinessTimeoutError(DeploymentError):
    """Raised when a container does not become ready in time."""

    def __init__(self, name: str, timeout: float, last_error: str | None = None):
        self.name = name
        self.timeout = timeout
        self.last_error = last_error
        message = f"{name} did not become ready within {timeout:.1f}s"
        if last_error:
            message = f"{message}. Last error: {last_error}"
        super().__init__(message)


class RegistrationError(DeploymentError):
    """Raised when the runtime rejects a service deployment registration."""

    def __init__(self, spec_name: str, uri: str, cause: Exception):
        self.spec_name = spec_name
        self.uri = uri
        self.cause = cause
        super().__init__(f"Failed to register deployment {spec_name} ({uri}): {cause}")


class TestAborted(Exception):
    """Raised by a test to report itself as aborted rather than failed."""

    __test__ = False

"""
Errors raised by the runtime clients.
"""


class IngressError(Exception):
    """Raised when an ingress request fails."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class IngressTimeoutError(IngressError):
    """Raised when an ingress request exceeds its own request timeout."""

    pass


class AdminApiError(Exception):
    """Raised when the admin API rejects a request."""

    def __init__(self, method: str, path: str, status_code: int | None, body: str = ""):
        self.method = method
        self.path = path
        self.status_code = status_code
        self.body = body
        super().__init__(f"Admin API {method} {path} failed ({status_code}): {body}")

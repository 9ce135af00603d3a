from .admin import AdminClient, TerminationMode
from .exceptions import AdminApiError, IngressError, IngressTimeoutError
from .ingress import (
    IngressClient,
    InvocationHandle,
    Output,
    SendResponse,
    SendStatus,
    Target,
)

__all__ = [
    "AdminApiError",
    "AdminClient",
    "IngressClient",
    "IngressError",
    "IngressTimeoutError",
    "InvocationHandle",
    "Output",
    "SendResponse",
    "SendStatus",
    "Target",
    "TerminationMode",
]

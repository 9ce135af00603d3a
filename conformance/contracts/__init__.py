"""
Typed clients for the services hosted by the test-service image.
"""

from .awakeable_holder import AwakeableHolderClient
from .base import ContractClient, ContractModel
from .cancel_test import (
    BlockingOperation,
    CancelTestBlockingServiceClient,
    CancelTestRunnerClient,
)
from .counter import AddRequest, CounterClient, CounterUpdateResponse, ProxyCounterClient
from .echo import EchoClient, HeadersPassThroughTestClient
from .failing import FailingClient
from .kill_test import KillTestRunnerClient, KillTestSingletonClient
from .list_object import ListObjectClient
from .map_object import Entry, MapObjectClient
from .non_deterministic import NonDeterministicClient
from .proxy import ManyCallRequest, ProxyClient, ProxyRequest
from .receiver import ReceiverClient
from .upgrade import UpgradeTestClient
from .utils_service import (
    CreateAwakeableAndAwaitIt,
    GetEnvVariable,
    InterpretRequest,
    TestUtilsServiceClient,
)

CLIENTS: tuple[type[ContractClient], ...] = (
    AwakeableHolderClient,
    CancelTestBlockingServiceClient,
    CancelTestRunnerClient,
    CounterClient,
    EchoClient,
    FailingClient,
    HeadersPassThroughTestClient,
    KillTestRunnerClient,
    KillTestSingletonClient,
    ListObjectClient,
    MapObjectClient,
    NonDeterministicClient,
    ProxyClient,
    ProxyCounterClient,
    ReceiverClient,
    TestUtilsServiceClient,
    UpgradeTestClient,
)

ALL_SERVICES: frozenset[str] = frozenset(client.SERVICE_NAME for client in CLIENTS)

__all__ = [
    "ALL_SERVICES",
    "AddRequest",
    "AwakeableHolderClient",
    "BlockingOperation",
    "CLIENTS",
    "CancelTestBlockingServiceClient",
    "CancelTestRunnerClient",
    "ContractClient",
    "ContractModel",
    "CounterClient",
    "CounterUpdateResponse",
    "CreateAwakeableAndAwaitIt",
    "EchoClient",
    "Entry",
    "FailingClient",
    "GetEnvVariable",
    "HeadersPassThroughTestClient",
    "InterpretRequest",
    "KillTestRunnerClient",
    "KillTestSingletonClient",
    "ListObjectClient",
    "ManyCallRequest",
    "MapObjectClient",
    "NonDeterministicClient",
    "ProxyClient",
    "ProxyCounterClient",
    "ProxyRequest",
    "ReceiverClient",
    "TestUtilsServiceClient",
    "UpgradeTestClient",
]

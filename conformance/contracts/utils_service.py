"""
TestUtilsService: helper handlers shared by several scenarios.

`interpret_commands` runs a small command list inside the service and appends
each command's result to a ListObject, which lets a test observe which
deployment revision executed each step.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import Field

from conformance.contracts.base import ContractClient, ContractModel


class CreateAwakeableAndAwaitIt(ContractModel):
    type: Literal["createAwakeableAndAwaitIt"] = "createAwakeableAndAwaitIt"
    awakeable_key: str


class GetEnvVariable(ContractModel):
    type: Literal["getEnvVariable"] = "getEnvVariable"
    env_name: str


Command = Annotated[
    Union[CreateAwakeableAndAwaitIt, GetEnvVariable],
    Field(discriminator="type"),
]


class InterpretRequest(ContractModel):
    list_name: str
    commands: list[Command]


class TestUtilsServiceClient(ContractClient):
    __test__ = False

    SERVICE_NAME = "TestUtilsService"

    def echo(self, value: str, **options) -> str:
        return self._invoke("echo", value, **options)

    def uppercase_echo(self, value: str, **options) -> str:
        return self._invoke("uppercaseEcho", value, **options)

    def echo_headers(self, **options) -> dict[str, str]:
        return self._invoke("echoHeaders", parse=lambda value: dict(value or {}), **options)

    def get_env_variable(self, name: str, **options) -> str:
        return self._invoke("getEnvVariable", name, parse=lambda value: value or "", **options)

    def interpret_commands(self, request: InterpretRequest, **options) -> None:
        return self._invoke("interpretCommands", request, **options)

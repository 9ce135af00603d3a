from __future__ import annotations

from conformance.contracts.base import ContractClient


class FailingClient(ContractClient):
    SERVICE_NAME = "Failing"
    KEYED = True

    def terminally_failing_call(self, error_message: str, **options) -> None:
        return self._invoke("terminallyFailingCall", error_message, **options)

    def call_terminally_failing_call(self, error_message: str, **options) -> str:
        return self._invoke("callTerminallyFailingCall", error_message, **options)

    def failing_call_with_eventual_success(self, **options) -> int:
        return self._invoke("failingCallWithEventualSuccess", parse=int, **options)

    def terminally_failing_side_effect(self, error_message: str, **options) -> None:
        return self._invoke("terminallyFailingSideEffect", error_message, **options)

    def side_effect_succeeds_after_given_attempts(self, minimum_attempts: int, **options) -> int:
        """Returns the number of attempts the side effect took."""
        return self._invoke(
            "sideEffectSucceedsAfterGivenAttempts", minimum_attempts, parse=int, **options
        )

    def side_effect_fails_after_given_attempts(
        self, retry_policy_max_retry_count: int, **options
    ) -> int:
        return self._invoke(
            "sideEffectFailsAfterGivenAttempts", retry_policy_max_retry_count, parse=int, **options
        )

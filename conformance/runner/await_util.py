# Where: conformance/runner/await_util.py
# What: Polling helpers for eventually-consistent assertions.
# Why: The runtime processes invocations asynchronously; tests wait for effects.
from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Tuple, Type, TypeVar

T = TypeVar("T")

DEFAULT_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 0.1

class ConditionTimeoutError(AssertionError):
    """The awaited condition did not hold before the timeout elapsed."""

    def __init__(self, message: str, *, last_value: Any = None):
        super().__init__(message)
        self.last_value = last_value


def _poll(
    attempt: Callable[[], Tuple[bool, Any, BaseException | None]],
    *,
    timeout: float,
    poll_interval: float,
    describe: Callable[[Any, BaseException | None], str],
) -> Any:
    deadline = time.monotonic() + timeout
    while True:
        done, value, error = attempt()
        if done:
            return value
        now = time.monotonic()
        if now >= deadline:
            raise ConditionTimeoutError(
                f"Condition not met within {timeout}s: {describe(value, error)}",
                last_value=value,
            ) from error
        time.sleep(min(poll_interval, deadline - now))


def await_until(
    predicate: Callable[[], Any],
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    timeout: float = DEFAULT_TIMEOUT,
    ignore: Tuple[Type[BaseException], ...] = (),
) -> Any:
    """Retry `predicate` until it returns a truthy value, and return that value."""

    def attempt():
        try:
            value = predicate()
        except ignore as e:
            return False, None, e
        return bool(value), value, None

    def describe(value, error):
        if error is not None:
            return f"last error {type(error).__name__}: {error}"
        return f"last value {value!r}"

    return _poll(attempt, timeout=timeout, poll_interval=poll_interval, describe=describe)


def await_until_asserted(
    block: Callable[[], T],
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    timeout: float = DEFAULT_TIMEOUT,
    ignore: Tuple[Type[BaseException], ...] = (),
) -> T:
    """Retry `block` until it stops raising AssertionError, and return its result."""

    def attempt():
        try:
            return True, block(), None
        except AssertionError as e:
            return False, None, e
        except ignore as e:
            return False, None, e

    def describe(value, error):
        return f"last failure {type(error).__name__}: {error}"

    return _poll(attempt, timeout=timeout, poll_interval=poll_interval, describe=describe)


@dataclass(frozen=True)
class Awaiter:
    """
    Preconfigured await helper.

        ctx.awaiter().at_most(5).until(lambda: holder.has_awakeable())
    """

    timeout: float = DEFAULT_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    ignored: Tuple[Type[BaseException], ...] = ()

    def at_most(self, timeout: float) -> "Awaiter":
        return replace(self, timeout=timeout)

    def poll_every(self, poll_interval: float) -> "Awaiter":
        return replace(self, poll_interval=poll_interval)

    def ignore_exceptions(self, *exception_types: Type[BaseException]) -> "Awaiter":
        return replace(self, ignored=self.ignored + tuple(exception_types))

    def until(self, predicate: Callable[[], Any]) -> Any:
        return await_until(
            predicate, poll_interval=self.poll_interval, timeout=self.timeout, ignore=self.ignored
        )

    def until_asserted(self, block: Callable[[], T]) -> T:
        return await_until_asserted(
            block, poll_interval=self.poll_interval, timeout=self.timeout, ignore=self.ignored
        )

    def until_call_to(self, supplier: Callable[[], T], matcher: Callable[[T], bool]) -> T:
        """Retry `supplier` until `matcher` accepts its result, and return that result."""
        holder: list[T] = []

        def check() -> bool:
            value = supplier()
            holder[:] = [value]
            return bool(matcher(value))

        self.until(check)
        return holder[0]

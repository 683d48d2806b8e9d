"""
Bounded waits driven by change notifications instead of fixed polling.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol, TypeVar

T = TypeVar("T")


class ChangeFeed(Protocol):
    def wait_for_change(self, timeout: float) -> bool:
        """
        Block until the observed subject changes or `timeout` seconds pass.
        Returns True when a change was observed.
        """


def await_predicate(
    predicate: Callable[[], T],
    *,
    timeout: float,
    changes: ChangeFeed,
    clock: Callable[[], float] = time.monotonic,
) -> T | None:
    """
    Evaluate `predicate` now and after every change until it returns a truthy
    value. Returns that value, or None once `timeout` seconds have elapsed.
    """

    deadline = clock() + max(0.0, timeout)
    result = predicate()
    while not result:
        remaining = deadline - clock()
        if remaining <= 0:
            return None
        changes.wait_for_change(remaining)
        result = predicate()
    return result

"""Retry and synchronization utilities"""

import logging
import random
import time
from typing import Callable, Iterator, TypeVar

from pydantic import Field
from pydantic.dataclasses import dataclass

LOG = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BackoffPolicy:
    """
    Exponential backoff with randomization. The n-th retry waits ``initial_interval * multiplier ** (n - 1)``
    seconds (capped at ``max_interval``), randomized by ``randomization_factor`` in both directions.

    For example, given ``initial_interval=1``, ``multiplier=2`` and ``randomization_factor=0.5``, the first retry
    waits between 0.5 and 1.5 seconds, the second between 1 and 3 seconds.
    """

    initial_interval: float = Field(1.0, title="Initial backoff interval in seconds", gt=0)
    multiplier: float = Field(2.0, title="Multiply interval by this factor each retry", ge=1)
    randomization_factor: float = Field(0.0, title="Factor to randomize backoff", ge=0, le=1)
    max_interval: float = Field(60.0, title="Maximum backoff interval in seconds", gt=0)
    max_retries: int = Field(10, title="Max retry attempts", ge=0)

    def intervals(self) -> Iterator[float]:
        """Yields the sleep interval before each retry, ``max_retries`` times."""
        interval = self.initial_interval
        for _ in range(self.max_retries):
            if self.randomization_factor > 0:
                yield random.uniform(
                    interval * (1 - self.randomization_factor),
                    interval * (1 + self.randomization_factor),
                )
            else:
                yield interval
            interval = min(self.max_interval, interval * self.multiplier)


def retry_with_backoff(
    function: Callable[[], T],
    policy: BackoffPolicy,
    retry_on: Callable[[Exception], bool] = lambda e: True,
) -> T:
    """
    Calls the given function until it returns, sleeping according to the backoff policy between attempts.
    Only errors for which ``retry_on`` returns True are retried, any other error is raised immediately.
    If all retries are exhausted, the last error is raised.

    :param function: the function to call (without arguments)
    :param policy: the backoff policy, which also determines the maximum number of retries
    :param retry_on: predicate deciding whether an error is retryable
    :return: the result of the first successful call
    """
    intervals = policy.intervals()
    attempt = 1
    while True:
        try:
            return function()
        except Exception as error:
            if not retry_on(error):
                raise
            interval = next(intervals, None)
            if interval is None:
                LOG.debug("Giving up after %s attempts: %s", attempt, error)
                raise
            LOG.info("Attempt %s failed (%s), retrying in %.2f seconds", attempt, error, interval)
            time.sleep(interval)
            attempt += 1


def poll_condition(condition, timeout: float = None, interval: float = 0.5) -> bool:
    """
    Poll evaluates the given condition until a truthy value is returned. It does this every `interval` seconds
    (0.5 by default), until the timeout (in seconds, if any) is reached.

    Poll returns True once `condition()` returns a truthy value, or False if the timeout is reached.
    """
    remaining = 0
    if timeout is not None:
        remaining = timeout

    while not condition():
        if timeout is not None:
            remaining -= interval

            if remaining <= 0:
                return False

        time.sleep(interval)

    return True

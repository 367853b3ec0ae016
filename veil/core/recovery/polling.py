"""
Bounded polling for eventually-consistent reads.

``poll_until`` repeatedly reads a value until a predicate holds or the poll
budget runs out, and returns a typed outcome instead of raising, so callers
decide how a timeout is surfaced.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class PollSchedule:
    """Poll budget and spacing.

    The first ``fast_polls`` waits use ``initial_interval_seconds``; later
    waits use ``interval_seconds``.
    """

    max_polls: int = 15
    fast_polls: int = 3
    initial_interval_seconds: float = 5.0
    interval_seconds: float = 3.0

    def __post_init__(self) -> None:
        if self.max_polls < 1:
            raise ValueError("max_polls must be >= 1")

    def interval_after(self, poll_index: int) -> float:
        return self.initial_interval_seconds if poll_index < self.fast_polls else self.interval_seconds


@dataclass
class PollOutcome(Generic[T]):
    satisfied: bool
    polls: int
    last_value: Optional[T] = None
    last_error: Optional[BaseException] = None

    @property
    def timed_out(self) -> bool:
        return not self.satisfied


async def poll_until(
    read: Callable[[], Awaitable[T]],
    predicate: Callable[[T], bool],
    schedule: PollSchedule,
    *,
    sleep: Sleep = asyncio.sleep,
    label: str = "poll",
) -> PollOutcome[T]:
    """Poll ``read`` until ``predicate`` is satisfied or the budget is spent.

    A failing read counts as one poll; the error is logged and kept on the
    outcome, and polling continues.
    """
    last_value: Optional[T] = None
    last_error: Optional[BaseException] = None

    for poll in range(schedule.max_polls):
        try:
            value = await read()
        except Exception as exc:  # noqa: BLE001
            last_error = exc
            logger.warning(
                "%s %d/%d read failed: %s", label, poll + 1, schedule.max_polls, exc
            )
        else:
            last_value = value
            if predicate(value):
                logger.info("%s satisfied after %d poll(s)", label, poll + 1)
                return PollOutcome(
                    satisfied=True, polls=poll + 1, last_value=value, last_error=last_error
                )
            logger.info(
                "%s %d/%d not satisfied yet (value=%s)", label, poll + 1, schedule.max_polls, value
            )

        if poll < schedule.max_polls - 1:
            await sleep(schedule.interval_after(poll))

    return PollOutcome(
        satisfied=False, polls=schedule.max_polls, last_value=last_value, last_error=last_error
    )

"""Sequential-unlock gate for builder steps.

Step *n* is reachable only once every step before it reports complete.
The gate has no terminal state; it simply stops at the last index.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class StepStatus:
    complete: bool
    message: str | None = None


class Step(Protocol):
    def get_status(self) -> StepStatus: ...


@dataclass(slots=True)
class StepDefinition:
    """A step whose status comes from a callable, e.g. a check on BuildState."""

    id: str
    title: str
    status_fn: Callable[[], StepStatus]
    description: str = ""

    def get_status(self) -> StepStatus:
        return self.status_fn()


def clamp_index(index: int, step_count: int) -> int:
    if step_count == 0 or index < 0:
        return 0
    return min(index, step_count - 1)


class Stepper:
    """Owns the active step index. Statuses are read live from the steps."""

    __slots__ = ("steps", "active_index")

    def __init__(self, steps: Sequence[Step], initial_index: int = 0) -> None:
        self.steps: list[Step] = list(steps)
        self.active_index = clamp_index(initial_index, len(self.steps))

    def set_steps(self, steps: Sequence[Step]) -> None:
        """Replace the step list and keep the active index in range."""
        self.steps = list(steps)
        self.active_index = clamp_index(self.active_index, len(self.steps))

    @property
    def statuses(self) -> list[StepStatus]:
        return [step.get_status() for step in self.steps]

    @property
    def active_step(self) -> Step | None:
        if not self.steps:
            return None
        return self.steps[self.active_index]

    @property
    def current_status(self) -> StepStatus | None:
        step = self.active_step
        return step.get_status() if step is not None else None

    @property
    def is_first_step(self) -> bool:
        return self.active_index == 0

    @property
    def is_last_step(self) -> bool:
        return self.active_index == len(self.steps) - 1

    def is_step_unlocked(self, index: int) -> bool:
        if index < 0 or index >= len(self.steps):
            return False
        if index == 0:
            return True
        return all(step.get_status().complete for step in self.steps[:index])

    def go_to(self, index: int) -> bool:
        """Jump to *index*. Returns False (and stays put) when not allowed."""
        if index < 0 or index >= len(self.steps):
            return False
        if index == self.active_index or not self.is_step_unlocked(index):
            return False
        self.active_index = index
        return True

    def next(self) -> bool:
        if self.active_index >= len(self.steps) - 1:
            return False
        if not self.steps[self.active_index].get_status().complete:
            return False
        self.active_index += 1
        return True

    def previous(self) -> bool:
        if self.active_index == 0:
            return False
        self.active_index -= 1
        return True

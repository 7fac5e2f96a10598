"""Tests for the sequential-unlock step gate."""

from charplanner.engine.build_engine import BuildState
from charplanner.engine.stepper import StepDefinition, Stepper, StepStatus, clamp_index


class FlagStep:
    def __init__(self, complete: bool = False) -> None:
        self.complete = complete

    def get_status(self) -> StepStatus:
        return StepStatus(self.complete, None if self.complete else "incomplete")


def _stepper(*flags: bool, initial: int = 0) -> Stepper:
    return Stepper([FlagStep(flag) for flag in flags], initial)


class TestClampIndex:
    def test_bounds(self):
        assert clamp_index(5, 3) == 2
        assert clamp_index(-1, 3) == 0
        assert clamp_index(4, 0) == 0


class TestUnlock:
    def test_first_step_always_unlocked(self):
        assert _stepper(False, False).is_step_unlocked(0)

    def test_locked_until_all_previous_complete(self):
        stepper = _stepper(True, False, False)
        assert stepper.is_step_unlocked(1)
        assert not stepper.is_step_unlocked(2)

    def test_out_of_range_is_locked(self):
        stepper = _stepper(True)
        assert not stepper.is_step_unlocked(1)
        assert not stepper.is_step_unlocked(-1)

    def test_go_to_locked_is_noop(self):
        stepper = _stepper(True, False, False)
        assert stepper.go_to(2) is False
        assert stepper.active_index == 0

    def test_go_to_unlocked(self):
        stepper = _stepper(True, True, False)
        assert stepper.go_to(2) is True
        assert stepper.active_index == 2
        assert stepper.is_last_step

    def test_go_to_current_is_noop(self):
        assert _stepper(True, True).go_to(0) is False

    def test_status_read_live(self):
        steps = [FlagStep(False), FlagStep(False)]
        stepper = Stepper(steps)
        assert not stepper.is_step_unlocked(1)
        steps[0].complete = True
        assert stepper.is_step_unlocked(1)
        assert [s.complete for s in stepper.statuses] == [True, False]


class TestNavigation:
    def test_next_requires_complete_current(self):
        stepper = _stepper(False, False)
        assert stepper.next() is False
        stepper.steps[0].complete = True
        assert stepper.next() is True
        assert stepper.active_index == 1

    def test_next_stops_at_last(self):
        stepper = _stepper(True, True, initial=1)
        assert stepper.next() is False
        assert stepper.active_index == 1

    def test_previous(self):
        stepper = _stepper(True, True, initial=1)
        assert stepper.previous() is True
        assert stepper.is_first_step
        assert stepper.previous() is False

    def test_initial_index_clamped(self):
        assert _stepper(True, True, initial=9).active_index == 1

    def test_set_steps_clamps(self):
        stepper = _stepper(True, True, True, initial=2)
        stepper.set_steps([FlagStep(True)])
        assert stepper.active_index == 0

    def test_empty(self):
        stepper = Stepper([])
        assert stepper.active_step is None
        assert stepper.current_status is None
        assert stepper.next() is False
        assert stepper.go_to(0) is False


class TestStepDefinition:
    def test_status_from_build_state(self):
        holder = {"state": BuildState()}

        def class_status() -> StepStatus:
            if holder["state"].class_id is None:
                return StepStatus(False, "Choose a class")
            return StepStatus(True)

        stepper = Stepper([
            StepDefinition("class", "Class", class_status),
            StepDefinition("review", "Review", lambda: StepStatus(True)),
        ])
        assert stepper.current_status == StepStatus(False, "Choose a class")
        assert stepper.go_to(1) is False

        holder["state"] = holder["state"].with_class("fighter")
        assert stepper.go_to(1) is True
        assert stepper.active_step.title == "Review"

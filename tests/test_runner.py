"""Tests for ordered step execution and checkpoint advancement."""
import pytest

from homelab.core.runner import RunOutcome, StepRunner
from homelab.core.steps import StepKind


class TestFreshRun:
    """Runs starting from an empty checkpoint."""

    def test_all_steps_run_in_order(self, store, calls, make_steps):
        report = StepRunner(store).run(make_steps(4))

        assert calls == ["s1", "s2", "s3", "s4"]
        assert report.outcome == RunOutcome.COMPLETED
        assert report.ran == ["s1", "s2", "s3", "s4"]
        assert report.final_checkpoint == 4
        assert store.get() == 4

    def test_second_run_is_a_no_op(self, store, calls, make_steps):
        steps = make_steps(4)
        StepRunner(store).run(steps)
        calls.clear()

        report = StepRunner(store).run(steps)

        assert calls == []
        assert report.skipped == ["s1", "s2", "s3", "s4"]
        assert report.completed


class TestResume:
    """Runs starting from a stored checkpoint."""

    def test_skips_completed_steps(self, store, calls, make_steps):
        store.set(2)
        report = StepRunner(store).run(make_steps(4))

        assert calls == ["s3", "s4"]
        assert report.skipped == ["s1", "s2"]
        assert report.start_checkpoint == 2
        assert store.get() == 4

    @pytest.mark.parametrize("k", [0, 1, 2, 3, 4])
    def test_only_steps_above_checkpoint_run(self, store, calls, make_steps, k):
        if k:
            store.set(k)
        StepRunner(store).run(make_steps(4))

        assert calls == [f"s{i}" for i in range(k + 1, 5)]

    def test_checkpoint_beyond_registry_skips_everything(self, store, calls, make_steps):
        store.set(99)
        report = StepRunner(store).run(make_steps(3))

        assert calls == []
        assert store.get() == 99
        assert report.completed

    def test_checkpoint_never_decreases(self, store, make_steps):
        seen = []
        steps = make_steps(4, on_invoke=lambda step: seen.append(store.get()))
        store.set(1)

        StepRunner(store).run(steps)
        seen.append(store.get())

        assert seen == sorted(seen)
        assert seen == [1, 2, 3, 4]


class TestFailure:
    """A failing step aborts the rest of the run."""

    def test_failure_preserves_last_good_checkpoint(self, store, calls, make_steps):
        report = StepRunner(store).run(make_steps(4, failing={3}))

        assert calls == ["s1", "s2", "s3"]
        assert report.outcome == RunOutcome.ABORTED
        assert report.failed == "s3"
        assert "status 1" in report.error
        assert report.final_checkpoint == 2
        assert store.get() == 2

    def test_rerun_retries_failed_step_first(self, store, calls, make_steps):
        StepRunner(store).run(make_steps(4, failing={3}))
        calls.clear()

        StepRunner(store).run(make_steps(4))

        assert calls == ["s3", "s4"]
        assert store.get() == 4

    def test_first_step_failure_keeps_zero(self, store, calls, make_steps):
        report = StepRunner(store).run(make_steps(4, failing={1}))

        assert calls == ["s1"]
        assert not report.completed
        assert not store.exists()


class TestMissingSteps:
    """Optional steps that cannot run are skipped, mandatory ones abort."""

    def test_missing_optional_step_is_skipped(self, store, calls, make_steps):
        report = StepRunner(store).run(make_steps(4, missing={2}))

        assert calls == ["s1", "s3", "s4"]
        assert report.completed
        assert report.missing == ["s2"]
        assert report.ran == ["s1", "s3", "s4"]

    def test_missing_step_does_not_advance_its_slot(self, store, make_steps):
        seen = []
        steps = make_steps(4, missing={2}, on_invoke=lambda step: seen.append(store.get()))

        report = StepRunner(store).run(steps)

        assert seen == [0, 1, 3]
        assert report.final_checkpoint == 4
        assert store.get() == 4

    def test_later_successes_are_persisted(self, store, make_steps):
        StepRunner(store).run(make_steps(4, missing={1}))
        assert store.get() == 4

    def test_missing_last_step(self, store, calls, make_steps):
        report = StepRunner(store).run(make_steps(3, missing={3}))

        assert calls == ["s1", "s2"]
        assert report.missing == ["s3"]
        assert store.get() == 2

    def test_missing_mandatory_step_aborts(self, store, calls, make_steps):
        steps = make_steps(4, missing={2}, mandatory={2})
        report = StepRunner(store).run(steps)

        assert calls == ["s1"]
        assert report.outcome == RunOutcome.ABORTED
        assert report.failed == "s2"
        assert store.get() == 1

    def test_failure_after_missing_step_keeps_last_success(self, store, calls, make_steps):
        report = StepRunner(store).run(make_steps(4, missing={1}, failing={3}))

        assert calls == ["s2", "s3"]
        assert report.failed == "s3"
        assert report.final_checkpoint == 2
        assert store.get() == 2

    def test_kind_defaults(self, make_steps):
        assert all(step.kind == StepKind.OPTIONAL for step in make_steps(2))

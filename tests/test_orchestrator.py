"""End-to-end tests for setup orchestration with fake steps."""
import pytest

from homelab.core.lock import LockError, RunLock, current_holder
from homelab.core.orchestrator import SetupOrchestrator
from homelab.core.preconditions import PreconditionError
from homelab.core.runner import RunOutcome
from homelab.core.steps import SecretsGateStep


class PassingGate:
    def __init__(self, confirm=None):
        self.enforced = 0

    def enforce(self):
        self.enforced += 1


class FailingGate:
    def enforce(self):
        raise PreconditionError("This setup is designed for Debian. Detected: arch")


@pytest.fixture
def orchestrate(homelab_config, store):
    def _orchestrate(steps, gate=None):
        return SetupOrchestrator(homelab_config, steps, gate=gate or PassingGate(), store=store)
    return _orchestrate


class TestCompletion:
    """Successful runs reset the checkpoint."""

    def test_full_run_clears_checkpoint(self, orchestrate, store, calls, make_steps):
        report = orchestrate(make_steps(4)).run()

        assert calls == ["s1", "s2", "s3", "s4"]
        assert report.clean
        assert report.final_checkpoint == 0
        assert not store.exists()
        assert store.get() == 0

    def test_next_run_starts_over(self, orchestrate, calls, make_steps):
        orchestrate(make_steps(4)).run()
        calls.clear()

        orchestrate(make_steps(4)).run()

        assert calls == ["s1", "s2", "s3", "s4"]

    def test_resume_then_complete(self, orchestrate, store, calls, make_steps):
        store.set(2)
        report = orchestrate(make_steps(4)).run()

        assert calls == ["s3", "s4"]
        assert report.skipped == ["s1", "s2"]
        assert not store.exists()

    def test_lock_released_after_run(self, orchestrate, homelab_config, make_steps):
        orchestrate(make_steps(2)).run()
        assert current_holder(homelab_config.lock_file) is None


class TestAbort:
    """Failures leave the checkpoint where the last success put it."""

    def test_failing_step(self, orchestrate, store, calls, make_steps):
        report = orchestrate(make_steps(4, failing={3})).run()

        assert report.outcome == RunOutcome.ABORTED
        assert calls == ["s1", "s2", "s3"]
        assert store.get() == 2

    def test_failure_after_missing_step_resumes_at_failure(self, orchestrate, store, calls, make_steps):
        report = orchestrate(make_steps(4, missing={1}, failing={3})).run()

        assert not report.completed
        assert store.get() == 2

        calls.clear()
        orchestrate(make_steps(4, missing={1})).run()

        assert calls == ["s3", "s4"]

    def test_lock_released_after_failure(self, orchestrate, homelab_config, make_steps):
        orchestrate(make_steps(2, failing={1})).run()
        assert current_holder(homelab_config.lock_file) is None


class TestMissingSteps:
    """Missing optional steps do not block completion."""

    def test_completion_clears_checkpoint(self, orchestrate, store, calls, make_steps):
        report = orchestrate(make_steps(4, missing={2})).run()

        assert report.completed
        assert not report.clean
        assert report.missing == ["s2"]
        assert calls == ["s1", "s3", "s4"]
        assert not store.exists()

    def test_missing_step_runs_on_next_invocation(self, orchestrate, calls, make_steps):
        orchestrate(make_steps(4, missing={2})).run()
        calls.clear()

        orchestrate(make_steps(4)).run()

        assert calls == ["s1", "s2", "s3", "s4"]


class TestPreconditions:
    """Host checks run first, on every invocation."""

    def test_failure_runs_nothing_and_keeps_checkpoint(self, orchestrate, store, calls, make_steps):
        store.set(2)

        with pytest.raises(PreconditionError):
            orchestrate(make_steps(4), gate=FailingGate()).run()

        assert calls == []
        assert store.get() == 2

    def test_checked_even_when_everything_is_done(self, orchestrate, store, make_steps):
        store.set(4)
        gate = PassingGate()

        orchestrate(make_steps(4), gate=gate).run()

        assert gate.enforced == 1


class TestLocking:
    """A second concurrent run is refused."""

    def test_held_lock_aborts(self, orchestrate, homelab_config, store, calls, make_steps):
        with RunLock(homelab_config.lock_file):
            with pytest.raises(LockError, match="Another setup run is in progress"):
                orchestrate(make_steps(4)).run()

        assert calls == []
        assert not store.exists()


class TestSecretsGate:
    """The secrets gate embedded in a run."""

    def test_bad_passphrase_aborts(self, orchestrate, homelab_config, store, calls, make_steps):
        homelab_config.base_dir.mkdir()
        homelab_config.encrypted_env.write_bytes(b"cipher")
        steps = make_steps(4)
        steps[2] = SecretsGateStep(
            "decrypt-secrets", 3,
            encrypted=homelab_config.encrypted_env,
            plaintext=homelab_config.env_file,
            decrypt=lambda encrypted, plaintext: False,
        )

        report = orchestrate(steps).run()

        assert report.outcome == RunOutcome.ABORTED
        assert report.failed == "decrypt-secrets"
        assert calls == ["s1", "s2"]
        assert not homelab_config.env_file.exists()
        assert store.get() == 2

    def test_no_secrets_at_all_aborts(self, orchestrate, homelab_config, store, make_steps):
        steps = make_steps(4)
        steps[2] = SecretsGateStep(
            "decrypt-secrets", 3,
            encrypted=homelab_config.encrypted_env,
            plaintext=homelab_config.env_file,
            decrypt=lambda encrypted, plaintext: True,
        )

        report = orchestrate(steps).run()

        assert not report.completed
        assert store.get() == 2

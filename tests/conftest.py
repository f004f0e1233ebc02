"""Shared test fixtures for homelab tests."""
from pathlib import Path

import pytest

from homelab.core.checkpoint import CheckpointStore
from homelab.core.config import HomelabConfig, set_config
from homelab.core.steps import Step, StepKind, StepResult


class RecordingStep(Step):
    """Step that records its invocation instead of touching the host."""

    def __init__(self, name, target, calls, ok=True, available=True,
                 kind=StepKind.OPTIONAL, on_invoke=None):
        super().__init__(name, target)
        self.calls = calls
        self.ok = ok
        self.available = available
        self.kind = kind
        self.on_invoke = on_invoke

    def is_available(self):
        return self.available

    def invoke(self):
        self.calls.append(self.name)
        if self.on_invoke:
            self.on_invoke(self)
        if self.ok:
            return StepResult.success()
        return StepResult.failure(f"{self.name} exited with status 1")


@pytest.fixture(autouse=True)
def reset_global_config():
    """Keep the global config from leaking between tests."""
    yield
    set_config(None)


@pytest.fixture
def homelab_config(tmp_path):
    """Config with every path under a temporary directory."""
    repo = tmp_path / "repo"
    (repo / "scripts").mkdir(parents=True)
    return HomelabConfig(
        base_dir=tmp_path / "homelab",
        repo_dir=repo,
        checkpoint_file=tmp_path / "checkpoint",
        lock_file=tmp_path / "setup.lock",
    )


@pytest.fixture
def store(homelab_config):
    return CheckpointStore(homelab_config.checkpoint_file)


@pytest.fixture
def calls():
    return []


@pytest.fixture
def make_steps(calls):
    """Build a registry of RecordingSteps with targets 1..n."""
    def _make(count=4, failing=(), missing=(), mandatory=(), on_invoke=None):
        return [
            RecordingStep(
                f"s{i}", i, calls,
                ok=i not in failing,
                available=i not in missing,
                kind=StepKind.MANDATORY if i in mandatory else StepKind.OPTIONAL,
                on_invoke=on_invoke,
            )
            for i in range(1, count + 1)
        ]
    return _make


@pytest.fixture
def write_script():
    """Write a small bash script and return its path."""
    def _write(path: Path, body: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"#!/bin/bash\n{body}\n")
        return path
    return _write

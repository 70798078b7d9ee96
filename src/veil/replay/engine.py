"""
Replay Engine for Veil.

Design Principles:
    - Re-execution, not playback: the scenario really runs again
    - Verifiable: per-step output hashes are compared with the original
    - Auditable: replays are stored as new runs with mode='replay'
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from veil.errors import ReplayMismatchError, ReplayRunNotFoundError
from veil.runner import BackendFactory, RunResult, ScenarioRunner
from veil.schema import RunMode, RunStatus


@dataclass
class ReplayResult:
    """
    Result of replaying a run.

    Attributes:
        original_run_id: ID of the run being replayed
        replay: The new run produced by re-execution
        mismatches: Human-readable descriptions of divergent steps
    """

    original_run_id: str
    replay: RunResult
    mismatches: list[str] = field(default_factory=list)

    @property
    def replay_run_id(self) -> str:
        return self.replay.run_id

    @property
    def success(self) -> bool:
        """Whether the replay reproduced the original exactly."""
        return not self.mismatches


class ReplayEngine:
    """
    Engine for replaying recorded Veil runs.

    Usage:
        with ReplayEngine(db_path="veil.db") as engine:
            result = engine.replay("abc123")

    Attributes:
        runner: Scenario runner sharing the audit database
    """

    def __init__(
        self,
        db_path: str | Path = "veil.db",
        backend_factory: BackendFactory | None = None,
    ) -> None:
        self.runner = ScenarioRunner(db_path, backend_factory=backend_factory)

    @property
    def db(self):
        return self.runner.db

    def close(self) -> None:
        self.runner.close()

    def __enter__(self) -> "ReplayEngine":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def replay(self, run_id: str, strict: bool = False) -> ReplayResult:
        """
        Replay a previous run and compare outcomes step by step.

        Args:
            run_id: ID of the run to replay
            strict: Raise on the first divergent step instead of collecting

        Raises:
            ReplayRunNotFoundError: If the run or its stored data is missing
            ReplayMismatchError: If strict and a step diverged
        """
        original = self.db.get_run(run_id)
        if original is None:
            raise ReplayRunNotFoundError(run_id=run_id)

        scenario = self.db.get_run_scenario(run_id)
        config = self.db.get_run_config(run_id)
        if scenario is None or config is None:
            raise ReplayRunNotFoundError(
                run_id=run_id,
                message=f"Run {run_id} exists but scenario/config data is missing",
            )

        original_steps = self.db.get_steps_for_run(run_id)
        # Stop where the original stopped
        fail_fast = len(original_steps) < original.total_steps
        replayed = self.runner.run(scenario, config, fail_fast=fail_fast, mode=RunMode.REPLAY)

        mismatches: list[str] = []
        if len(replayed.steps) != len(original_steps):
            mismatches.append(
                f"Step count mismatch: original={len(original_steps)}, "
                f"replay={len(replayed.steps)}"
            )

        for before, after in zip(original_steps, replayed.steps):
            if before.output_hash == after.output_hash:
                continue
            if strict:
                raise ReplayMismatchError(
                    run_id=run_id,
                    step_index=before.step_index,
                    expected_hash=before.output_hash,
                    actual_hash=after.output_hash,
                )
            mismatches.append(
                f"Step {before.step_index} ({before.op}): "
                f"{before.status.value} -> {after.status.value}, "
                f"hash {before.output_hash[:8]}... != {after.output_hash[:8]}..."
            )

        if mismatches and replayed.status == RunStatus.COMPLETED:
            self.db.update_run_status(replayed.run_id, RunStatus.FAILED)

        return ReplayResult(original_run_id=run_id, replay=replayed, mismatches=mismatches)

"""
Scenario runner for Veil.

Executes a Scenario step by step against a fresh Session and records every
step in the audit database.

Execution Flow:
    1. Build a Session from the config (or the injected backend factory)
    2. For each step:
        a. Resolve handle references to earlier results
        b. Make the engine call under the step's caller
        c. Record the outcome: success, denied (PermissionDeniedError) or
           error (any other failure, including a failed expectation)
    3. Update run status and return a summary

Handle arguments are strings naming an earlier step's `as` result. Values
of unrevealed handles never leave the session: a step's output is the
result handle's index, kind and digest, or the value a reveal returned.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable

from veil.backend import Backend
from veil.errors import PermissionDeniedError, ScenarioValidationError, VeilError
from veil.handles import Handle
from veil.schema import (
    EngineConfig,
    HandleRef,
    RunMode,
    RunStatus,
    Scenario,
    ScenarioStep,
    StepStatus,
)
from veil.session import Session
from veil.store import AuditDB
from veil.testing import input_for

# Argument names whose string values refer to earlier results
HANDLE_ARGS = ("a", "b", "handle", "cond", "if_true", "if_false")

# Operand order for table operations, by arity
OPERAND_ORDER = {
    1: ("a",),
    2: ("a", "b"),
    3: ("cond", "if_true", "if_false"),
}

BackendFactory = Callable[[EngineConfig], Backend]


@dataclass
class StepResult:
    """
    Result of executing a single step.

    Attributes:
        step_index: Position in the scenario
        op: Engine call name
        args: Arguments as written in the scenario
        status: Outcome status
        output: Handle description or revealed value
        error: Error message if denied or failed
        error_code: Veil error code if denied or failed
        output_hash: Hash of the recorded outcome
        duration_ms: Execution time in milliseconds
    """

    step_index: int
    op: str
    args: dict[str, Any]
    status: StepStatus
    output: Any = None
    error: str | None = None
    error_code: int | None = None
    output_hash: str = ""
    duration_ms: float = 0.0


@dataclass
class RunResult:
    """
    Result of executing a complete scenario.

    Attributes:
        run_id: Unique identifier for this run
        status: Final status (completed, failed)
        steps: Results for each executed step
        total_steps: Number of steps in the scenario
        completed_steps: Steps that succeeded
        denied_steps: Steps refused by the ledger
        failed_steps: Steps that failed for any other reason
        duration_ms: Total execution time in milliseconds
    """

    run_id: str
    status: RunStatus
    steps: list[StepResult]
    total_steps: int = 0
    completed_steps: int = 0
    denied_steps: int = 0
    failed_steps: int = 0
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED and self.failed_steps == 0


def describe_handle(handle: Handle) -> dict[str, Any]:
    """Audit-safe description of a handle: never its value."""
    return HandleRef(index=handle.index, kind=handle.kind, digest=handle.digest).model_dump(
        mode="json"
    )


class ScenarioRunner:
    """
    Runs scenarios and records them in an audit database.

    Usage:
        with ScenarioRunner(db_path="veil.db") as runner:
            result = runner.run(scenario, config)
            print(f"Run {result.run_id}: {result.status}")

    Attributes:
        db: Audit database
        backend_factory: Optional factory overriding backend discovery
    """

    def __init__(
        self,
        db_path: str | Path = "veil.db",
        backend_factory: BackendFactory | None = None,
    ) -> None:
        self.db = AuditDB(db_path)
        self.backend_factory = backend_factory

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> "ScenarioRunner":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def new_session(self, config: EngineConfig) -> Session:
        backend = self.backend_factory(config) if self.backend_factory else None
        return Session(config=config, backend=backend)

    def run(
        self,
        scenario: Scenario,
        config: EngineConfig | None = None,
        fail_fast: bool = True,
        mode: RunMode = RunMode.RUN,
    ) -> RunResult:
        """
        Execute a scenario in a fresh session.

        Args:
            scenario: The scenario to execute
            config: Session configuration (defaults to simulation)
            fail_fast: Stop on the first denied or failed step
            mode: Recorded run mode

        Returns:
            RunResult with execution summary
        """
        start_time = datetime.now(UTC)
        config = config or EngineConfig()
        session = self.new_session(config)
        run_id = self.db.create_run(scenario, config, mode=mode)

        refs: dict[str, Handle] = {}
        steps: list[StepResult] = []
        completed = denied = failed = 0

        for step_index, step in enumerate(scenario.steps):
            result = self._execute_step(run_id, step_index, step, scenario, session, refs)
            steps.append(result)

            if result.status == StepStatus.SUCCESS:
                completed += 1
                continue
            if result.status == StepStatus.DENIED:
                denied += 1
            else:
                failed += 1
            if fail_fast:
                break

        final_status = RunStatus.FAILED if denied or failed else RunStatus.COMPLETED
        self.db.update_run_status(
            run_id=run_id,
            status=final_status,
            completed_steps=completed,
            denied_steps=denied,
            failed_steps=failed,
        )

        duration_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
        return RunResult(
            run_id=run_id,
            status=final_status,
            steps=steps,
            total_steps=len(scenario.steps),
            completed_steps=completed,
            denied_steps=denied,
            failed_steps=failed,
            duration_ms=duration_ms,
        )

    def _execute_step(
        self,
        run_id: str,
        step_index: int,
        step: ScenarioStep,
        scenario: Scenario,
        session: Session,
        refs: dict[str, Handle],
    ) -> StepResult:
        """Execute and record one step."""
        start_time = datetime.now(UTC)
        output: Any = None
        error: str | None = None
        error_code: int | None = None

        try:
            session.context.caller = step.caller or scenario.caller
            args = self._resolve_args(step, step_index, refs)
            produced = self._dispatch(session, step, args, step_index)
            if isinstance(produced, Handle):
                if step.as_:
                    refs[step.as_] = produced
                output = describe_handle(produced)
            else:
                output = produced
                if step.expect is not None and produced != step.expect:
                    raise ScenarioValidationError(
                        message=f"Expected {step.expect!r}, got {produced!r}",
                        step_index=step_index,
                    )
            status = StepStatus.SUCCESS
        except PermissionDeniedError as e:
            status = StepStatus.DENIED
            error, error_code = e.message, e.code
        except VeilError as e:
            status = StepStatus.ERROR
            error, error_code = e.message, e.code
        except Exception as e:
            status = StepStatus.ERROR
            error = f"{type(e).__name__}: {e}"

        end_time = datetime.now(UTC)
        record = self.db.record_step(
            run_id=run_id,
            step_index=step_index,
            op=step.op,
            args=step.args,
            status=status,
            output=output if status == StepStatus.SUCCESS else None,
            error=error,
            error_code=error_code,
            started_at=start_time,
            ended_at=end_time,
        )
        return StepResult(
            step_index=step_index,
            op=step.op,
            args=step.args,
            status=status,
            output=record.output,
            error=error,
            error_code=error_code,
            output_hash=record.output_hash,
            duration_ms=(end_time - start_time).total_seconds() * 1000,
        )

    def _resolve_args(
        self,
        step: ScenarioStep,
        step_index: int,
        refs: dict[str, Handle],
    ) -> dict[str, Any]:
        resolved = dict(step.args)
        for key in HANDLE_ARGS:
            value = resolved.get(key)
            if not isinstance(value, str):
                continue
            if value not in refs:
                raise ScenarioValidationError(
                    message=f"Unknown reference '{value}' in argument '{key}'",
                    step_index=step_index,
                )
            resolved[key] = refs[value]
        return resolved

    def _dispatch(
        self,
        session: Session,
        step: ScenarioStep,
        args: dict[str, Any],
        step_index: int,
    ) -> Any:
        """Map a step onto the Session call surface."""
        op = step.op
        try:
            if op == "encode":
                return session.encode(args["value"], args["kind"])
            if op == "input":
                user = args.get("user") or session.caller
                if user is None:
                    raise ScenarioValidationError(
                        message="input needs a user or a caller to bind the proof to",
                        step_index=step_index,
                    )
                external = input_for(session, args["value"], args["kind"], user=user)
                return session.verify_input(external, args["kind"], user=user)
            if op == "verify":
                return session.verify(
                    bytes.fromhex(args["raw"].removeprefix("0x")),
                    bytes.fromhex(args["proof"].removeprefix("0x")),
                    args["kind"],
                )
            if op == "cast":
                return session.cast(args["handle"], args["kind"])
            if op == "random":
                return session.random(args["kind"])
            if op == "random_bounded":
                return session.random_bounded(args["bound"], args["kind"])
            if op == "grant_self":
                return session.grant_self(args["handle"])
            if op == "grant_to":
                return session.grant_to(args["handle"], args["principal"])
            if op == "grant_transient":
                return session.grant_transient(args["handle"], args["principal"])
            if op == "authorize":
                session.authorize(args["handle"], *args.get("principals", []))
                return None
            if op == "make_publicly_decryptable":
                return session.make_publicly_decryptable(args["handle"])
            if op == "check_self":
                return session.check_self(args["handle"])
            if op == "check_principal":
                return session.check_principal(args["handle"], args["principal"])
            if op == "reveal":
                return session.reveal(args["handle"], args["principal"])
            if op == "public_decrypt":
                return session.public_decrypt(args["handle"])
            if op == "end_transaction":
                return session.end_transaction()
        except KeyError as e:
            raise ScenarioValidationError(
                message=f"Missing argument {e} for {op}",
                step_index=step_index,
            ) from e

        # Anything else is a table operation
        operation = session.engine.table.get(op)
        names = OPERAND_ORDER[operation.arity]
        missing = [n for n in names if n not in args]
        if missing:
            raise ScenarioValidationError(
                message=f"Missing argument(s) {', '.join(missing)} for {op}",
                step_index=step_index,
            )
        return session.apply(op, *(args[n] for n in names))

"""
SQLite audit storage for Veil.

Design Principles:
    - Append-only: step rows are never modified
    - Integrity: input/output hashes enable replay verification
    - Atomic: each write is committed on its own
    - Opaque: unrevealed handle values are never written, only their
      index, kind and digest
"""

import hashlib
import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Generator

from veil.errors import StorageConnectionError, StorageReadError, StorageWriteError
from veil.schema import (
    EngineConfig,
    Run,
    RunMode,
    RunStatus,
    Scenario,
    StepRecord,
    StepStatus,
)

# Schema version for migrations
SCHEMA_VERSION = 1

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS runs (
    run_id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    completed_at TEXT,
    scenario_hash TEXT NOT NULL,
    config_hash TEXT NOT NULL,
    scenario_json TEXT NOT NULL,
    config_json TEXT NOT NULL,
    mode TEXT NOT NULL DEFAULT 'run',
    status TEXT NOT NULL DEFAULT 'pending',
    total_steps INTEGER NOT NULL DEFAULT 0,
    completed_steps INTEGER NOT NULL DEFAULT 0,
    denied_steps INTEGER NOT NULL DEFAULT 0,
    failed_steps INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS steps (
    step_id TEXT PRIMARY KEY,
    run_id TEXT NOT NULL,
    step_index INTEGER NOT NULL,
    op TEXT NOT NULL,
    args_json TEXT NOT NULL,
    status TEXT NOT NULL,
    output_json TEXT,
    error TEXT,
    error_code INTEGER,
    started_at TEXT NOT NULL,
    ended_at TEXT NOT NULL,
    input_hash TEXT NOT NULL,
    output_hash TEXT NOT NULL,
    FOREIGN KEY (run_id) REFERENCES runs(run_id)
);

CREATE INDEX IF NOT EXISTS idx_steps_run_id ON steps(run_id);
CREATE INDEX IF NOT EXISTS idx_runs_created_at ON runs(created_at);
"""


def generate_id() -> str:
    """Generate a unique ID for runs and steps."""
    return str(uuid.uuid4())[:8]


def compute_hash(data: Any) -> str:
    """SHA-256 hex digest; structured data is hashed as sorted-key JSON."""
    if data is None:
        return ""
    if isinstance(data, str):
        content = data.encode("utf-8")
    elif isinstance(data, bytes):
        content = data
    else:
        content = json.dumps(data, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def now_iso() -> str:
    """Current UTC timestamp, ISO 8601."""
    return datetime.now(UTC).isoformat()


class AuditDB:
    """
    SQLite database for Veil audit records.

    Usage:
        with AuditDB("veil.db") as db:
            run_id = db.create_run(scenario, config)
            db.record_step(run_id, 0, "encode", {...}, StepStatus.SUCCESS, ...)
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize the database connection.

        Args:
            db_path: Path to the SQLite database file, created if missing
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._connect()
        self._init_schema()

    def _connect(self) -> None:
        try:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            raise StorageConnectionError(
                db_path=str(self.db_path),
                operation="connect",
                message=f"Failed to connect to database: {e}",
            ) from e

    def _init_schema(self) -> None:
        try:
            cursor = self._conn.executescript(CREATE_TABLES_SQL)
            cursor.close()

            cursor = self._conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            if cursor.fetchone() is None:
                self._conn.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (SCHEMA_VERSION, now_iso()),
                )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="init_schema",
                underlying_error=str(e),
            ) from e

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """Commit on success, roll back on any exception."""
        try:
            yield
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def close(self) -> None:
        """Close the connection; safe to call twice."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "AuditDB":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # =========================================================================
    # Run Operations
    # =========================================================================

    def create_run(
        self,
        scenario: Scenario,
        config: EngineConfig,
        mode: RunMode = RunMode.RUN,
    ) -> str:
        """
        Create a new run record.

        Returns:
            The generated run_id
        """
        run_id = generate_id()
        scenario_json = scenario.model_dump_json(by_alias=True)
        config_json = config.model_dump_json()

        try:
            self._conn.execute(
                """
                INSERT INTO runs (
                    run_id, created_at, scenario_hash, config_hash,
                    scenario_json, config_json, mode, status, total_steps
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run_id,
                    now_iso(),
                    compute_hash(scenario_json),
                    compute_hash(config_json),
                    scenario_json,
                    config_json,
                    mode.value,
                    RunStatus.RUNNING.value,
                    len(scenario.steps),
                ),
            )
            self._conn.commit()
            return run_id
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="create_run",
                underlying_error=str(e),
            ) from e

    def _row_to_run(self, row: sqlite3.Row) -> Run:
        return Run(
            run_id=row["run_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            completed_at=(
                datetime.fromisoformat(row["completed_at"])
                if row["completed_at"]
                else None
            ),
            scenario_hash=row["scenario_hash"],
            config_hash=row["config_hash"],
            mode=RunMode(row["mode"]),
            status=RunStatus(row["status"]),
            total_steps=row["total_steps"],
            completed_steps=row["completed_steps"],
            denied_steps=row["denied_steps"],
            failed_steps=row["failed_steps"],
        )

    def get_run(self, run_id: str) -> Run | None:
        """Get a run by ID, or None if not found."""
        try:
            cursor = self._conn.execute("SELECT * FROM runs WHERE run_id = ?", (run_id,))
            row = cursor.fetchone()
            return self._row_to_run(row) if row is not None else None
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="get_run",
                underlying_error=str(e),
            ) from e

    def list_runs(self, limit: int = 100) -> list[Run]:
        """List recent runs, most recent first."""
        try:
            cursor = self._conn.execute(
                "SELECT * FROM runs ORDER BY created_at DESC LIMIT ?",
                (limit,),
            )
            return [self._row_to_run(row) for row in cursor]
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="list_runs",
                underlying_error=str(e),
            ) from e

    def update_run_status(
        self,
        run_id: str,
        status: RunStatus,
        completed_steps: int | None = None,
        denied_steps: int | None = None,
        failed_steps: int | None = None,
    ) -> None:
        """Update run status and counters."""
        try:
            updates = ["status = ?"]
            params: list[Any] = [status.value]

            if status in (RunStatus.COMPLETED, RunStatus.FAILED):
                updates.append("completed_at = ?")
                params.append(now_iso())

            for column, value in (
                ("completed_steps", completed_steps),
                ("denied_steps", denied_steps),
                ("failed_steps", failed_steps),
            ):
                if value is not None:
                    updates.append(f"{column} = ?")
                    params.append(value)

            params.append(run_id)
            self._conn.execute(
                f"UPDATE runs SET {', '.join(updates)} WHERE run_id = ?",
                params,
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="update_run_status",
                underlying_error=str(e),
            ) from e

    def get_run_scenario(self, run_id: str) -> Scenario | None:
        """Get the scenario stored for a run."""
        row = self._fetch_column(run_id, "scenario_json", "get_run_scenario")
        return Scenario.model_validate_json(row) if row is not None else None

    def get_run_config(self, run_id: str) -> EngineConfig | None:
        """Get the configuration stored for a run."""
        row = self._fetch_column(run_id, "config_json", "get_run_config")
        return EngineConfig.model_validate_json(row) if row is not None else None

    def _fetch_column(self, run_id: str, column: str, operation: str) -> str | None:
        try:
            cursor = self._conn.execute(
                f"SELECT {column} FROM runs WHERE run_id = ?",
                (run_id,),
            )
            row = cursor.fetchone()
            return row[column] if row is not None else None
        except sqlite3.Error as e:
            raise StorageReadError(
                operation=operation,
                underlying_error=str(e),
            ) from e

    # =========================================================================
    # Step Operations
    # =========================================================================

    def record_step(
        self,
        run_id: str,
        step_index: int,
        op: str,
        args: dict[str, Any],
        status: StepStatus,
        output: Any,
        error: str | None,
        error_code: int | None,
        started_at: datetime,
        ended_at: datetime,
    ) -> StepRecord:
        """
        Record the outcome of one step.

        Returns:
            The stored StepRecord, including computed hashes
        """
        record = StepRecord(
            run_id=run_id,
            step_index=step_index,
            op=op,
            args=args,
            status=status,
            output=output,
            error=error,
            error_code=error_code,
            started_at=started_at,
            ended_at=ended_at,
            input_hash=compute_hash({"op": op, "args": args}),
            output_hash=compute_hash({"status": status.value, "output": output}),
        )

        try:
            self._conn.execute(
                """
                INSERT INTO steps (
                    step_id, run_id, step_index, op, args_json, status,
                    output_json, error, error_code, started_at, ended_at,
                    input_hash, output_hash
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    generate_id(),
                    run_id,
                    step_index,
                    op,
                    json.dumps(args, default=str),
                    status.value,
                    json.dumps(output, default=str) if output is not None else None,
                    error,
                    error_code,
                    started_at.isoformat(),
                    ended_at.isoformat(),
                    record.input_hash,
                    record.output_hash,
                ),
            )
            self._conn.commit()
            return record
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="record_step",
                underlying_error=str(e),
            ) from e

    def get_steps_for_run(self, run_id: str) -> list[StepRecord]:
        """Get all step records for a run, in order."""
        try:
            cursor = self._conn.execute(
                "SELECT * FROM steps WHERE run_id = ? ORDER BY step_index",
                (run_id,),
            )
            return [
                StepRecord(
                    run_id=row["run_id"],
                    step_index=row["step_index"],
                    op=row["op"],
                    args=json.loads(row["args_json"]),
                    status=StepStatus(row["status"]),
                    output=json.loads(row["output_json"]) if row["output_json"] else None,
                    error=row["error"],
                    error_code=row["error_code"],
                    started_at=datetime.fromisoformat(row["started_at"]),
                    ended_at=datetime.fromisoformat(row["ended_at"]),
                    input_hash=row["input_hash"],
                    output_hash=row["output_hash"],
                )
                for row in cursor
            ]
        except sqlite3.Error as e:
            raise StorageReadError(
                operation="get_steps_for_run",
                underlying_error=str(e),
            ) from e

    def get_run_summary(self, run_id: str) -> dict[str, Any] | None:
        """Get a run with all its steps as plain dicts."""
        run = self.get_run(run_id)
        if run is None:
            return None
        return {
            "run": run.model_dump(mode="json"),
            "steps": [s.model_dump(mode="json") for s in self.get_steps_for_run(run_id)],
        }

"""
JSON report for Veil runs.

Structured output for programmatic consumption: run metadata, the scenario
and config it ran with, and every recorded step with its hashes.
"""

import json
from collections import Counter
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from veil.schema import StepRecord, StepStatus
from veil.store import AuditDB

REPORT_VERSION = "1.0"


def generate_json_report(
    run_id: str,
    db_path: str | Path = "veil.db",
    indent: int = 2,
) -> str:
    """
    Generate a JSON report for a run.

    Raises:
        ValueError: If run not found
    """
    report = build_report_dict(run_id, db_path)
    return json.dumps(report, indent=indent, default=_json_serializer)


def build_report_dict(
    run_id: str,
    db_path: str | Path = "veil.db",
) -> dict[str, Any]:
    """
    Build a report dictionary for a run.

    Raises:
        ValueError: If run not found
    """
    with AuditDB(db_path) as db:
        run = db.get_run(run_id)
        if run is None:
            raise ValueError(f"Run not found: {run_id}")

        scenario = db.get_run_scenario(run_id)
        config = db.get_run_config(run_id)
        steps = db.get_steps_for_run(run_id)

    return {
        "report_version": REPORT_VERSION,
        "generated_at": datetime.now(UTC).isoformat(),
        "run": {
            "run_id": run.run_id,
            "created_at": run.created_at.isoformat(),
            "completed_at": run.completed_at.isoformat() if run.completed_at else None,
            "status": run.status.value,
            "mode": run.mode.value,
            "scenario_hash": run.scenario_hash,
            "config_hash": run.config_hash,
            "statistics": {
                "total_steps": run.total_steps,
                "completed_steps": run.completed_steps,
                "denied_steps": run.denied_steps,
                "failed_steps": run.failed_steps,
            },
        },
        "scenario": scenario.model_dump(mode="json", by_alias=True) if scenario else None,
        "config": config.model_dump(mode="json") if config else None,
        "steps": [_serialize_step(step) for step in steps],
        "summary": _build_summary(steps),
    }


def _serialize_step(step: StepRecord) -> dict[str, Any]:
    return {
        "step_index": step.step_index,
        "op": step.op,
        "args": step.args,
        "status": step.status.value,
        "output": step.output,
        "error": step.error,
        "error_code": step.error_code,
        "timing": {
            "started_at": step.started_at.isoformat(),
            "ended_at": step.ended_at.isoformat(),
            "duration_ms": (step.ended_at - step.started_at).total_seconds() * 1000,
        },
        "hashes": {
            "input": step.input_hash,
            "output": step.output_hash,
        },
    }


def _build_summary(steps: list[StepRecord]) -> dict[str, Any]:
    """Aggregate counts by operation, by kind of handle produced and by error code."""
    ops = Counter(step.op for step in steps)
    kinds = Counter(
        step.output["kind"]
        for step in steps
        if step.status == StepStatus.SUCCESS
        and isinstance(step.output, dict)
        and "kind" in step.output
    )
    error_codes = Counter(str(step.error_code) for step in steps if step.error_code)
    return {
        "total_duration_ms": sum(
            (s.ended_at - s.started_at).total_seconds() * 1000 for s in steps
        ),
        "operations": dict(ops),
        "handles_by_kind": dict(kinds),
        "error_codes": dict(error_codes),
    }


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")

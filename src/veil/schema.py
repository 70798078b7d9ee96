"""
Schema definitions for Veil.

This module defines the Pydantic models used throughout Veil:
- EngineConfig/VerifierConfig: How a session is configured
- Scenario/ScenarioStep: Scripted sequences of engine calls
- PermissionDecision: The result of a ledger check
- Run/StepRecord: Audit records of executed scenarios

Design Decisions:
    - Configuration and scenario models are frozen and forbid extra keys
    - YAML is the on-disk format for both configs and scenarios
"""

from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from veil.kinds import ValueKind


# =============================================================================
# Enums
# =============================================================================


class StepStatus(str, Enum):
    """Status of a scenario step."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    DENIED = "denied"


class RunMode(str, Enum):
    """Mode of execution for a run."""

    RUN = "run"
    REPLAY = "replay"


class RunStatus(str, Enum):
    """Overall status of a run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# Configuration Models
# =============================================================================


class VerifierConfig(BaseModel):
    """
    Settings for admitting external inputs.

    Attributes:
        secret: Key used to authenticate input proofs
        require_proof: When False the proof digest is not checked
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    secret: str = Field(
        default="veil-simulation-key",
        description="Key used to authenticate input proofs",
        min_length=1,
    )
    require_proof: bool = Field(
        default=True,
        description="Check the proof digest (structural checks always run)",
    )


class EngineConfig(BaseModel):
    """
    Complete session configuration.

    Attributes:
        network: Network identifier used to discover a backend
        seed: Seed for the deterministic randomness source
        contract: Principal identity of the computation context ("self")
        verifier: External input verification settings
        reveal_retries: Extra attempts when the reveal path fails transiently
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    network: str = Field(
        default="simulation",
        description="Network identifier used to discover a backend",
        min_length=1,
    )
    seed: int = Field(
        default=0,
        description="Seed for the deterministic randomness source",
    )
    contract: str = Field(
        default="0x00000000000000000000000000000000000c0de",
        description="Principal identity of the computation context",
        min_length=1,
    )
    verifier: VerifierConfig = Field(
        default_factory=VerifierConfig,
        description="External input verification settings",
    )
    reveal_retries: int = Field(
        default=2,
        description="Extra attempts when the reveal path fails transiently",
        ge=0,
        le=10,
    )


# =============================================================================
# Scenario Models
# =============================================================================


class ScenarioStep(BaseModel):
    """
    A single step in a scenario.

    Attributes:
        op: Engine call to make (e.g., "encode", "add", "grant_self", "reveal")
        args: Call arguments; strings naming earlier results are handle refs
        as_: Name under which to keep the step's result
        caller: Caller principal for this step (defaults to the scenario's)
        expect: Expected revealed value, checked for reveal steps
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    op: str = Field(
        ...,
        description="Engine call to make",
        min_length=1,
    )
    args: dict[str, Any] = Field(
        default_factory=dict,
        description="Call arguments",
    )
    as_: str | None = Field(
        default=None,
        alias="as",
        description="Name under which to keep the step's result",
    )
    caller: str | None = Field(
        default=None,
        description="Caller principal for this step",
    )
    expect: Any | None = Field(
        default=None,
        description="Expected revealed value",
    )

    @field_validator("op")
    @classmethod
    def validate_op_format(cls, v: str) -> str:
        """Operation names are identifiers."""
        if not v.replace("_", "").isalnum():
            msg = f"Invalid operation name: {v}"
            raise ValueError(msg)
        return v


class Scenario(BaseModel):
    """
    A scripted sequence of engine calls.

    Attributes:
        version: Schema version for forward compatibility
        name: Optional name for this scenario
        caller: Default caller principal for every step
        steps: Ordered list of steps to execute
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: str = Field(default="1.0", description="Scenario schema version")
    name: str | None = Field(default=None, description="Optional scenario name")
    caller: str | None = Field(default=None, description="Default caller principal")
    steps: list[ScenarioStep] = Field(
        ...,
        description="Ordered list of steps to execute",
        min_length=1,
    )


# =============================================================================
# Runtime Models
# =============================================================================


class PermissionDecision(BaseModel):
    """
    Result of a ledger check.

    Attributes:
        allowed: Whether the use or reveal is permitted
        reason: Human-readable explanation of the decision
        rule_matched: Which ledger rule caused this decision
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool = Field(..., description="Whether the action is permitted")
    reason: str = Field(..., description="Explanation of the decision")
    rule_matched: str | None = Field(default=None, description="Rule that decided")

    @classmethod
    def allow(cls, reason: str, rule: str | None = None) -> "PermissionDecision":
        """Create an ALLOW decision."""
        return cls(allowed=True, reason=reason, rule_matched=rule)

    @classmethod
    def deny(cls, reason: str, rule: str | None = None) -> "PermissionDecision":
        """Create a DENY decision."""
        return cls(allowed=False, reason=reason, rule_matched=rule)


class HandleRef(BaseModel):
    """Serializable description of a handle (never its value)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    index: int = Field(..., ge=0)
    kind: ValueKind
    digest: str


class StepRecord(BaseModel):
    """
    The recorded outcome of one scenario step.

    Attributes:
        run_id: ID of the run
        step_index: Position in the scenario (0-indexed)
        op: Engine call name
        args: Arguments as written in the scenario
        status: Outcome status
        output: Result handle description or revealed value
        error: Error message if failed or denied
        error_code: Numeric Veil error code if failed or denied
        started_at: When execution started
        ended_at: When execution ended
        input_hash: SHA256 hash of the step arguments
        output_hash: SHA256 hash of the output
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    run_id: str
    step_index: int = Field(..., ge=0)
    op: str
    args: dict[str, Any] = Field(default_factory=dict)
    status: StepStatus
    output: Any | None = None
    error: str | None = None
    error_code: int | None = None
    started_at: datetime
    ended_at: datetime
    input_hash: str
    output_hash: str


class Run(BaseModel):
    """
    Metadata about a scenario run.

    Attributes:
        run_id: Unique identifier for this run
        created_at: When the run started
        completed_at: When the run finished (None if still running)
        scenario_hash: SHA256 hash of the scenario
        config_hash: SHA256 hash of the configuration
        mode: Whether this is a fresh run or a replay
        status: Current status of the run
        total_steps: Number of steps in the scenario
        completed_steps: Number of steps completed
        denied_steps: Number of steps denied by the ledger
        failed_steps: Number of steps that failed
    """

    model_config = ConfigDict(extra="forbid")

    run_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    scenario_hash: str
    config_hash: str
    mode: RunMode = RunMode.RUN
    status: RunStatus = RunStatus.PENDING
    total_steps: int = Field(default=0, ge=0)
    completed_steps: int = Field(default=0, ge=0)
    denied_steps: int = Field(default=0, ge=0)
    failed_steps: int = Field(default=0, ge=0)


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_config(path: Path | str) -> EngineConfig:
    """
    Load an engine configuration from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return EngineConfig.model_validate(data or {})


def load_scenario(path: Path | str) -> Scenario:
    """
    Load a scenario from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return Scenario.model_validate(data)


def load_config_from_string(content: str) -> EngineConfig:
    """Load an engine configuration from a YAML string."""
    data = yaml.safe_load(content)
    return EngineConfig.model_validate(data or {})


def load_scenario_from_string(content: str) -> Scenario:
    """Load a scenario from a YAML string."""
    data = yaml.safe_load(content)
    return Scenario.model_validate(data)

"""
Unit tests for schema validation.

Tests cover:
- EngineConfig/VerifierConfig defaults and validation
- Scenario/ScenarioStep parsing
- PermissionDecision helpers
- YAML loading helpers
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from veil.kinds import ValueKind
from veil.schema import (
    EngineConfig,
    HandleRef,
    PermissionDecision,
    Run,
    RunMode,
    RunStatus,
    Scenario,
    ScenarioStep,
    VerifierConfig,
    load_config,
    load_config_from_string,
    load_scenario,
    load_scenario_from_string,
)


class TestEngineConfig:
    """Tests for EngineConfig model."""

    def test_defaults_give_simulation(self) -> None:
        config = EngineConfig()
        assert config.network == "simulation"
        assert config.seed == 0
        assert config.reveal_retries == 2
        assert config.verifier.require_proof is True

    def test_config_is_immutable(self) -> None:
        config = EngineConfig()
        with pytest.raises(ValidationError):
            config.seed = 5  # type: ignore[misc]

    def test_extra_fields_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EngineConfig(chain="x")  # type: ignore[call-arg]

    def test_retry_limits(self) -> None:
        with pytest.raises(ValidationError):
            EngineConfig(reveal_retries=-1)
        with pytest.raises(ValidationError):
            EngineConfig(reveal_retries=11)

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValidationError):
            VerifierConfig(secret="")


class TestScenarioStep:
    """Tests for ScenarioStep model."""

    def test_minimal_step(self) -> None:
        step = ScenarioStep(op="end_transaction")
        assert step.args == {}
        assert step.as_ is None
        assert step.expect is None

    def test_as_alias(self) -> None:
        step = ScenarioStep.model_validate({"op": "encode", "args": {"value": 1}, "as": "x"})
        assert step.as_ == "x"

    def test_populate_by_name(self) -> None:
        assert ScenarioStep(op="encode", as_="x").as_ == "x"

    def test_invalid_op_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ScenarioStep(op="rm -rf")

    def test_empty_op_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ScenarioStep(op="")

    def test_extra_fields_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ScenarioStep.model_validate({"op": "add", "tool": "x"})


class TestScenario:
    def test_empty_steps_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Scenario(steps=[])

    def test_round_trip_keeps_alias(self) -> None:
        scenario = Scenario(steps=[ScenarioStep(op="encode", as_="x")])
        dumped = scenario.model_dump(by_alias=True)
        assert dumped["steps"][0]["as"] == "x"
        assert Scenario.model_validate(dumped) == scenario


class TestRuntimeModels:
    def test_allow_decision(self) -> None:
        decision = PermissionDecision.allow("ok", rule="grant_self")
        assert decision.allowed
        assert decision.rule_matched == "grant_self"

    def test_deny_decision(self) -> None:
        decision = PermissionDecision.deny("no")
        assert not decision.allowed
        assert decision.rule_matched is None

    def test_handle_ref(self) -> None:
        ref = HandleRef(index=0, kind=ValueKind.EUINT8, digest="0xab")
        assert ref.model_dump(mode="json")["kind"] == "euint8"

    def test_run_defaults(self) -> None:
        run = Run(run_id="r1", scenario_hash="a", config_hash="b")
        assert run.mode == RunMode.RUN
        assert run.status == RunStatus.PENDING
        assert run.completed_at is None


class TestYamlLoading:
    def test_load_scenario_from_string(self) -> None:
        scenario = load_scenario_from_string(
            """
version: "1.0"
name: demo
caller: alice
steps:
  - op: encode
    args: {value: 5, kind: euint8}
    as: x
  - op: reveal
    args: {handle: x, principal: alice}
    expect: 5
"""
        )
        assert scenario.name == "demo"
        assert scenario.steps[0].as_ == "x"
        assert scenario.steps[1].expect == 5

    def test_load_config_from_string(self) -> None:
        config = load_config_from_string(
            """
network: local
seed: 42
verifier:
  require_proof: false
"""
        )
        assert config.network == "local"
        assert config.seed == 42
        assert config.verifier.require_proof is False

    def test_empty_config_uses_defaults(self) -> None:
        assert load_config_from_string("") == EngineConfig()

    def test_load_from_files(self, temp_dir: Path) -> None:
        (temp_dir / "config.yaml").write_text("seed: 3\n")
        (temp_dir / "scenario.yaml").write_text("steps:\n  - op: end_transaction\n")
        assert load_config(temp_dir / "config.yaml").seed == 3
        assert len(load_scenario(temp_dir / "scenario.yaml").steps) == 1

    def test_file_not_found(self, temp_dir: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_scenario(temp_dir / "missing.yaml")

    def test_missing_steps(self) -> None:
        with pytest.raises(ValidationError):
            load_scenario_from_string("name: nothing\n")

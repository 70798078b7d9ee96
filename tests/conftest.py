"""
Pytest configuration and fixtures for Veil tests.

This module provides shared fixtures used across unit, integration,
and security tests.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from veil.backend import SimulationBackend
from veil.context import ComputeContext
from veil.schema import EngineConfig, VerifierConfig
from veil.session import Session

CONTRACT = "0x00000000000000000000000000000000000c0de"
ALICE = "0x00000000000000000000000000000000000a11ce"
BOB = "0x0000000000000000000000000000000000000b0b"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db(temp_dir: Path) -> Path:
    """Path for a fresh audit database inside the temp directory."""
    return temp_dir / "veil.db"


@pytest.fixture
def config() -> EngineConfig:
    """Default simulation config with a fixed seed."""
    return EngineConfig(seed=7, contract=CONTRACT)


@pytest.fixture
def session(config: EngineConfig) -> Session:
    """Fresh session on the simulation backend."""
    return Session(config=config)


@pytest.fixture
def ctx(config: EngineConfig) -> ComputeContext:
    """Bare compute context for engine-level tests."""
    return ComputeContext.create(SimulationBackend(seed=config.seed), config)


@pytest.fixture
def lax_config() -> EngineConfig:
    """Config that skips the proof digest check (structural checks still run)."""
    return EngineConfig(contract=CONTRACT, verifier=VerifierConfig(require_proof=False))


@pytest.fixture
def transfer_scenario_yaml() -> str:
    """Scenario: a balance of 100, a transfer of 30, then an overdraft guarded by select."""
    return f"""
version: "1.0"
name: guarded-transfer
caller: "{ALICE}"
steps:
  - op: input
    args: {{value: 100, kind: euint64}}
    as: balance
  - op: grant_self
    args: {{handle: balance}}
  - op: end_transaction

  - op: input
    args: {{value: 30, kind: euint64}}
    as: amount
  - op: le
    args: {{a: amount, b: balance}}
    as: ok
  - op: sub
    args: {{a: balance, b: amount}}
    as: debited
  - op: select
    args: {{cond: ok, if_true: debited, if_false: balance}}
    as: balance
  - op: authorize
    args: {{handle: balance, principals: ["{ALICE}"]}}
  - op: end_transaction

  - op: input
    args: {{value: 999, kind: euint64}}
    as: amount
  - op: le
    args: {{a: amount, b: balance}}
    as: ok
  - op: sub
    args: {{a: balance, b: amount}}
    as: debited
  - op: select
    args: {{cond: ok, if_true: debited, if_false: balance}}
    as: balance
  - op: authorize
    args: {{handle: balance, principals: ["{ALICE}"]}}
  - op: end_transaction

  - op: reveal
    args: {{handle: balance, principal: "{ALICE}"}}
    expect: 70
"""


@pytest.fixture
def denied_scenario_yaml() -> str:
    """Scenario where a handle is reused after its transaction without a self grant."""
    return f"""
version: "1.0"
name: missing-grant
caller: "{ALICE}"
steps:
  - op: encode
    args: {{value: 5, kind: euint8}}
    as: x
  - op: end_transaction
  - op: add
    args: {{a: x, b: 1}}
    as: y
  - op: encode
    args: {{value: 1, kind: euint8}}
"""

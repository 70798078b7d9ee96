"""
Explicit computation context.

Every engine call receives a ComputeContext rather than reaching for global
state, so independent sessions and tests never share handles or grants.
"""

from dataclasses import dataclass, field

from veil.acl import PermissionLedger
from veil.backend import Backend
from veil.schema import EngineConfig


@dataclass
class ComputeContext:
    """
    Runtime context passed to every engine call.

    Attributes:
        backend: Backend that stores values and applies operations
        ledger: Permission ledger for this context
        config: Configuration the context was built from
        caller: Principal that initiated the current transaction, if any
        depth: Number of open transaction blocks
    """

    backend: Backend
    ledger: PermissionLedger
    config: EngineConfig = field(default_factory=EngineConfig)
    caller: str | None = None
    depth: int = 0

    @property
    def self_principal(self) -> str:
        return self.ledger.self_principal

    @classmethod
    def create(cls, backend: Backend, config: EngineConfig | None = None) -> "ComputeContext":
        """Build a context with a fresh ledger over the backend's registry."""
        config = config or EngineConfig()
        ledger = PermissionLedger(backend.registry, self_principal=config.contract)
        return cls(backend=backend, ledger=ledger, config=config)

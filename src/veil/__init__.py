"""
Veil - Handle-based confidential computation with a deterministic simulation backend.

Values live behind opaque handles. Every operation produces a new handle,
nothing may be used or revealed without an explicit grant, and conditionals
are expressed with select() instead of branching on secrets.

It provides:
- A typed operation engine over encrypted-kind handles
- A deny-by-default permission ledger
- Proof-checked admission of external inputs
- Scenario runs with a SQLite audit trail and deterministic replay

Example usage:
    $ veil run scenario.yaml --config simulation.yaml
    $ veil replay <run_id>
    $ veil report <run_id>
"""

__version__ = "0.1.0"
__author__ = "Veil Contributors"

from veil.errors import (
    InvalidProofError,
    KindMismatchError,
    PermissionDeniedError,
    RevealDeniedError,
    UnknownHandleError,
    VeilError,
)
from veil.handles import Handle
from veil.kinds import ValueKind
from veil.schema import EngineConfig, VerifierConfig
from veil.session import Session

__all__ = [
    "__version__",
    "__author__",
    "EngineConfig",
    "Handle",
    "InvalidProofError",
    "KindMismatchError",
    "PermissionDeniedError",
    "RevealDeniedError",
    "Session",
    "UnknownHandleError",
    "ValueKind",
    "VeilError",
    "VerifierConfig",
]

"""
Backends for Veil.

A backend stores values behind handles, applies operations and serves the
reveal path. Application code is written against the Session call surface
and never depends on which backend is underneath.

Architecture:
    - Backend: Abstract base class defining the backend interface
    - SimulationBackend: Plaintext values, deterministic randomness
    - BackendRegistry: Maps network identifiers to backend factories

Backends are normally injected explicitly. Discovery by network identifier
is a convenience for configuration files and the CLI.
"""

from veil.backend.base import Backend
from veil.backend.discovery import (
    BackendRegistry,
    default_backends,
    register_backend,
    resolve_backend,
)
from veil.backend.simulation import SimulationBackend

__all__ = [
    "Backend",
    "BackendRegistry",
    "SimulationBackend",
    "default_backends",
    "register_backend",
    "resolve_backend",
]

"""
Backend interface.

Design Principles:
    - Backends never check permissions; the engine does that first
    - Backends never fail on operand magnitude
    - decrypt() is the only path that yields a plain value, and may fail
      transiently with RevealUnavailableError on real deployments
"""

from abc import ABC, abstractmethod

from veil.handles import Handle, HandleRegistry
from veil.kinds import ValueKind
from veil.ops.base import Operation


class Backend(ABC):
    """
    Abstract base class for value backends.

    Attributes:
        registry: Handle registry; production backends keep only kinds
            queryable through it
    """

    registry: HandleRegistry

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def store(self, value: int, kind: ValueKind) -> Handle:
        """Bind a known value to a new handle (trivial encoding)."""
        ...

    @abstractmethod
    def apply(
        self,
        operation: Operation,
        operands: list[Handle],
        result_kind: ValueKind,
    ) -> Handle:
        """Apply an operation to operand handles, returning a new handle."""
        ...

    @abstractmethod
    def random_value(self, kind: ValueKind, bound: int | None = None) -> Handle:
        """New handle holding a random value, below bound when given."""
        ...

    @abstractmethod
    def decrypt(self, handle: Handle) -> int:
        """Reveal the stored value. Callers check permissions first."""
        ...

    def kind_of(self, handle: Handle) -> ValueKind:
        """Kind metadata for a handle. Raises UnknownHandleError."""
        return self.registry.kind_of(handle)

    def __repr__(self) -> str:
        return f"<Backend: {self.name}>"

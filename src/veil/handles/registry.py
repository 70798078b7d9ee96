"""
Arena-backed handle registry.

Each registry instance owns its own index space, so independent sessions
(and independent tests) never share handles. Handles are immutable; an
"update" to a logical quantity is always a new handle.

Usage:
    registry = HandleRegistry()
    h = registry.create(42, ValueKind.EUINT8)
    value, kind = registry.resolve(h)
"""

import hashlib
import itertools
from dataclasses import dataclass, field
from typing import Iterator

from veil.errors import UnknownHandleError
from veil.kinds import ValueKind, spec_for


@dataclass(frozen=True)
class Handle:
    """
    Opaque reference to exactly one stored value of one kind.

    Attributes:
        index: Position in the owning registry's arena
        kind: Declared kind, fixed at creation
        namespace: Identifier of the registry that allocated the handle
        owner: Serial of the allocating registry instance (not part of equality)
    """

    index: int
    kind: ValueKind
    namespace: str = ""
    owner: int = field(default=0, compare=False, repr=False)

    @property
    def digest(self) -> str:
        """32-byte hex identifier, stable for a given namespace and index."""
        material = f"{self.namespace}:{self.index}:{self.kind.value}".encode("utf-8")
        return "0x" + hashlib.sha256(material).hexdigest()

    def __str__(self) -> str:
        return f"{self.kind.value}#{self.index}"


@dataclass(frozen=True)
class _Slot:
    value: int
    kind: ValueKind


_registry_serials = itertools.count(1)


class HandleRegistry:
    """
    Registry mapping handles to stored values and kinds.

    Attributes:
        namespace: Identifier stamped into every handle this registry creates
        _slots: Arena of stored values, indexed by handle index
    """

    def __init__(self, namespace: str = "sim") -> None:
        self.namespace = namespace
        self._serial = next(_registry_serials)
        self._slots: list[_Slot] = []

    def create(self, value: int, kind: ValueKind) -> Handle:
        """
        Allocate a new handle bound to value and kind.

        The value is wrapped into the kind's range. Always succeeds and never
        reuses an index.
        """
        kind = ValueKind(kind)
        stored = spec_for(kind).wrap(int(value))
        self._slots.append(_Slot(stored, kind))
        return Handle(
            index=len(self._slots) - 1,
            kind=kind,
            namespace=self.namespace,
            owner=self._serial,
        )

    def resolve(self, handle: Handle) -> tuple[int, ValueKind]:
        """
        Look up the value and kind behind a handle.

        Raises:
            UnknownHandleError: If this registry never created the handle
        """
        slot = self._slot(handle)
        return slot.value, slot.kind

    def kind_of(self, handle: Handle) -> ValueKind:
        """Return the kind of a handle. Metadata only, never the value."""
        return self._slot(handle).kind

    def _slot(self, handle: Handle) -> _Slot:
        if (
            not isinstance(handle, Handle)
            or handle.owner != self._serial
            or not 0 <= handle.index < len(self._slots)
        ):
            raise UnknownHandleError(handle=str(handle))
        slot = self._slots[handle.index]
        if slot.kind != handle.kind:
            raise UnknownHandleError(handle=str(handle))
        return slot

    def __contains__(self, handle: object) -> bool:
        try:
            self._slot(handle)  # type: ignore[arg-type]
        except UnknownHandleError:
            return False
        return True

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[Handle]:
        for index, slot in enumerate(self._slots):
            yield Handle(index, slot.kind, self.namespace, self._serial)

    def __repr__(self) -> str:
        return f"<HandleRegistry {self.namespace}: {len(self._slots)} handles>"

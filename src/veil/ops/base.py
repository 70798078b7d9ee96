"""
Base classes for engine operations.

An Operation is a pure function over stored values plus a kind rule that
decides which operand kinds it accepts and what kind it produces. The
OperationEngine looks operations up by name, checks kinds and permissions,
and asks the backend to apply them.

Design Principles:
    - Operations are stateless and never see handles, only values
    - Kind rules raise KindMismatchError; compute never raises
    - compute returns an unbounded int; the registry wraps it into range
"""

from abc import ABC, abstractmethod
from typing import Callable

from veil.errors import KindMismatchError
from veil.kinds import KindSpec, OpFamily, ValueKind, spec_for

# (left value, right value, spec of the left operand's kind) -> result
BinaryFn = Callable[[int, int, KindSpec], int]
UnaryFn = Callable[[int, KindSpec], int]


class Operation(ABC):
    """
    Abstract base class for every handle operation.

    Subclasses must implement:
    - name property: the operation's unique identifier
    - result_kind(): validate operand kinds and return the result kind
    - compute(): produce the result from operand values

    Example:
        class Double(Operation):
            family = OpFamily.ARITHMETIC
            arity = 1

            @property
            def name(self) -> str:
                return "double"

            def result_kind(self, kinds):
                return self.require_family(kinds[0])

            def compute(self, values, kinds):
                return values[0] * 2
    """

    family: OpFamily
    arity: int

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    def description(self) -> str:
        return f"Operation: {self.name}"

    @abstractmethod
    def result_kind(self, kinds: list[ValueKind]) -> ValueKind:
        ...

    @abstractmethod
    def compute(self, values: list[int], kinds: list[ValueKind]) -> int:
        ...

    def accepts(self, kind: ValueKind) -> bool:
        """Whether the kind may appear as this operation's primary operand."""
        return spec_for(kind).supports(self.family)

    def require_family(self, kind: ValueKind) -> ValueKind:
        if not self.accepts(kind):
            raise KindMismatchError(
                operation=self.name,
                expected=f"a kind supporting {self.family.value}",
                actual=kind.value,
            )
        return kind

    def require_same(self, kinds: list[ValueKind]) -> ValueKind:
        first = kinds[0]
        for other in kinds[1:]:
            if other != first:
                raise KindMismatchError(
                    operation=self.name,
                    expected=first.value,
                    actual=other.value,
                )
        return first

    def __repr__(self) -> str:
        return f"<Operation: {self.name}>"


class BinaryOperation(Operation):
    """Two operands of the same kind, result of that kind."""

    arity = 2

    def __init__(self, name: str, family: OpFamily, fn: BinaryFn, description: str = "") -> None:
        self._name = name
        self.family = family
        self._fn = fn
        self._description = description

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description or super().description

    def result_kind(self, kinds: list[ValueKind]) -> ValueKind:
        return self.require_family(self.require_same(kinds))

    def compute(self, values: list[int], kinds: list[ValueKind]) -> int:
        return self._fn(values[0], values[1], spec_for(kinds[0]))


class ComparisonOperation(BinaryOperation):
    """Two operands of the same kind, boolean result."""

    def result_kind(self, kinds: list[ValueKind]) -> ValueKind:
        super().result_kind(kinds)
        return ValueKind.EBOOL


class ShiftOperation(BinaryOperation):
    """
    Shift or rotate an unsigned value.

    The amount may be any unsigned kind and is taken modulo the bit width of
    the shifted operand.
    """

    def result_kind(self, kinds: list[ValueKind]) -> ValueKind:
        kind = self.require_family(kinds[0])
        if not self.accepts(kinds[1]):
            raise KindMismatchError(
                operation=self.name,
                expected="an unsigned shift amount",
                actual=kinds[1].value,
            )
        return kind

    def compute(self, values: list[int], kinds: list[ValueKind]) -> int:
        spec = spec_for(kinds[0])
        return self._fn(values[0], values[1] % spec.bits, spec)


class UnaryOperation(Operation):
    """One operand, result of the same kind."""

    arity = 1

    def __init__(self, name: str, family: OpFamily, fn: UnaryFn, description: str = "") -> None:
        self._name = name
        self.family = family
        self._fn = fn
        self._description = description

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description or super().description

    def result_kind(self, kinds: list[ValueKind]) -> ValueKind:
        return self.require_family(kinds[0])

    def compute(self, values: list[int], kinds: list[ValueKind]) -> int:
        return self._fn(values[0], spec_for(kinds[0]))


class SelectOperation(Operation):
    """
    Branchless ternary: select(cond, if_true, if_false).

    Both branch values are always read and combined; the condition only
    weights them.
    """

    family = OpFamily.SELECT
    arity = 3

    @property
    def name(self) -> str:
        return "select"

    @property
    def description(self) -> str:
        return "Choose between two same-kind handles by a boolean handle"

    def result_kind(self, kinds: list[ValueKind]) -> ValueKind:
        if kinds[0] != ValueKind.EBOOL:
            raise KindMismatchError(
                operation=self.name,
                expected=ValueKind.EBOOL.value,
                actual=kinds[0].value,
            )
        return self.require_family(self.require_same(kinds[1:]))

    def compute(self, values: list[int], kinds: list[ValueKind]) -> int:
        cond, if_true, if_false = values
        return cond * if_true + (1 - cond) * if_false


class CastOperation(Operation):
    """
    Convert one operand to a target kind.

    Unsigned widths truncate or zero-extend, ebool becomes 0/1, and an
    unsigned value becomes ebool "non-zero". eaddress converts only to
    itself.
    """

    family = OpFamily.CAST
    arity = 1

    def __init__(self, target: ValueKind) -> None:
        self.target = ValueKind(target)

    @property
    def name(self) -> str:
        return "cast"

    @property
    def description(self) -> str:
        return "Convert a handle to another kind"

    def result_kind(self, kinds: list[ValueKind]) -> ValueKind:
        source = self.require_family(kinds[0])
        address = ValueKind.EADDRESS
        if address in (source, self.target) and source != self.target:
            raise KindMismatchError(
                operation=self.name,
                expected="a boolean or unsigned kind",
                actual=f"{source.value} -> {self.target.value}",
            )
        return self.target

    def compute(self, values: list[int], kinds: list[ValueKind]) -> int:
        if self.target == ValueKind.EBOOL:
            return int(values[0] != 0)
        return values[0]

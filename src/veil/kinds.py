"""
Value kinds for Veil.

Every handle carries exactly one ValueKind, fixed at creation. Kinds form a
closed enum; per-kind behaviour (width, literal coercion, which operation
families apply) lives in a small table of KindSpec rows looked up by kind.

Families:
    - BOOLEAN: ebool
    - UNSIGNED: euint8 .. euint256
    - ADDRESS: eaddress (160-bit principal identifier)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from veil.errors import KindMismatchError


class ValueKind(str, Enum):
    """Declared kind of the value behind a handle."""

    EBOOL = "ebool"
    EUINT8 = "euint8"
    EUINT16 = "euint16"
    EUINT32 = "euint32"
    EUINT64 = "euint64"
    EUINT128 = "euint128"
    EUINT256 = "euint256"
    EADDRESS = "eaddress"


class KindFamily(str, Enum):
    """Groups of kinds that share operation rules."""

    BOOLEAN = "boolean"
    UNSIGNED = "unsigned"
    ADDRESS = "address"


class OpFamily(str, Enum):
    """Operation families, used to decide which kinds an operation accepts."""

    ARITHMETIC = "arithmetic"
    BITWISE = "bitwise"
    SHIFT = "shift"
    EQUALITY = "equality"
    ORDERING = "ordering"
    SELECT = "select"
    CAST = "cast"
    RANDOM = "random"


@dataclass(frozen=True)
class KindSpec:
    """
    Table row describing one value kind.

    Attributes:
        kind: The kind this row describes
        bits: Bit width of the value
        family: Which family the kind belongs to
        tag: One-byte tag used in external input encodings
        families: Operation families the kind supports
    """

    kind: ValueKind
    bits: int
    family: KindFamily
    tag: int
    families: frozenset[OpFamily]

    @property
    def mask(self) -> int:
        return (1 << self.bits) - 1

    def wrap(self, value: int) -> int:
        """Reduce an integer into this kind's range."""
        if self.family == KindFamily.BOOLEAN:
            return 1 if value else 0
        return value & self.mask

    def to_python(self, value: int) -> Any:
        """Present a stored value in its natural Python form."""
        if self.family == KindFamily.BOOLEAN:
            return bool(value)
        return value

    def coerce_literal(self, literal: Any) -> int:
        """
        Convert a caller-supplied literal into this kind's stored form.

        Integers are wrapped into range rather than rejected. Addresses also
        accept 0x-prefixed hex strings. A literal of the wrong Python type is
        a programmer error and raises KindMismatchError.
        """
        if isinstance(literal, bool):
            if self.family == KindFamily.ADDRESS:
                raise KindMismatchError(
                    operation="encode",
                    expected=self.kind.value,
                    actual="bool",
                )
            return int(literal)

        if isinstance(literal, int):
            return self.wrap(literal)

        if isinstance(literal, str) and self.family == KindFamily.ADDRESS:
            text = literal.lower()
            if text.startswith("0x"):
                text = text[2:]
            try:
                return self.wrap(int(text, 16))
            except ValueError:
                raise KindMismatchError(
                    operation="encode",
                    expected="hex address",
                    actual=repr(literal),
                ) from None

        raise KindMismatchError(
            operation="encode",
            expected=self.kind.value,
            actual=type(literal).__name__,
        )

    def supports(self, family: OpFamily) -> bool:
        return family in self.families


_UNSIGNED_FAMILIES = frozenset({
    OpFamily.ARITHMETIC,
    OpFamily.BITWISE,
    OpFamily.SHIFT,
    OpFamily.EQUALITY,
    OpFamily.ORDERING,
    OpFamily.SELECT,
    OpFamily.RANDOM,
    OpFamily.CAST,
})


def _unsigned(kind: ValueKind, bits: int, tag: int) -> KindSpec:
    return KindSpec(kind, bits, KindFamily.UNSIGNED, tag, _UNSIGNED_FAMILIES)


KIND_TABLE: dict[ValueKind, KindSpec] = {
    ValueKind.EBOOL: KindSpec(
        ValueKind.EBOOL,
        1,
        KindFamily.BOOLEAN,
        0,
        frozenset({
            OpFamily.BITWISE,
            OpFamily.EQUALITY,
            OpFamily.SELECT,
            OpFamily.RANDOM,
            OpFamily.CAST,
        }),
    ),
    ValueKind.EUINT8: _unsigned(ValueKind.EUINT8, 8, 2),
    ValueKind.EUINT16: _unsigned(ValueKind.EUINT16, 16, 3),
    ValueKind.EUINT32: _unsigned(ValueKind.EUINT32, 32, 4),
    ValueKind.EUINT64: _unsigned(ValueKind.EUINT64, 64, 5),
    ValueKind.EUINT128: _unsigned(ValueKind.EUINT128, 128, 6),
    ValueKind.EADDRESS: KindSpec(
        ValueKind.EADDRESS,
        160,
        KindFamily.ADDRESS,
        7,
        frozenset({OpFamily.EQUALITY, OpFamily.SELECT, OpFamily.CAST}),
    ),
    ValueKind.EUINT256: _unsigned(ValueKind.EUINT256, 256, 8),
}

_BY_TAG: dict[int, KindSpec] = {spec.tag: spec for spec in KIND_TABLE.values()}


def spec_for(kind: ValueKind | str) -> KindSpec:
    """Look up the table row for a kind (accepts the enum or its string value)."""
    try:
        return KIND_TABLE[ValueKind(kind)]
    except ValueError:
        raise KindMismatchError(
            operation="kind lookup",
            expected="one of " + ", ".join(k.value for k in ValueKind),
            actual=str(kind),
        ) from None


def spec_for_tag(tag: int) -> KindSpec | None:
    """Look up a kind by its external input tag."""
    return _BY_TAG.get(tag)


def unsigned_kinds() -> list[ValueKind]:
    """All unsigned integer kinds, narrowest first."""
    return [s.kind for s in sorted(KIND_TABLE.values(), key=lambda s: s.bits)
            if s.family == KindFamily.UNSIGNED]

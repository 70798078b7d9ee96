"""
Unit tests for value kinds.

Tests cover:
- Kind table widths, tags and families
- Literal coercion and wrapping
- Lookup by name and by tag
"""

import pytest

from veil.errors import KindMismatchError
from veil.kinds import (
    KIND_TABLE,
    KindFamily,
    OpFamily,
    ValueKind,
    spec_for,
    spec_for_tag,
    unsigned_kinds,
)


class TestKindTable:
    """The kind table covers every kind exactly once."""

    def test_every_kind_has_a_row(self) -> None:
        assert set(KIND_TABLE) == set(ValueKind)

    @pytest.mark.parametrize(
        "kind,bits",
        [
            (ValueKind.EBOOL, 1),
            (ValueKind.EUINT8, 8),
            (ValueKind.EUINT16, 16),
            (ValueKind.EUINT32, 32),
            (ValueKind.EUINT64, 64),
            (ValueKind.EUINT128, 128),
            (ValueKind.EUINT256, 256),
            (ValueKind.EADDRESS, 160),
        ],
    )
    def test_widths(self, kind: ValueKind, bits: int) -> None:
        assert spec_for(kind).bits == bits

    def test_tags_are_unique(self) -> None:
        tags = [spec.tag for spec in KIND_TABLE.values()]
        assert len(tags) == len(set(tags))

    def test_families(self) -> None:
        assert spec_for(ValueKind.EBOOL).family == KindFamily.BOOLEAN
        assert spec_for(ValueKind.EADDRESS).family == KindFamily.ADDRESS
        assert all(spec_for(k).family == KindFamily.UNSIGNED for k in unsigned_kinds())

    def test_unsigned_kinds_ordered_by_width(self) -> None:
        kinds = unsigned_kinds()
        assert kinds[0] == ValueKind.EUINT8
        assert kinds[-1] == ValueKind.EUINT256
        assert len(kinds) == 6

    def test_address_supports_only_equality_select_cast(self) -> None:
        spec = spec_for(ValueKind.EADDRESS)
        assert spec.supports(OpFamily.EQUALITY)
        assert spec.supports(OpFamily.SELECT)
        assert not spec.supports(OpFamily.ARITHMETIC)
        assert not spec.supports(OpFamily.ORDERING)
        assert not spec.supports(OpFamily.RANDOM)

    def test_bool_has_no_arithmetic(self) -> None:
        spec = spec_for(ValueKind.EBOOL)
        assert spec.supports(OpFamily.BITWISE)
        assert not spec.supports(OpFamily.ARITHMETIC)
        assert not spec.supports(OpFamily.SHIFT)


class TestLookup:
    def test_lookup_by_string(self) -> None:
        assert spec_for("euint32").kind == ValueKind.EUINT32

    def test_unknown_kind_raises(self) -> None:
        with pytest.raises(KindMismatchError):
            spec_for("euint7")

    def test_lookup_by_tag(self) -> None:
        assert spec_for_tag(5).kind == ValueKind.EUINT64
        assert spec_for_tag(1) is None
        assert spec_for_tag(255) is None


class TestCoercion:
    """Literal coercion wraps integers and rejects wrong Python types."""

    def test_wraps_overflow(self) -> None:
        assert spec_for(ValueKind.EUINT8).coerce_literal(300) == 44

    def test_wraps_negative(self) -> None:
        assert spec_for(ValueKind.EUINT8).coerce_literal(-1) == 255

    def test_bool_literal(self) -> None:
        assert spec_for(ValueKind.EBOOL).coerce_literal(True) == 1
        assert spec_for(ValueKind.EBOOL).coerce_literal(0) == 0
        assert spec_for(ValueKind.EBOOL).coerce_literal(7) == 1

    def test_address_from_hex(self) -> None:
        spec = spec_for(ValueKind.EADDRESS)
        assert spec.coerce_literal("0x" + "00" * 19 + "ff") == 255

    def test_address_rejects_garbage(self) -> None:
        with pytest.raises(KindMismatchError):
            spec_for(ValueKind.EADDRESS).coerce_literal("0xnothex")

    def test_address_rejects_bool(self) -> None:
        with pytest.raises(KindMismatchError):
            spec_for(ValueKind.EADDRESS).coerce_literal(True)

    def test_uint_rejects_string(self) -> None:
        with pytest.raises(KindMismatchError):
            spec_for(ValueKind.EUINT64).coerce_literal("100")

    def test_to_python(self) -> None:
        assert spec_for(ValueKind.EBOOL).to_python(1) is True
        assert spec_for(ValueKind.EUINT8).to_python(9) == 9

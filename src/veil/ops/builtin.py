"""
Built-in operations.

Every function here is total over its kind's range: overflow wraps, division
and remainder by zero give zero, shift amounts are reduced modulo the width.
No operation can fail because of an operand's magnitude.
"""

from veil.kinds import KindFamily, KindSpec, OpFamily
from veil.ops.base import (
    BinaryOperation,
    ComparisonOperation,
    SelectOperation,
    ShiftOperation,
    UnaryOperation,
)
from veil.ops.table import OperationTable, default_table


def _div(a: int, b: int, spec: KindSpec) -> int:
    return a // b if b else 0


def _rem(a: int, b: int, spec: KindSpec) -> int:
    return a % b if b else 0


def _rotl(a: int, s: int, spec: KindSpec) -> int:
    return ((a << s) | (a >> (spec.bits - s))) & spec.mask


def _rotr(a: int, s: int, spec: KindSpec) -> int:
    return ((a >> s) | (a << (spec.bits - s))) & spec.mask


def _not(a: int, spec: KindSpec) -> int:
    if spec.family == KindFamily.BOOLEAN:
        return 1 - a
    return ~a & spec.mask


ARITHMETIC = [
    BinaryOperation("add", OpFamily.ARITHMETIC, lambda a, b, s: a + b, "Wrapping addition"),
    BinaryOperation("sub", OpFamily.ARITHMETIC, lambda a, b, s: a - b, "Wrapping subtraction"),
    BinaryOperation("mul", OpFamily.ARITHMETIC, lambda a, b, s: a * b, "Wrapping multiplication"),
    BinaryOperation("div", OpFamily.ARITHMETIC, _div, "Unsigned division, zero divisor gives 0"),
    BinaryOperation("rem", OpFamily.ARITHMETIC, _rem, "Unsigned remainder, zero divisor gives 0"),
    UnaryOperation("neg", OpFamily.ARITHMETIC, lambda a, s: -a, "Two's complement negation"),
]

BITWISE = [
    BinaryOperation("and", OpFamily.BITWISE, lambda a, b, s: a & b, "Bitwise and"),
    BinaryOperation("or", OpFamily.BITWISE, lambda a, b, s: a | b, "Bitwise or"),
    BinaryOperation("xor", OpFamily.BITWISE, lambda a, b, s: a ^ b, "Bitwise xor"),
    UnaryOperation("not", OpFamily.BITWISE, _not, "Bitwise complement"),
    ShiftOperation("shl", OpFamily.SHIFT, lambda a, n, s: a << n, "Shift left"),
    ShiftOperation("shr", OpFamily.SHIFT, lambda a, n, s: a >> n, "Logical shift right"),
    ShiftOperation("rotl", OpFamily.SHIFT, _rotl, "Rotate left"),
    ShiftOperation("rotr", OpFamily.SHIFT, _rotr, "Rotate right"),
]

COMPARISON = [
    ComparisonOperation("eq", OpFamily.EQUALITY, lambda a, b, s: int(a == b), "Equal"),
    ComparisonOperation("ne", OpFamily.EQUALITY, lambda a, b, s: int(a != b), "Not equal"),
    ComparisonOperation("lt", OpFamily.ORDERING, lambda a, b, s: int(a < b), "Less than"),
    ComparisonOperation("le", OpFamily.ORDERING, lambda a, b, s: int(a <= b), "Less or equal"),
    ComparisonOperation("gt", OpFamily.ORDERING, lambda a, b, s: int(a > b), "Greater than"),
    ComparisonOperation("ge", OpFamily.ORDERING, lambda a, b, s: int(a >= b), "Greater or equal"),
    # select(le(a, b), a, b) and select(ge(a, b), a, b)
    BinaryOperation("min", OpFamily.ORDERING, lambda a, b, s: a if a <= b else b, "Minimum"),
    BinaryOperation("max", OpFamily.ORDERING, lambda a, b, s: a if a >= b else b, "Maximum"),
]


def register_arithmetic_operations(table: OperationTable | None = None) -> None:
    if table is None:
        table = default_table
    for operation in ARITHMETIC:
        table.register(operation)


def register_bitwise_operations(table: OperationTable | None = None) -> None:
    if table is None:
        table = default_table
    for operation in BITWISE:
        table.register(operation)


def register_comparison_operations(table: OperationTable | None = None) -> None:
    if table is None:
        table = default_table
    for operation in COMPARISON:
        table.register(operation)
    table.register(SelectOperation())


def register_builtin_operations(table: OperationTable | None = None) -> None:
    """Register every built-in operation in the given (or default) table."""
    register_arithmetic_operations(table)
    register_bitwise_operations(table)
    register_comparison_operations(table)

"""
Operations module for Veil.

This module provides the operation interface, the operation table and the
stateless OperationEngine.

Built-in operations:
    - Arithmetic: add, sub, mul, div, rem, neg
    - Bitwise: and, or, xor, not, shl, shr, rotl, rotr
    - Comparison: eq, ne, lt, le, gt, ge, min, max
    - Selection: select
    - Engine calls outside the table: encode, cast, random, random_bounded

Every operation allocates a new result handle with no grants.
"""

from veil.ops.base import (
    BinaryOperation,
    CastOperation,
    ComparisonOperation,
    Operation,
    SelectOperation,
    ShiftOperation,
    UnaryOperation,
)
from veil.ops.builtin import register_builtin_operations
from veil.ops.engine import OperationEngine
from veil.ops.table import OperationTable, default_table

# Register built-in operations
register_builtin_operations()

__all__ = [
    "BinaryOperation",
    "CastOperation",
    "ComparisonOperation",
    "Operation",
    "OperationEngine",
    "OperationTable",
    "SelectOperation",
    "ShiftOperation",
    "UnaryOperation",
    "default_table",
    "register_builtin_operations",
]

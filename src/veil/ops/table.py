"""
Operation table for Veil.

The table maps operation names to Operation instances. The engine resolves
every call through a table; independent tables can be built for tests.

Usage:
    from veil.ops.table import default_table

    op = default_table.get("add")
"""

from typing import Iterator

from veil.errors import UnknownOperationError
from veil.ops.base import Operation


class OperationTable:
    """
    Registry for looking up operations by name.

    Attributes:
        _operations: Mapping of operation names to instances
    """

    def __init__(self) -> None:
        self._operations: dict[str, Operation] = {}

    def register(self, operation: Operation) -> None:
        """
        Register an operation, replacing any previous one with that name.

        Raises:
            ValueError: If operation is None or has an empty name
        """
        if operation is None:
            msg = "Cannot register None as an operation"
            raise ValueError(msg)

        name = operation.name
        if not name:
            msg = "Operation must have a non-empty name"
            raise ValueError(msg)

        self._operations[name] = operation

    def get(self, name: str) -> Operation:
        """
        Look up an operation by name.

        Raises:
            UnknownOperationError: If no operation with that name is registered
        """
        operation = self._operations.get(name)
        if operation is None:
            raise UnknownOperationError(operation=name)
        return operation

    def has(self, name: str) -> bool:
        return name in self._operations

    def list_operations(self) -> list[str]:
        """List all registered operation names in sorted order."""
        return sorted(self._operations.keys())

    def __len__(self) -> int:
        return len(self._operations)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self._operations.values())

    def __contains__(self, name: str) -> bool:
        return name in self._operations

    def __repr__(self) -> str:
        return f"<OperationTable: [{', '.join(self.list_operations())}]>"


# Table used by the engine unless another one is injected
default_table = OperationTable()


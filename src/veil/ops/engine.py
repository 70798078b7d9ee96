"""
Operation engine for Veil.

The engine is stateless: each call takes an explicit ComputeContext, checks
the request, and asks the context's backend for a fresh result handle.

Check order for handle operations:
    1. Operands exist in the context's registry (UnknownHandleError)
    2. Operand kinds satisfy the operation's kind rule (KindMismatchError)
    3. Every operand may be used (PermissionDeniedError)
    4. The backend computes a new handle, marked fresh in the ledger

The result never inherits grants from its operands, and no call fails
because of an operand's magnitude.
"""

from typing import TYPE_CHECKING, Any

from veil.errors import KindMismatchError
from veil.handles import Handle
from veil.kinds import OpFamily, ValueKind, spec_for
from veil.ops.base import CastOperation
from veil.ops.table import OperationTable, default_table

if TYPE_CHECKING:
    from veil.context import ComputeContext

# Handle operand or plaintext scalar, encoded on the fly
Operand = Handle | int | bool


class OperationEngine:
    """
    Deterministic functions over handles.

    Usage:
        engine = OperationEngine()
        total = engine.add(ctx, balance, engine.encode(ctx, 30, ValueKind.EUINT64))

    Attributes:
        table: Operation table used to resolve operation names
    """

    def __init__(self, table: OperationTable | None = None) -> None:
        self.table = table if table is not None else default_table

    # =========================================================================
    # Generic dispatch
    # =========================================================================

    def apply(self, ctx: "ComputeContext", name: str, *operands: Operand) -> Handle:
        """
        Apply a named operation.

        Plaintext scalars are trivially encoded using the kind of the first
        handle operand.

        Raises:
            UnknownOperationError: If the name is not in the table
            UnknownHandleError: If an operand is not in the registry
            KindMismatchError: If operand kinds are incompatible
            PermissionDeniedError: If an operand lacks a use grant
        """
        operation = self.table.get(name)
        if len(operands) != operation.arity:
            raise KindMismatchError(
                operation=name,
                expected=f"{operation.arity} operands",
                actual=f"{len(operands)} operands",
            )

        handles = self._coerce_operands(ctx, name, operands)
        kinds = [ctx.backend.kind_of(h) for h in handles]
        result_kind = operation.result_kind(kinds)
        for handle in handles:
            ctx.ledger.require_use(handle)

        result = ctx.backend.apply(operation, handles, result_kind)
        ctx.ledger.mark_fresh(result)
        return result

    def _coerce_operands(
        self,
        ctx: "ComputeContext",
        name: str,
        operands: tuple[Operand, ...],
    ) -> list[Handle]:
        anchor = next((o for o in operands if isinstance(o, Handle)), None)
        if anchor is None:
            raise KindMismatchError(
                operation=name,
                expected="at least one handle operand",
                actual="only plaintext scalars",
            )
        anchor_kind = ctx.backend.kind_of(anchor)
        return [
            o if isinstance(o, Handle) else self.encode(ctx, o, anchor_kind)
            for o in operands
        ]

    # =========================================================================
    # Arithmetic
    # =========================================================================

    def add(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "add", a, b)

    def sub(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "sub", a, b)

    def mul(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "mul", a, b)

    def div(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        """Unsigned division; a zero divisor yields a zero-valued handle."""
        return self.apply(ctx, "div", a, b)

    def rem(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        """Unsigned remainder; a zero divisor yields a zero-valued handle."""
        return self.apply(ctx, "rem", a, b)

    def neg(self, ctx: "ComputeContext", a: Handle) -> Handle:
        return self.apply(ctx, "neg", a)

    # =========================================================================
    # Bitwise
    # =========================================================================

    def and_(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "and", a, b)

    def or_(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "or", a, b)

    def xor(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "xor", a, b)

    def not_(self, ctx: "ComputeContext", a: Handle) -> Handle:
        return self.apply(ctx, "not", a)

    def shl(self, ctx: "ComputeContext", a: Operand, amount: Operand) -> Handle:
        return self.apply(ctx, "shl", a, amount)

    def shr(self, ctx: "ComputeContext", a: Operand, amount: Operand) -> Handle:
        return self.apply(ctx, "shr", a, amount)

    def rotl(self, ctx: "ComputeContext", a: Operand, amount: Operand) -> Handle:
        return self.apply(ctx, "rotl", a, amount)

    def rotr(self, ctx: "ComputeContext", a: Operand, amount: Operand) -> Handle:
        return self.apply(ctx, "rotr", a, amount)

    # =========================================================================
    # Comparison and selection
    # =========================================================================

    def eq(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "eq", a, b)

    def ne(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "ne", a, b)

    def lt(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "lt", a, b)

    def le(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "le", a, b)

    def gt(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "gt", a, b)

    def ge(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "ge", a, b)

    def min(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "min", a, b)

    def max(self, ctx: "ComputeContext", a: Operand, b: Operand) -> Handle:
        return self.apply(ctx, "max", a, b)

    def select(
        self,
        ctx: "ComputeContext",
        cond: Operand,
        if_true: Operand,
        if_false: Operand,
    ) -> Handle:
        """
        Branchless selection. Both branches are always read.

        A plaintext condition is encoded as ebool. Plaintext branches are
        encoded with the kind of the other branch.

        Raises:
            KindMismatchError: If neither branch is a handle
        """
        if not isinstance(if_true, Handle) and not isinstance(if_false, Handle):
            raise KindMismatchError(
                operation="select",
                expected="at least one handle branch",
                actual="only plaintext scalars",
            )
        if not isinstance(cond, Handle):
            cond = self.encode(ctx, cond, ValueKind.EBOOL)
        if not isinstance(if_true, Handle):
            if_true = self.encode(ctx, if_true, ctx.backend.kind_of(if_false))
        elif not isinstance(if_false, Handle):
            if_false = self.encode(ctx, if_false, ctx.backend.kind_of(if_true))
        return self.apply(ctx, "select", cond, if_true, if_false)

    # =========================================================================
    # Encoding, casting and randomness
    # =========================================================================

    def encode(self, ctx: "ComputeContext", value: Any, kind: ValueKind | str) -> Handle:
        """
        Trivially encode a value the caller already knows.

        Integers are wrapped into the kind's range.

        Raises:
            KindMismatchError: If the literal's Python type cannot denote the kind
        """
        spec = spec_for(kind)
        handle = ctx.backend.store(spec.coerce_literal(value), spec.kind)
        ctx.ledger.mark_fresh(handle)
        return handle

    def cast(self, ctx: "ComputeContext", handle: Handle, target: ValueKind | str) -> Handle:
        """
        Convert a handle to another kind, always producing a new handle.

        Unsigned to unsigned truncates or zero-extends, ebool to unsigned
        gives 0/1, unsigned to ebool is "non-zero". eaddress casts only to
        itself.

        Raises:
            KindMismatchError: For conversions to or from eaddress
            PermissionDeniedError: If the operand lacks a use grant
        """
        operation = CastOperation(spec_for(target).kind)
        result_kind = operation.result_kind([ctx.backend.kind_of(handle)])
        ctx.ledger.require_use(handle)

        result = ctx.backend.apply(operation, [handle], result_kind)
        ctx.ledger.mark_fresh(result)
        return result

    def random(self, ctx: "ComputeContext", kind: ValueKind | str) -> Handle:
        """Fresh random handle of the kind (deterministic in simulation)."""
        return self._random(ctx, kind, None)

    def random_bounded(self, ctx: "ComputeContext", bound: int, kind: ValueKind | str) -> Handle:
        """Random handle below bound; a zero bound yields a zero-valued handle."""
        return self._random(ctx, kind, max(int(bound), 0))

    def _random(self, ctx: "ComputeContext", kind: ValueKind | str, bound: int | None) -> Handle:
        spec = spec_for(kind)
        if not spec.supports(OpFamily.RANDOM):
            raise KindMismatchError(
                operation="random",
                expected="ebool or an unsigned kind",
                actual=spec.kind.value,
            )
        handle = ctx.backend.random_value(spec.kind, bound)
        ctx.ledger.mark_fresh(handle)
        return handle

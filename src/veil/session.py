"""
Session: the backend-agnostic call surface of Veil.

A Session bundles one ComputeContext (backend, ledger, config, caller) with
the OperationEngine and InputVerifier, and exposes every engine call as a
method. Application logic is written once against this surface and runs on
whichever backend the session was built with.

Usage:
    session = Session()
    with session.transaction(caller="alice"):
        balance = session.encode(100, "euint64")
        balance = session.sub(balance, 30)
        session.grant_self(balance)
        session.grant_to(balance, "alice")
    session.reveal(balance, "alice")  # 70

Confidential conditionals are expressed through select(); client code never
branches on a revealed comparison result.
"""

from contextlib import contextmanager
from typing import Any, Generator

from veil.acl import PermissionLedger
from veil.acl.ledger import PUBLIC
from veil.backend import Backend, resolve_backend
from veil.context import ComputeContext
from veil.errors import RevealDeniedError, RevealUnavailableError
from veil.handles import Handle
from veil.kinds import ValueKind, spec_for
from veil.ops import OperationEngine, OperationTable
from veil.ops.engine import Operand
from veil.schema import EngineConfig
from veil.verifier import ExternalInput, InputVerifier


class Session:
    """
    One independent computation context and its call surface.

    Attributes:
        context: The explicit context passed to every engine call
        engine: Stateless operation engine
        verifier: External input verifier
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        backend: Backend | None = None,
        table: OperationTable | None = None,
    ) -> None:
        """
        Initialize a session.

        Args:
            config: Session configuration (defaults to a simulation config)
            backend: Backend to use; discovered from config.network if omitted
            table: Operation table (defaults to the built-in table)

        Raises:
            BackendNotFoundError: If no backend is given and none is
                registered for config.network
        """
        config = config or EngineConfig()
        if backend is None:
            backend = resolve_backend(config.network, config)
        self.context = ComputeContext.create(backend, config)
        self.engine = OperationEngine(table)
        self.verifier = InputVerifier(config.verifier)

    @property
    def config(self) -> EngineConfig:
        return self.context.config

    @property
    def backend(self) -> Backend:
        return self.context.backend

    @property
    def ledger(self) -> PermissionLedger:
        return self.context.ledger

    @property
    def caller(self) -> str | None:
        return self.context.caller

    # =========================================================================
    # Transactions
    # =========================================================================

    @contextmanager
    def transaction(self, caller: str | None = None) -> Generator["Session", None, None]:
        """
        Run a block as one call scope.

        Transient grants and freshness are cleared when the block exits,
        whether it returns or raises. A nested block joins the enclosing
        scope: only the outermost block ends it. The caller is restored on
        every exit.
        """
        previous = self.context.caller
        if caller is not None:
            self.context.caller = caller
        self.context.depth += 1
        try:
            yield self
        finally:
            self.context.depth -= 1
            if self.context.depth == 0:
                self.context.ledger.end_transaction()
            self.context.caller = previous

    def end_transaction(self) -> None:
        """Close the current call scope without a with-block."""
        self.context.ledger.end_transaction()

    # =========================================================================
    # Admission and encoding
    # =========================================================================

    def verify(
        self,
        raw: bytes,
        proof: bytes,
        kind: ValueKind | str,
        user: str | None = None,
    ) -> Handle:
        """Admit an external (raw, proof) pair. Raises InvalidProofError."""
        return self.verifier.verify(self.context, raw, proof, kind, user=user)

    def verify_input(
        self,
        external: ExternalInput,
        kind: ValueKind | str,
        user: str | None = None,
    ) -> Handle:
        return self.verify(external.raw, external.proof, kind, user=user)

    def encode(self, value: Any, kind: ValueKind | str) -> Handle:
        return self.engine.encode(self.context, value, kind)

    def cast(self, handle: Handle, kind: ValueKind | str) -> Handle:
        return self.engine.cast(self.context, handle, kind)

    def random(self, kind: ValueKind | str) -> Handle:
        return self.engine.random(self.context, kind)

    def random_bounded(self, bound: int, kind: ValueKind | str) -> Handle:
        return self.engine.random_bounded(self.context, bound, kind)

    def kind_of(self, handle: Handle) -> ValueKind:
        return self.context.backend.kind_of(handle)

    # =========================================================================
    # Operations
    # =========================================================================

    def apply(self, name: str, *operands: Operand) -> Handle:
        """Apply any operation in the session's table by name."""
        return self.engine.apply(self.context, name, *operands)

    def add(self, a: Operand, b: Operand) -> Handle:
        return self.engine.add(self.context, a, b)

    def sub(self, a: Operand, b: Operand) -> Handle:
        return self.engine.sub(self.context, a, b)

    def mul(self, a: Operand, b: Operand) -> Handle:
        return self.engine.mul(self.context, a, b)

    def div(self, a: Operand, b: Operand) -> Handle:
        return self.engine.div(self.context, a, b)

    def rem(self, a: Operand, b: Operand) -> Handle:
        return self.engine.rem(self.context, a, b)

    def neg(self, a: Handle) -> Handle:
        return self.engine.neg(self.context, a)

    def and_(self, a: Operand, b: Operand) -> Handle:
        return self.engine.and_(self.context, a, b)

    def or_(self, a: Operand, b: Operand) -> Handle:
        return self.engine.or_(self.context, a, b)

    def xor(self, a: Operand, b: Operand) -> Handle:
        return self.engine.xor(self.context, a, b)

    def not_(self, a: Handle) -> Handle:
        return self.engine.not_(self.context, a)

    def shl(self, a: Operand, amount: Operand) -> Handle:
        return self.engine.shl(self.context, a, amount)

    def shr(self, a: Operand, amount: Operand) -> Handle:
        return self.engine.shr(self.context, a, amount)

    def rotl(self, a: Operand, amount: Operand) -> Handle:
        return self.engine.rotl(self.context, a, amount)

    def rotr(self, a: Operand, amount: Operand) -> Handle:
        return self.engine.rotr(self.context, a, amount)

    def eq(self, a: Operand, b: Operand) -> Handle:
        return self.engine.eq(self.context, a, b)

    def ne(self, a: Operand, b: Operand) -> Handle:
        return self.engine.ne(self.context, a, b)

    def lt(self, a: Operand, b: Operand) -> Handle:
        return self.engine.lt(self.context, a, b)

    def le(self, a: Operand, b: Operand) -> Handle:
        return self.engine.le(self.context, a, b)

    def gt(self, a: Operand, b: Operand) -> Handle:
        return self.engine.gt(self.context, a, b)

    def ge(self, a: Operand, b: Operand) -> Handle:
        return self.engine.ge(self.context, a, b)

    def min(self, a: Operand, b: Operand) -> Handle:
        return self.engine.min(self.context, a, b)

    def max(self, a: Operand, b: Operand) -> Handle:
        return self.engine.max(self.context, a, b)

    def select(self, cond: Operand, if_true: Operand, if_false: Operand) -> Handle:
        return self.engine.select(self.context, cond, if_true, if_false)

    # =========================================================================
    # Permissions
    # =========================================================================

    def grant_self(self, handle: Handle) -> None:
        self.context.ledger.grant_self(handle)

    def grant_to(self, handle: Handle, principal: str) -> None:
        self.context.ledger.grant_to(handle, principal)

    def grant_transient(self, handle: Handle, principal: str) -> None:
        self.context.ledger.grant_transient(handle, principal)

    def authorize(self, handle: Handle, *principals: str) -> Handle:
        """
        Self-grant a handle and grant it to each principal.

        The usual step after every operation whose result is kept in state.
        Returns the handle so it can be assigned in one line.
        """
        self.context.ledger.grant_self(handle)
        for principal in principals:
            self.context.ledger.grant_to(handle, principal)
        return handle

    def make_publicly_decryptable(self, handle: Handle) -> None:
        self.context.ledger.make_publicly_decryptable(handle)

    allow_for_decryption = make_publicly_decryptable

    def check_self(self, handle: Handle) -> bool:
        return self.context.ledger.check_self(handle)

    def check_principal(self, handle: Handle, principal: str) -> bool:
        return self.context.ledger.check_principal(handle, principal)

    def is_sender_allowed(self, handle: Handle) -> bool:
        return self.context.ledger.is_sender_allowed(handle, self.context.caller)

    def is_publicly_decryptable(self, handle: Handle) -> bool:
        return self.context.ledger.is_publicly_decryptable(handle)

    # =========================================================================
    # Reveal
    # =========================================================================

    def reveal(self, handle: Handle, principal: str) -> Any:
        """
        Reveal a handle's value to a permitted principal.

        Transient backend failures are retried up to config.reveal_retries
        extra times.

        Raises:
            UnknownHandleError: If the handle is not in this session
            RevealDeniedError: If the principal holds no grant
            RevealUnavailableError: If every attempt failed transiently
        """
        self.context.ledger.require_reveal(handle, principal)
        return self._decrypt(handle)

    def public_decrypt(self, handle: Handle) -> Any:
        """
        Reveal a handle that was made publicly decryptable.

        Raises:
            RevealDeniedError: If the handle is not publicly decryptable
        """
        if not self.context.ledger.is_publicly_decryptable(handle):
            raise RevealDeniedError(
                handle=str(handle),
                principal=PUBLIC,
                reason="Handle is not publicly decryptable",
                rule="deny_by_default",
            )
        return self._decrypt(handle)

    def _decrypt(self, handle: Handle) -> Any:
        attempts = self.context.config.reveal_retries + 1
        last_error = RevealUnavailableError(backend=self.context.backend.name, handle=str(handle))
        for _ in range(attempts):
            try:
                value = self.context.backend.decrypt(handle)
            except RevealUnavailableError as e:
                last_error = e
                continue
            return spec_for(handle.kind).to_python(value)

        last_error.attempts = attempts
        last_error.context["attempts"] = attempts
        raise last_error

    def __repr__(self) -> str:
        return f"<Session backend={self.backend.name} handles={len(self.backend.registry)}>"

"""
Unit tests for the Session call surface.

Tests cover:
- Transactions and caller scoping
- Reveal and public decryption
- Reveal retries on transient backend failures
- Backend discovery
"""

import pytest

from veil.acl.ledger import PUBLIC
from veil.backend import SimulationBackend
from veil.errors import (
    BackendNotFoundError,
    PermissionDeniedError,
    RevealDeniedError,
    RevealUnavailableError,
    UnknownHandleError,
)
from veil.handles import Handle
from veil.kinds import ValueKind
from veil.schema import EngineConfig
from veil.session import Session

ALICE = "alice"
BOB = "bob"
U64 = ValueKind.EUINT64


class FlakyBackend(SimulationBackend):
    """Simulation backend whose reveal path fails a fixed number of times."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.calls = 0

    def decrypt(self, handle: Handle) -> int:
        self.calls += 1
        if self.calls <= self.failures:
            raise RevealUnavailableError(backend=self.name, handle=str(handle))
        return super().decrypt(handle)


class TestTransactions:
    def test_caller_scoped_to_block(self, session: Session) -> None:
        assert session.caller is None
        with session.transaction(caller=ALICE):
            assert session.caller == ALICE
        assert session.caller is None

    def test_fresh_handles_expire(self, session: Session) -> None:
        with session.transaction():
            x = session.encode(5, U64)
        with pytest.raises(PermissionDeniedError):
            session.add(x, 1)

    def test_self_granted_handles_survive(self, session: Session) -> None:
        with session.transaction():
            x = session.encode(5, U64)
            session.grant_self(x)
        r = session.add(x, 1)
        session.grant_to(r, ALICE)
        assert session.reveal(r, ALICE) == 6

    def test_transaction_ends_on_error(self, session: Session) -> None:
        x = session.encode(1, U64)
        with pytest.raises(RuntimeError):
            with session.transaction():
                session.grant_transient(x, ALICE)
                raise RuntimeError("boom")
        assert not session.check_principal(x, ALICE)

    def test_nested_block_joins_outer_scope(self, session: Session) -> None:
        with session.transaction(caller=ALICE):
            h = session.encode(5, U64)
            with session.transaction(caller=BOB):
                assert session.caller == BOB
                session.grant_transient(h, BOB)
            assert session.caller == ALICE
            assert session.ledger.is_fresh(h)
            r = session.authorize(session.add(h, 1), ALICE)
            assert session.check_principal(h, BOB)
        assert session.reveal(r, ALICE) == 6
        assert not session.check_principal(h, BOB)
        with pytest.raises(PermissionDeniedError):
            session.add(h, 1)

    def test_nested_block_ends_scope_on_outer_error(self, session: Session) -> None:
        with pytest.raises(RuntimeError):
            with session.transaction():
                h = session.encode(5, U64)
                with session.transaction():
                    pass
                raise RuntimeError("boom")
        assert session.context.depth == 0
        with pytest.raises(PermissionDeniedError):
            session.add(h, 1)

    def test_end_transaction(self, session: Session) -> None:
        x = session.encode(1, U64)
        session.end_transaction()
        with pytest.raises(PermissionDeniedError):
            session.neg(x)

    def test_sender_allowed(self, session: Session) -> None:
        x = session.encode(1, U64)
        session.grant_to(x, ALICE)
        with session.transaction(caller=ALICE):
            assert session.is_sender_allowed(x)
        with session.transaction(caller=BOB):
            assert not session.is_sender_allowed(x)


class TestReveal:
    def test_reveal_requires_grant(self, session: Session) -> None:
        x = session.encode(70, U64)
        with pytest.raises(RevealDeniedError):
            session.reveal(x, ALICE)
        session.grant_to(x, ALICE)
        assert session.reveal(x, ALICE) == 70
        with pytest.raises(RevealDeniedError):
            session.reveal(x, BOB)

    def test_reveal_bool(self, session: Session) -> None:
        x = session.encode(True, ValueKind.EBOOL)
        session.grant_to(x, ALICE)
        assert session.reveal(x, ALICE) is True

    def test_transient_reveal(self, session: Session) -> None:
        x = session.encode(3, U64)
        with session.transaction():
            session.grant_transient(x, BOB)
            assert session.reveal(x, BOB) == 3
        with pytest.raises(RevealDeniedError):
            session.reveal(x, BOB)

    def test_authorize(self, session: Session) -> None:
        x = session.encode(3, U64)
        assert session.authorize(x, ALICE, BOB) is x
        assert session.check_self(x)
        assert session.check_principal(x, ALICE)
        assert session.check_principal(x, BOB)

    def test_public_decrypt(self, session: Session) -> None:
        x = session.encode(42, U64)
        with pytest.raises(RevealDeniedError) as exc_info:
            session.public_decrypt(x)
        assert exc_info.value.principal == PUBLIC
        session.make_publicly_decryptable(x)
        assert session.is_publicly_decryptable(x)
        assert session.public_decrypt(x) == 42
        assert session.reveal(x, BOB) == 42

    def test_reveal_unknown_handle(self, session: Session) -> None:
        with pytest.raises(UnknownHandleError):
            session.reveal(Session().encode(1, U64), ALICE)


class TestRevealRetries:
    def test_retries_transient_failures(self) -> None:
        backend = FlakyBackend(failures=2)
        session = Session(config=EngineConfig(reveal_retries=2), backend=backend)
        x = session.encode(9, U64)
        session.grant_to(x, ALICE)
        assert session.reveal(x, ALICE) == 9
        assert backend.calls == 3

    def test_gives_up_after_retries(self) -> None:
        backend = FlakyBackend(failures=10)
        session = Session(config=EngineConfig(reveal_retries=1), backend=backend)
        x = session.encode(9, U64)
        session.grant_to(x, ALICE)
        with pytest.raises(RevealUnavailableError) as exc_info:
            session.reveal(x, ALICE)
        assert exc_info.value.attempts == 2
        assert backend.calls == 2

    def test_denial_is_not_retried(self) -> None:
        backend = FlakyBackend(failures=0)
        session = Session(backend=backend)
        x = session.encode(9, U64)
        with pytest.raises(RevealDeniedError):
            session.reveal(x, ALICE)
        assert backend.calls == 0


class TestBackendDiscovery:
    @pytest.mark.parametrize("network", ["simulation", "local", "31337"])
    def test_known_networks(self, network: str) -> None:
        session = Session(config=EngineConfig(network=network))
        assert session.backend.name == "simulation"

    def test_unknown_network(self) -> None:
        with pytest.raises(BackendNotFoundError):
            Session(config=EngineConfig(network="mainnet"))

    def test_explicit_backend_wins(self) -> None:
        backend = SimulationBackend(seed=3)
        session = Session(config=EngineConfig(network="mainnet"), backend=backend)
        assert session.backend is backend

    def test_sessions_are_independent(self) -> None:
        a = Session()
        b = Session()
        x = a.encode(1, U64)
        a.grant_self(x)
        with pytest.raises(UnknownHandleError):
            b.grant_self(x)

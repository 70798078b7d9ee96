"""
Security tests for handle isolation.

These tests verify that a handle is only meaningful inside the session that
created it and that permissions never spread beyond what was granted.

Attack vectors tested:
- Using a handle from another session
- Forged handles with altered index or kind
- Grants leaking from operands to results
- Caller identity standing in for a self grant
"""

import dataclasses

import pytest

from veil.errors import PermissionDeniedError, RevealDeniedError, UnknownHandleError
from veil.handles import Handle
from veil.kinds import ValueKind
from veil.schema import EngineConfig
from veil.session import Session

ALICE = "0x00000000000000000000000000000000000a11ce"
BOB = "0x0000000000000000000000000000000000000b0b"
U64 = ValueKind.EUINT64


@pytest.fixture
def other_session(config: EngineConfig) -> Session:
    """Second session with an identical configuration."""
    return Session(config=config)


class TestCrossSession:
    def test_equal_handles_do_not_cross_sessions(
        self, session: Session, other_session: Session
    ) -> None:
        mine = session.encode(1, U64)
        theirs = other_session.encode(1, U64)
        assert mine == theirs

        with pytest.raises(UnknownHandleError):
            other_session.add(mine, 1)

    def test_foreign_handle_cannot_be_granted(
        self, session: Session, other_session: Session
    ) -> None:
        h = session.encode(1, U64)
        with pytest.raises(UnknownHandleError):
            other_session.grant_self(h)
        with pytest.raises(UnknownHandleError):
            other_session.grant_to(h, ALICE)

    def test_foreign_handle_cannot_be_revealed(
        self, session: Session, other_session: Session
    ) -> None:
        h = session.authorize(session.encode(42, U64), ALICE)
        other_session.authorize(other_session.encode(7, U64), ALICE)
        with pytest.raises(UnknownHandleError):
            other_session.reveal(h, ALICE)

    def test_grants_do_not_cross_sessions(
        self, session: Session, other_session: Session
    ) -> None:
        mine = session.encode(1, U64)
        theirs = other_session.authorize(other_session.encode(1, U64), ALICE)
        other_session.make_publicly_decryptable(theirs)
        assert mine == theirs
        assert not session.check_self(mine)

        with other_session.transaction(caller=ALICE):
            for check in (
                other_session.check_self,
                other_session.is_sender_allowed,
                other_session.is_publicly_decryptable,
                lambda h: other_session.check_principal(h, ALICE),
            ):
                with pytest.raises(UnknownHandleError):
                    check(mine)

    def test_foreign_handle_cannot_be_public_decrypted(
        self, session: Session, other_session: Session
    ) -> None:
        mine = session.encode(9, U64)
        other_session.make_publicly_decryptable(other_session.encode(1, U64))
        with pytest.raises(UnknownHandleError):
            other_session.public_decrypt(mine)


class TestForgedHandles:
    def test_unallocated_handle(self, session: Session) -> None:
        with pytest.raises(UnknownHandleError):
            session.add(Handle(index=0, kind=U64), 1)

    def test_index_beyond_arena(self, session: Session) -> None:
        h = session.authorize(session.encode(1, U64))
        with pytest.raises(UnknownHandleError):
            session.add(dataclasses.replace(h, index=h.index + 100), 1)

    def test_kind_relabel(self, session: Session) -> None:
        h = session.authorize(session.encode(300, U64))
        relabeled = dataclasses.replace(h, kind=ValueKind.EUINT8)
        with pytest.raises(UnknownHandleError):
            session.reveal(relabeled, ALICE)
        with pytest.raises(UnknownHandleError):
            session.cast(relabeled, U64)


class TestNoGrantLeakage:
    def test_transient_grant_not_inherited(self, session: Session) -> None:
        with session.transaction(caller=ALICE):
            h = session.authorize(session.encode(5, U64))
            session.grant_transient(h, BOB)
            r = session.add(h, 1)
            assert not session.check_principal(r, BOB)
            with pytest.raises(RevealDeniedError):
                session.reveal(r, BOB)

    def test_public_operand_gives_private_result(self, session: Session) -> None:
        h = session.encode(5, U64)
        session.make_publicly_decryptable(h)
        r = session.mul(h, 2)
        assert session.public_decrypt(h) == 5
        assert not session.is_publicly_decryptable(r)
        with pytest.raises(RevealDeniedError):
            session.public_decrypt(r)

    def test_select_result_has_no_grants(self, session: Session) -> None:
        c = session.authorize(session.encode(True, ValueKind.EBOOL), ALICE)
        x = session.authorize(session.encode(1, U64), ALICE)
        y = session.authorize(session.encode(2, U64), ALICE)
        r = session.select(c, x, y)
        assert session.ledger.principals_for(r) == []

    def test_reveal_grant_is_not_a_use_grant(self, session: Session) -> None:
        with session.transaction(caller=ALICE):
            h = session.encode(5, U64)
            session.grant_to(h, ALICE)

        with session.transaction(caller=ALICE):
            assert session.is_sender_allowed(h)
            with pytest.raises(PermissionDeniedError):
                session.add(h, 1)


class TestDenialsStayOpaque:
    def test_denied_reveal_does_not_echo_value(self, session: Session) -> None:
        h = session.encode(123456789, U64)
        with pytest.raises(RevealDeniedError) as exc_info:
            session.reveal(h, BOB)
        assert "123456789" not in str(exc_info.value)
        assert "123456789" not in str(exc_info.value.to_dict())

    def test_denied_use_does_not_echo_value(self, session: Session) -> None:
        with session.transaction():
            h = session.encode(123456789, U64)
        with pytest.raises(PermissionDeniedError) as exc_info:
            session.add(h, 1)
        assert "123456789" not in str(exc_info.value.to_dict())

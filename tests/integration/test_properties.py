"""
Behavioral properties of the engine, exercised through the Session surface.

Tests cover:
- Round trips through encode and verified input
- Every operation yields a new handle
- Results start with no grants
- Branchless selection and layered guards
- Zero divisors and other magnitudes never raise
- Transient grants end with their call scope
- The guarded transfer flow end to end
"""

import pytest

from veil.errors import PermissionDeniedError, RevealDeniedError
from veil.kinds import ValueKind
from veil.session import Session
from veil.testing import decrypt, decrypt_address, input_for

ALICE = "0x00000000000000000000000000000000000a11ce"
BOB = "0x0000000000000000000000000000000000000b0b"

U8 = ValueKind.EUINT8
U64 = ValueKind.EUINT64

BINARY_OPS = [
    "add", "sub", "mul", "div", "rem", "and", "or", "xor",
    "shl", "shr", "rotl", "rotr", "eq", "ne", "lt", "le", "gt", "ge", "min", "max",
]


class TestRoundTrip:
    @pytest.mark.parametrize(
        "value,kind",
        [
            (True, ValueKind.EBOOL),
            (False, ValueKind.EBOOL),
            (0, U8),
            (255, U8),
            (65535, ValueKind.EUINT16),
            (2**32 - 1, ValueKind.EUINT32),
            (2**64 - 1, U64),
            (2**128 - 1, ValueKind.EUINT128),
            (2**256 - 1, ValueKind.EUINT256),
            (12345, ValueKind.EUINT256),
        ],
    )
    def test_encode(self, session: Session, value, kind: ValueKind) -> None:
        assert decrypt(session, session.encode(value, kind)) == value

    def test_verified_input(self, session: Session) -> None:
        external = input_for(session, 12345, U64, user=ALICE)
        with session.transaction(caller=ALICE):
            h = session.verify_input(external, U64)
            assert decrypt(session, h) == 12345

    def test_address(self, session: Session) -> None:
        h = session.encode(ALICE, ValueKind.EADDRESS)
        assert decrypt_address(session, h) == ALICE


class TestNewHandleIdentity:
    @pytest.mark.parametrize("op", BINARY_OPS)
    def test_binary_result_is_new(self, session: Session, op: str) -> None:
        a = session.encode(6, U8)
        b = session.encode(3, U8)
        r = session.apply(op, a, b)
        assert r != a and r != b

    def test_same_operand_twice(self, session: Session) -> None:
        a = session.encode(6, U8)
        r = session.add(a, a)
        assert r != a
        assert decrypt(session, a) == 6

    def test_cast_to_own_kind_is_new(self, session: Session) -> None:
        a = session.encode(6, U8)
        assert session.cast(a, U8) != a

    def test_identical_values_get_distinct_handles(self, session: Session) -> None:
        assert session.encode(1, U8) != session.encode(1, U8)


class TestDefaultDeny:
    def test_encoded_value_has_no_grants(self, session: Session) -> None:
        h = session.encode(1, U64)
        assert not session.check_self(h)
        assert not session.check_principal(h, ALICE)

    @pytest.mark.parametrize("op", ["add", "sub", "lt", "min"])
    def test_results_do_not_inherit_grants(self, session: Session, op: str) -> None:
        a = session.authorize(session.encode(9, U64), ALICE)
        b = session.authorize(session.encode(4, U64), ALICE)
        r = session.apply(op, a, b)
        assert not session.check_self(r)
        assert not session.check_principal(r, ALICE)
        with pytest.raises(RevealDeniedError):
            session.reveal(r, ALICE)

    def test_ungranted_handle_denied_in_next_transaction(self, session: Session) -> None:
        with session.transaction():
            h = session.encode(1, U64)
        with pytest.raises(PermissionDeniedError):
            session.add(h, 1)


class TestSelect:
    @pytest.mark.parametrize("cond", [True, False])
    def test_selects_by_condition(self, session: Session, cond: bool) -> None:
        c = session.encode(cond, ValueKind.EBOOL)
        x = session.encode(11, U64)
        y = session.encode(22, U64)
        assert decrypt(session, session.select(c, x, y)) == (11 if cond else 22)

    @pytest.mark.parametrize(
        "c1,c2,expected",
        [(True, True, 500), (True, False, 0), (False, True, 0), (False, False, 0)],
    )
    def test_double_guard_is_logical_and(
        self, session: Session, c1: bool, c2: bool, expected: int
    ) -> None:
        g1 = session.encode(c1, ValueKind.EBOOL)
        g2 = session.encode(c2, ValueKind.EBOOL)
        v = session.encode(500, U64)
        inner = session.select(g2, v, 0)
        assert decrypt(session, session.select(g1, inner, 0)) == expected


class TestNoFailureOnMagnitude:
    @pytest.mark.parametrize("a", [0, 1, 255])
    def test_division_by_zero(self, session: Session, a: int) -> None:
        x = session.encode(a, U8)
        zero = session.encode(0, U8)
        assert decrypt(session, session.div(x, zero)) == 0
        assert decrypt(session, session.rem(x, zero)) == 0

    def test_overflow_and_underflow_wrap(self, session: Session) -> None:
        top = session.encode(255, U8)
        assert decrypt(session, session.add(top, 1)) == 0
        assert decrypt(session, session.sub(session.encode(0, U8), 1)) == 255

    def test_narrowing_cast_truncates(self, session: Session) -> None:
        h = session.encode(0x1234, ValueKind.EUINT16)
        assert decrypt(session, session.cast(h, U8)) == 0x34

    def test_zero_bound_random(self, session: Session) -> None:
        assert decrypt(session, session.random_bounded(0, U64)) == 0


class TestTransientScoping:
    def test_transient_grant_ends_with_scope(self, session: Session) -> None:
        with session.transaction(caller=ALICE):
            h = session.authorize(session.encode(3, U64))
            session.grant_transient(h, BOB)
            assert session.check_principal(h, BOB)
            assert session.reveal(h, BOB) == 3

        with session.transaction(caller=ALICE):
            assert not session.check_principal(h, BOB)
            with pytest.raises(RevealDeniedError):
                session.reveal(h, BOB)

    def test_durable_grant_survives_scope(self, session: Session) -> None:
        with session.transaction():
            h = session.encode(3, U64)
            session.grant_to(h, BOB)
        assert session.check_principal(h, BOB)


class TestAllowanceDoubleGuard:
    """
    transfer_from checks the allowance, then the balance, each with its own
    select. The allowance is debited by the first guard alone.
    """

    def _transfer_from(self, session: Session, allowance, balance, amount):
        allowed = session.le(amount, allowance)
        new_allowance = session.select(allowed, session.sub(allowance, amount), allowance)
        moved = session.select(allowed, amount, 0)

        funded = session.le(moved, balance)
        new_balance = session.select(funded, session.sub(balance, moved), balance)
        return session.authorize(new_allowance), session.authorize(new_balance)

    def _setup(self, session: Session, allowance: int, balance: int):
        with session.transaction():
            a = session.authorize(session.encode(allowance, U64))
            b = session.authorize(session.encode(balance, U64))
        return a, b

    def test_both_guards_pass(self, session: Session) -> None:
        allowance, balance = self._setup(session, 50, 100)
        with session.transaction():
            allowance, balance = self._transfer_from(
                session, allowance, balance, session.encode(40, U64)
            )
        assert decrypt(session, allowance) == 10
        assert decrypt(session, balance) == 60

    def test_allowance_guard_fails(self, session: Session) -> None:
        allowance, balance = self._setup(session, 50, 100)
        with session.transaction():
            allowance, balance = self._transfer_from(
                session, allowance, balance, session.encode(70, U64)
            )
        assert decrypt(session, allowance) == 50
        assert decrypt(session, balance) == 100

    def test_balance_guard_fails_after_allowance_debit(self, session: Session) -> None:
        allowance, balance = self._setup(session, 50, 20)
        with session.transaction():
            allowance, balance = self._transfer_from(
                session, allowance, balance, session.encode(40, U64)
            )
        # The allowance is consumed even though the balance did not move
        assert decrypt(session, allowance) == 10
        assert decrypt(session, balance) == 20


class TestGuardedTransfer:
    def test_transfer_then_rejected_overdraft(self, session: Session) -> None:
        with session.transaction(caller=ALICE):
            balance = session.authorize(session.encode(100, U64))

        with session.transaction(caller=ALICE):
            balance = session.authorize(session.sub(balance, session.encode(30, U64)), ALICE)
        assert session.reveal(balance, ALICE) == 70

        with session.transaction(caller=ALICE):
            amount = session.encode(999, U64)
            ok = session.le(amount, balance)
            sent = session.authorize(session.select(ok, amount, 0), ALICE)
            balance = session.authorize(
                session.select(ok, session.sub(balance, amount), balance), ALICE
            )

        assert session.reveal(sent, ALICE) == 0
        assert session.reveal(balance, ALICE) == 70

"""
Test harness for Veil.

Deterministic helpers for test code only. They build external inputs from
known values and reveal handles directly, skipping the ledger and the slow
reveal path a production backend would need. Every helper is a pure function
of its arguments; none keeps state between calls.

Never use these from application logic: reveal() on a Session is the
permission-checked path.

Usage:
    from veil.testing import decrypt, input_for

    external = input_for(session, 100, "euint64", user="alice")
    with session.transaction(caller="alice"):
        amount = session.verify_input(external, "euint64")
    assert decrypt(session, amount) == 100
"""

from typing import Any

from veil.handles import Handle
from veil.kinds import ValueKind, spec_for
from veil.schema import VerifierConfig
from veil.session import Session
from veil.verifier import ExternalInput, compute_proof, pack_raw


def encrypt_input(
    value: Any,
    kind: ValueKind | str,
    contract: str,
    user: str,
    secret: str = VerifierConfig().secret,
) -> ExternalInput:
    """Build the (raw, proof) pair a client would submit for value."""
    raw = pack_raw(value, kind)
    return ExternalInput(raw=raw, proof=compute_proof(raw, contract, user, secret))


def input_for(session: Session, value: Any, kind: ValueKind | str, user: str) -> ExternalInput:
    """encrypt_input bound to the session's contract and verifier secret."""
    return encrypt_input(
        value,
        kind,
        contract=session.config.contract,
        user=user,
        secret=session.config.verifier.secret,
    )


def decrypt(session: Session, handle: Handle) -> Any:
    """Reveal a handle without any permission check."""
    value = session.backend.decrypt(handle)
    return spec_for(handle.kind).to_python(value)


def decrypt_bool(session: Session, handle: Handle) -> bool:
    return bool(session.backend.decrypt(handle))


def decrypt_uint(session: Session, handle: Handle) -> int:
    return int(session.backend.decrypt(handle))


def decrypt_address(session: Session, handle: Handle) -> str:
    """Reveal an eaddress handle as a 0x-prefixed, 40-digit hex string."""
    return "0x" + format(session.backend.decrypt(handle), "040x")

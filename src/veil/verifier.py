"""
Input verification for Veil.

External data enters the handle space only through InputVerifier.verify().
An external input is a (raw handle, proof) pair:

    raw   = kind tag (1 byte) || payload (32 bytes, big-endian)
    proof = HMAC-SHA256(secret, DOMAIN || raw || contract || user)

The proof binds the raw input to the contract that will consume it and the
user submitting it, so an input cannot be replayed into another contract or
by another user. In the simulation backend the payload is the plain value;
a production backend would carry ciphertext and reject forged ones here.

Rejection is a legitimate, informative failure: it concerns well-formedness
of the input, never the magnitude of a confidential value.
"""

import hashlib
import hmac
from dataclasses import dataclass
from typing import TYPE_CHECKING

from veil.errors import InvalidProofError
from veil.handles import Handle
from veil.kinds import ValueKind, spec_for, spec_for_tag
from veil.schema import VerifierConfig

if TYPE_CHECKING:
    from veil.context import ComputeContext

DOMAIN = b"veil-input-v1"
PAYLOAD_BYTES = 32
RAW_BYTES = 1 + PAYLOAD_BYTES
PROOF_BYTES = 32


@dataclass(frozen=True)
class ExternalInput:
    """
    An input as submitted from outside the engine.

    Attributes:
        raw: Kind tag followed by the 32-byte payload
        proof: Authentication tag over raw, contract and user
    """

    raw: bytes
    proof: bytes


def compute_proof(raw: bytes, contract: str, user: str, secret: str) -> bytes:
    """Proof for a raw input bound to a contract and a submitting user."""
    message = b"|".join([DOMAIN, raw, contract.lower().encode(), user.lower().encode()])
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def pack_raw(value: int, kind: ValueKind | str) -> bytes:
    """Encode a value as a raw external handle for the kind."""
    spec = spec_for(kind)
    return bytes([spec.tag]) + spec.coerce_literal(value).to_bytes(PAYLOAD_BYTES, "big")


class InputVerifier:
    """
    Admits externally supplied inputs into a context's handle space.

    Usage:
        verifier = InputVerifier(config.verifier)
        h = verifier.verify(ctx, external.raw, external.proof, ValueKind.EUINT64)

    Attributes:
        config: Secret and proof-checking settings
    """

    def __init__(self, config: VerifierConfig | None = None) -> None:
        self.config = config or VerifierConfig()

    def verify(
        self,
        ctx: "ComputeContext",
        raw: bytes,
        proof: bytes,
        claimed_kind: ValueKind | str,
        user: str | None = None,
    ) -> Handle:
        """
        Validate an external input and produce a trusted handle.

        The handle is fresh in the current transaction and carries no grants.

        Args:
            ctx: Context whose backend will hold the value
            raw: Raw external handle bytes
            proof: Proof bytes accompanying the input
            claimed_kind: Kind the caller expects the input to have
            user: Submitting principal; defaults to the context's caller

        Raises:
            InvalidProofError: If any structural or proof check fails
        """
        spec = spec_for(claimed_kind)
        user = user if user is not None else ctx.caller

        def reject(reason: str) -> InvalidProofError:
            return InvalidProofError(claimed_kind=spec.kind.value, reason=reason)

        if not isinstance(raw, bytes) or len(raw) != RAW_BYTES:
            raise reject(f"raw input must be {RAW_BYTES} bytes")
        if not isinstance(proof, bytes) or len(proof) != PROOF_BYTES:
            raise reject(f"proof must be {PROOF_BYTES} bytes")

        tagged = spec_for_tag(raw[0])
        if tagged is None:
            raise reject(f"unknown kind tag {raw[0]}")
        if tagged.kind != spec.kind:
            raise reject(f"input is {tagged.kind.value}")

        if self.config.require_proof:
            if user is None:
                raise reject("no submitting user to bind the proof to")
            expected = compute_proof(raw, ctx.self_principal, user, self.config.secret)
            if not hmac.compare_digest(expected, proof):
                raise reject("proof does not authenticate this input")

        value = int.from_bytes(raw[1:], "big")
        if value > spec.mask:
            raise reject("payload outside the kind's range")

        handle = ctx.backend.store(value, spec.kind)
        ctx.ledger.mark_fresh(handle)
        return handle

"""
Permission ledger for Veil.

The ledger is the access-control boundary of Veil. Every operand use and
every reveal is checked against it.

Design Principles:
    - Deny-by-default: nothing is usable or revealable until granted
    - Monotonic: grants are only ever added; a superseding handle starts
      empty instead of having its predecessor's grants revoked
    - Explicit: no operation ever grants on the caller's behalf

How it works:
    1. Durable grants live in a (handle, principal) relation
    2. Transient grants live in a second relation cleared by end_transaction()
    3. Handles created during the current transaction are "fresh" and may be
       used as operands until the transaction ends; freshness is not a grant
       and is never reported by check_self()
"""

from veil.errors import PermissionDeniedError, RevealDeniedError
from veil.handles import Handle, HandleRegistry
from veil.schema import PermissionDecision

# Principal standing for "every principal" once a handle is made public
PUBLIC = "*"


class PermissionLedger:
    """
    Grant relation for one session.

    Usage:
        ledger = PermissionLedger(registry, self_principal="0xc0de")
        ledger.grant_self(h)
        ledger.grant_to(h, "alice")
        ledger.check_principal(h, "alice")  # True

    Attributes:
        registry: Registry used to reject unknown handles
        self_principal: Identity of the current computation context
        _grants: Durable (handle, principal) pairs
        _transient: Transient (handle, principal) pairs for this transaction
        _fresh: Handles created during this transaction
    """

    def __init__(self, registry: HandleRegistry, self_principal: str) -> None:
        self.registry = registry
        self.self_principal = self_principal
        self._grants: set[tuple[Handle, str]] = set()
        self._transient: set[tuple[Handle, str]] = set()
        self._fresh: set[Handle] = set()

    # =========================================================================
    # Grants
    # =========================================================================

    def grant_self(self, handle: Handle) -> None:
        """Allow the computation context to use the handle as an operand."""
        self._require_known(handle)
        self._grants.add((handle, self.self_principal))

    def grant_to(self, handle: Handle, principal: str) -> None:
        """Allow a principal to reveal the handle."""
        self._require_known(handle)
        self._grants.add((handle, principal))

    def grant_transient(self, handle: Handle, principal: str) -> None:
        """As grant_to, but cleared at the end of the current transaction."""
        self._require_known(handle)
        self._transient.add((handle, principal))

    def make_publicly_decryptable(self, handle: Handle) -> None:
        """Durably allow every principal to reveal the handle."""
        self._require_known(handle)
        self._grants.add((handle, PUBLIC))

    allow_for_decryption = make_publicly_decryptable

    def mark_fresh(self, handle: Handle) -> None:
        """Record that the handle was created inside the current transaction."""
        self._fresh.add(handle)

    def end_transaction(self) -> None:
        """Clear transient grants and freshness at a call-scope boundary."""
        self._transient.clear()
        self._fresh.clear()

    # =========================================================================
    # Checks
    # =========================================================================

    # Every check raises UnknownHandleError for a handle from another registry

    def check_self(self, handle: Handle) -> bool:
        """Whether the computation context holds a grant on the handle."""
        return self.check_principal(handle, self.self_principal)

    def check_principal(self, handle: Handle, principal: str) -> bool:
        """Whether the principal holds a durable or transient grant."""
        self._require_known(handle)
        key = (handle, principal)
        return key in self._grants or key in self._transient

    def is_publicly_decryptable(self, handle: Handle) -> bool:
        self._require_known(handle)
        return (handle, PUBLIC) in self._grants

    def is_sender_allowed(self, handle: Handle, sender: str | None) -> bool:
        """check_principal for the current caller; no caller means no grant."""
        self._require_known(handle)
        if sender is None:
            return False
        return self.check_principal(handle, sender)

    def is_fresh(self, handle: Handle) -> bool:
        self._require_known(handle)
        return handle in self._fresh

    def evaluate_use(self, handle: Handle) -> PermissionDecision:
        """
        Decide whether the handle may be used as an operand.

        Allowed when the handle is fresh in this transaction or carries a
        durable or transient grant for the computation context.
        """
        self._require_known(handle)
        if handle in self._fresh:
            return PermissionDecision.allow(
                "Handle created in the current transaction",
                rule="fresh",
            )
        if (handle, self.self_principal) in self._grants:
            return PermissionDecision.allow("Self grant present", rule="grant_self")
        if (handle, self.self_principal) in self._transient:
            return PermissionDecision.allow(
                "Transient self grant present",
                rule="grant_transient",
            )
        return PermissionDecision.deny(
            "No self grant for operand use",
            rule="deny_by_default",
        )

    def evaluate_reveal(self, handle: Handle, principal: str) -> PermissionDecision:
        """Decide whether the principal may reveal the handle."""
        self._require_known(handle)
        if (handle, PUBLIC) in self._grants:
            return PermissionDecision.allow("Handle is publicly decryptable", rule="public")
        if (handle, principal) in self._grants:
            return PermissionDecision.allow(
                f"Durable grant for {principal}",
                rule=f"grant_to[{principal}]",
            )
        if (handle, principal) in self._transient:
            return PermissionDecision.allow(
                f"Transient grant for {principal}",
                rule=f"grant_transient[{principal}]",
            )
        return PermissionDecision.deny(
            f"No grant for {principal}",
            rule="deny_by_default",
        )

    def require_use(self, handle: Handle) -> None:
        """
        Raise unless the handle may be used as an operand.

        Raises:
            PermissionDeniedError: If evaluate_use() denies
        """
        decision = self.evaluate_use(handle)
        if not decision.allowed:
            raise PermissionDeniedError(
                handle=str(handle),
                principal=self.self_principal,
                reason=decision.reason,
                rule=decision.rule_matched,
            )

    def require_reveal(self, handle: Handle, principal: str) -> None:
        """
        Raise unless the principal may reveal the handle.

        Raises:
            RevealDeniedError: If evaluate_reveal() denies
        """
        decision = self.evaluate_reveal(handle, principal)
        if not decision.allowed:
            raise RevealDeniedError(
                handle=str(handle),
                principal=principal,
                reason=decision.reason,
                rule=decision.rule_matched,
            )

    def principals_for(self, handle: Handle) -> list[str]:
        """Principals holding a durable grant on the handle, sorted."""
        return sorted(p for h, p in self._grants if h == handle)

    def _require_known(self, handle: Handle) -> None:
        # Raises UnknownHandleError for handles from another registry
        self.registry.kind_of(handle)

    def __repr__(self) -> str:
        return (
            f"<PermissionLedger grants={len(self._grants)} "
            f"transient={len(self._transient)} fresh={len(self._fresh)}>"
        )

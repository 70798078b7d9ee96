"""
Permission ledger for Veil.

Deny-by-default access control over handles. A freshly created handle has
no grants at all, not even for the computation context that created it.

Key concepts:
    - Self-grant: the computation context may use a handle as an operand
      in later transactions
    - Principal grant: a principal may reveal the handle's value
    - Transient grant: a principal grant cleared at the end of the current
      transaction
    - PermissionDecision: allow/deny with the reason and matched rule
"""

from veil.acl.ledger import PermissionLedger

__all__ = [
    "PermissionLedger",
]

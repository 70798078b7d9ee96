"""
Handle registry for Veil.

Handles are opaque references to stored values. The registry allocates them
from an arena keyed by monotonically increasing indices and never recycles
an index. It does not check permissions; that is the ledger's job.
"""

from veil.handles.registry import Handle, HandleRegistry

__all__ = [
    "Handle",
    "HandleRegistry",
]

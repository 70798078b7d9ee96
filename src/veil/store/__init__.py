"""
Storage module for Veil.

SQLite-based audit trail for scenario runs. Every step a scenario executes
is recorded with its outcome; values are recorded only when a step revealed
them to a permitted principal.

Tables:
    - runs: Metadata about each run (id, timestamps, status, hashes)
    - steps: One row per executed step (operation, arguments, outcome)

Design principles:
    - Append-only: historical rows are never modified, only run status
    - Integrity: input/output hashes let replays check determinism
    - Self-contained: a single .db file holds everything needed to replay
"""

from veil.store.db import AuditDB, compute_hash, generate_id

__all__ = [
    "AuditDB",
    "compute_hash",
    "generate_id",
]

"""
Replay module for Veil.

Re-executes a recorded run and checks that it is reproduced exactly. The
simulation backend is deterministic, so the same scenario under the same
config must yield the same handles, kinds, statuses and revealed values.

How it works:
    1. Load the original run's scenario and config from the database
    2. Execute the scenario again in a fresh session
    3. Compare each step's output hash with the recorded one
    4. Record the replay as a new run with mode='replay'

Example:
    from veil.replay import ReplayEngine

    with ReplayEngine("veil.db") as engine:
        result = engine.replay("abc123")
        assert result.success
"""

from veil.replay.engine import ReplayEngine, ReplayResult

__all__ = [
    "ReplayEngine",
    "ReplayResult",
]

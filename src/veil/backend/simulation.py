"""
Plaintext simulation backend.

Values are kept as plain integers in a HandleRegistry. Randomness comes from
a seeded random.Random, so the same sequence of calls always produces the
same handles and values.
"""

import random

from veil.backend.base import Backend
from veil.handles import Handle, HandleRegistry
from veil.kinds import ValueKind, spec_for
from veil.ops.base import Operation


class SimulationBackend(Backend):
    """
    Backend that computes on plaintext.

    Usage:
        backend = SimulationBackend(seed=7)
        h = backend.store(5, ValueKind.EUINT8)
        backend.decrypt(h)  # 5
    """

    def __init__(self, seed: int = 0, namespace: str = "sim") -> None:
        self.seed = seed
        self.registry = HandleRegistry(namespace)
        self._rng = random.Random(seed)

    @property
    def name(self) -> str:
        return "simulation"

    def store(self, value: int, kind: ValueKind) -> Handle:
        return self.registry.create(value, kind)

    def apply(
        self,
        operation: Operation,
        operands: list[Handle],
        result_kind: ValueKind,
    ) -> Handle:
        values: list[int] = []
        kinds: list[ValueKind] = []
        for handle in operands:
            value, kind = self.registry.resolve(handle)
            values.append(value)
            kinds.append(kind)
        return self.registry.create(operation.compute(values, kinds), result_kind)

    def random_value(self, kind: ValueKind, bound: int | None = None) -> Handle:
        spec = spec_for(kind)
        if bound is None:
            value = self._rng.getrandbits(spec.bits)
        elif bound <= 0:
            value = 0
        else:
            value = self._rng.randrange(min(bound, spec.mask + 1))
        return self.registry.create(value, kind)

    def decrypt(self, handle: Handle) -> int:
        value, _ = self.registry.resolve(handle)
        return value

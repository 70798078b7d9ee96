"""
Backend discovery by network identifier.

Maps identifiers such as "simulation" or a local chain id to factories that
build a backend from an EngineConfig. Prefer passing a backend explicitly;
discovery exists so configuration files can name one.

Usage:
    from veil.backend import register_backend, resolve_backend

    register_backend("my-net", lambda config: MyBackend(config))
    backend = resolve_backend("my-net", config)
"""

from typing import Callable

from veil.backend.base import Backend
from veil.backend.simulation import SimulationBackend
from veil.errors import BackendNotFoundError
from veil.schema import EngineConfig

BackendFactory = Callable[[EngineConfig], Backend]


def _simulation_factory(config: EngineConfig) -> Backend:
    return SimulationBackend(seed=config.seed, namespace=config.network)


class BackendRegistry:
    """
    Registry of backend factories keyed by network identifier.

    Attributes:
        _factories: Mapping of network identifiers to factories
    """

    def __init__(self) -> None:
        self._factories: dict[str, BackendFactory] = {}

    def register(self, network: str, factory: BackendFactory) -> None:
        """
        Register a factory for a network identifier.

        Raises:
            ValueError: If the network identifier is empty
        """
        if not network:
            msg = "Network identifier must be non-empty"
            raise ValueError(msg)
        self._factories[network] = factory

    def resolve(self, network: str, config: EngineConfig | None = None) -> Backend:
        """
        Build the backend registered for a network.

        Raises:
            BackendNotFoundError: If nothing is registered for the network
        """
        factory = self._factories.get(network)
        if factory is None:
            raise BackendNotFoundError(network=network)
        return factory(config or EngineConfig(network=network))

    def networks(self) -> list[str]:
        return sorted(self._factories.keys())

    def __contains__(self, network: str) -> bool:
        return network in self._factories


default_backends = BackendRegistry()
for _network in ("simulation", "local", "31337"):
    default_backends.register(_network, _simulation_factory)


def register_backend(network: str, factory: BackendFactory) -> None:
    """Register a backend factory in the default registry."""
    default_backends.register(network, factory)


def resolve_backend(network: str, config: EngineConfig | None = None) -> Backend:
    """Build a backend from the default registry."""
    return default_backends.resolve(network, config)

"""TripScan providers - adapter contract, registry and result pipeline."""

from tripscan_providers.base import ProviderAdapter
from tripscan_providers.normalizer import NormalizationError, ResultNormalizer
from tripscan_providers.registry import AdapterRegistry, build_registry

__all__ = [
    "AdapterRegistry",
    "NormalizationError",
    "ProviderAdapter",
    "ResultNormalizer",
    "build_registry",
]

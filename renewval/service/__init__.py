"""Valuation service access: configuration, HTTP client and result cache."""

from renewval.service.cache import CachingValuator
from renewval.service.client import ValuationServiceClient
from renewval.service.config import ServiceConfig


def build_valuator(config: ServiceConfig | None = None):
  """HTTP valuator for config, wrapped in a cache when enabled."""
  config = config or ServiceConfig.default()
  client = ValuationServiceClient(config)
  if config.cache_results:
    return CachingValuator(client)
  return client


__all__ = [
    'CachingValuator',
    'ServiceConfig',
    'ValuationServiceClient',
    'build_valuator',
]

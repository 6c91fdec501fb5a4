"""
Asset-type templates used as the base Model for batch import.

Each template is a complete Model: DEFAULT_MODEL with the asset-type
specific values layered on top. Templates are addressed by short names
('solar', 'wind', 'hydro'); the '-standard' ids used by the batch import
screen are accepted as aliases.

Usage:
  from renewval.variables.templates import create_template

  model = create_template('wind')
"""

import logging
from collections.abc import Callable
from typing import Any, Optional

from renewval.domain.model import Model
from renewval.domain.model import with_defaults

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = 'solar'

_SOLAR: dict[str, Any] = {
    'asset': {'type': 'solar'},
}

_WIND: dict[str, Any] = {
    'asset': {'type': 'wind'},
    'production': {
        'bottomUp': {
            'capacity': '100',
            'capacityYield': '42',
            'degradationRate': '0.3',
            'availability': '95',
        },
    },
    'pricing': {
        'contracted': {'price': '55', 'percentage': '60',
                       'escalationRate': '2.0'},
        'merchant': {'price': '40', 'percentage': '40', 'priceGrowth': '1.2'},
    },
    'costs': {'operationalCosts': '450000', 'costEscalation': '2.0'},
    'financial': {
        'depreciation': {'period': '20'},
        'capex': {'initial': '100000000'},
    },
    'macro': {'costInflation': '2.0', 'capexInflation': '1.5'},
    'debt': {'amount': '70000000', 'interestRate': '5.0'},
    'model': {
        'discountRate': '7.5',
        'forecastPeriod': '20',
        'endDate': '2043-01-01',
        'terminalValue': {'growthRate': '1.0', 'multiple': '8'},
    },
}

_HYDRO: dict[str, Any] = {
    'asset': {'type': 'hydro'},
    'production': {
        'bottomUp': {
            'capacity': '30',
            'capacityYield': '55',
            'degradationRate': '0.1',
            'availability': '96',
        },
    },
    'pricing': {
        'contracted': {'price': '70', 'percentage': '80',
                       'escalationRate': '2.0'},
        'merchant': {'price': '50', 'percentage': '20', 'priceGrowth': '1.5'},
    },
    'costs': {'operationalCosts': '600000'},
    'financial': {
        'depreciation': {'period': '40'},
        'capex': {'initial': '120000000'},
    },
    'debt': {'amount': '80000000', 'interestRate': '5.0'},
    'model': {
        'discountRate': '7.0',
        'forecastPeriod': '40',
        'endDate': '2063-01-01',
        'terminalValue': {'growthRate': '1.5', 'multiple': '12'},
    },
}

ASSET_TEMPLATES: dict[str, Callable[[], Model]] = {
    'solar': lambda: with_defaults(_SOLAR),
    'wind': lambda: with_defaults(_WIND),
    'hydro': lambda: with_defaults(_HYDRO),
}


def template_name(asset_type: str) -> str:
  """
  Normalize an asset type or template id to a template name.

  'Wind', 'wind-standard' and ' wind ' all map to 'wind'.
  """
  name = asset_type.strip().lower()
  if name.endswith('-standard'):
    name = name[:-len('-standard')]
  return name


def create_template(asset_type: str) -> Model:
  """
  Create a fresh Model for an asset type.

  Args:
    asset_type: Template name or id (e.g., 'wind', 'wind-standard')

  Returns:
    Complete Model for the asset type

  Raises:
    KeyError: If no template exists for asset_type
  """
  try:
    factory = ASSET_TEMPLATES[template_name(asset_type)]
  except KeyError as e:
    raise KeyError(f"Unknown asset template: '{asset_type}'. "
                   f'Available: {list(ASSET_TEMPLATES.keys())}') from e
  return factory()


def list_templates() -> list[str]:
  """List available template names."""
  return list(ASSET_TEMPLATES.keys())


def template_for(asset_type: Optional[str]) -> Model:
  """
  Template for asset_type, falling back to the solar template.

  Unknown or blank asset types are logged, not raised.
  """
  name = template_name(asset_type or DEFAULT_TEMPLATE)
  if name not in ASSET_TEMPLATES:
    logger.warning("Unknown asset type '%s', using '%s' template", asset_type,
                   DEFAULT_TEMPLATE)
    name = DEFAULT_TEMPLATE
  return create_template(name)

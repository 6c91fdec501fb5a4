'''
Canonical valuation-input Model.

A Model is a plain nested dictionary. Leaves are strings (numeric strings,
enum names, ISO dates) except the toggle flags, which are booleans. Rates and
percentages are stored in percent units ('8.5' means 8.5%); the conversion
to service units happens in engine/payload.py.

DEFAULT_MODEL gives every leaf a well-defined default so that a Model handed
to the valuation service never has a missing field.
'''

import copy
from collections.abc import Mapping
from typing import Any, Dict

import pandas as pd

Model = Dict[str, Any]

DEFAULT_MODEL: Model = {
    'asset': {
        'name': 'Unnamed Asset',
        'type': 'solar',
        'location': 'Unknown Location',
        'status': 'operational',
        'description': '',
    },
    'production': {
        'simplified': {
            'annualProduction': '0',
        },
        'bottomUp': {
            'capacity': '50',
            'capacityYield': '85',
            'degradationRate': '0.5',
            'plannedOutageHours': '0',
            'unplannedOutageHours': '0',
            'availability': '98',
        },
    },
    'pricing': {
        'contracted': {
            'price': '65',
            'percentage': '70',
            'escalationRate': '2.5',
            'contractLength': '15',
        },
        'merchant': {
            'price': '45',
            'percentage': '30',
            'priceGrowth': '1.5',
        },
        'regulatory': {
            'price': '0',
            'percentage': '0',
            'regulatoryPeriod': '0',
        },
        'capacityMarket': {
            'enabled': False,
            'revenue': '0',
            'escalationRate': '2.0',
            'term': '15',
        },
    },
    'tax': {
        'corporateRate': '21',
        'carryForwardLosses': {
            'enabled': False,
            'openingBalance': '0',
            'expiryPeriod': '5',
        },
        'capitalAllowances': {
            'method': 'straightLine',
            'rate': '4',
        },
    },
    'costs': {
        'method': 'manual',
        'operationalCosts': '350000',
        'maintenanceCosts': '0',
        'landLeaseCosts': '0',
        'insuranceCosts': '0',
        'administrativeCosts': '0',
        'otherCosts': '0',
        'costEscalation': '2.5',
    },
    'financial': {
        'taxRate': '21',
        'depreciation': {
            'method': 'straightLine',
            'period': '25',
            'salvageValue': '0',
        },
        'workingCapital': {
            'receivableDays': '45',
            'payableDays': '30',
            'inventoryDays': '15',
        },
        'capex': {
            'initial': '75000000',
            'ongoing': '0',
            'contingency': '0',
            'byYear': {},
        },
    },
    'macro': {
        'revenueInflation': '2.0',
        'costInflation': '2.5',
        'capexInflation': '1.8',
        'baseYear': '2023',
    },
    'debt': {
        'amount': '50000000',
        'interestRate': '5.5',
        'term': '18',
        'repaymentStructure': 'linear',
        'gracePeriod': '0',
        'upfrontFee': '0',
        'dsra': '0',
    },
    'model': {
        'discountRate': '8.5',
        'startDate': '2023-01-01',
        'forecastPeriod': '25',
        'endDate': '2048-01-01',
        'codDate': '2024-01-01',
        'valuationDate': '2023-01-01',
        'capexDate': '2023-01-01',
        'terminalValue': {
            'method': 'perpetuity',
            'growthRate': '1.5',
            'multiple': '10',
        },
    },
}

# Mapping-valued leaves replaced wholesale rather than merged key by key.
ATOMIC_PATHS = frozenset({'financial.capex.byYear'})


def default_model() -> Model:
  '''Return a fresh deep copy of DEFAULT_MODEL.'''
  return copy.deepcopy(DEFAULT_MODEL)


def copy_model(model: Model) -> Model:
  '''Deep-copy a Model so no nested structure is shared.'''
  return copy.deepcopy(model)


def _is_blank(value: Any) -> bool:
  return value is None or (isinstance(value, str) and not value.strip())


def _merge(target: Model, defaults: Mapping, prefix: str) -> None:
  for key, default in defaults.items():
    path = f'{prefix}.{key}' if prefix else key
    current = target.get(key)
    if isinstance(default, Mapping) and path not in ATOMIC_PATHS:
      if not isinstance(current, dict):
        current = {}
        target[key] = current
      _merge(current, default, path)
    elif _is_blank(current):
      target[key] = copy.deepcopy(default)


def with_defaults(model: Model, defaults: Model = DEFAULT_MODEL) -> Model:
  '''
  Fill every missing or blank leaf of model from defaults.

  Keys present in model but unknown to defaults are kept.

  Args:
    model: Possibly sparse Model (not mutated)
    defaults: Fully-populated defaults (default: DEFAULT_MODEL)

  Returns:
    New Model with every default leaf populated
  '''
  result = copy_model(model)
  _merge(result, defaults, '')
  return result


def derive_end_date(start_date: str, forecast_period: str) -> str:
  '''
  End of the forecast horizon: start date plus forecast_period years.

  Args:
    start_date: ISO date string
    forecast_period: Whole number of years, as a string

  Returns:
    ISO date string

  Raises:
    ValueError: If either input cannot be parsed
  '''
  start = pd.Timestamp(start_date)
  years = int(float(forecast_period))
  end = start + pd.DateOffset(years=years)
  return end.strftime('%Y-%m-%d')


def year_of(date_str: str) -> str:
  '''Calendar year of an ISO date string, as a string key.'''
  return str(pd.Timestamp(date_str).year)

"""
Model -> valuation service request mapping.

The Model stores rates in percent units and enums in camelCase; the
valuation service expects fractions and snake_case enums. This module is the
only place that conversion happens.

Key functions:
  to_service_payload: Build the JSON body for POST /api/DCF/calculate
  capex_schedule: Capex-by-year map, keyed by the capex date's year
"""

from math import isfinite
from typing import Any, Dict

import pandas as pd

from renewval.domain.errors import InvalidValueError
from renewval.domain.model import Model
from renewval.domain.model import year_of
from renewval.domain.paths import get_path
from renewval.engine.overrides import parse_flag

_DEPRECIATION_METHODS = {
    'straightLine': 'straight_line',
    'decliningBalance': 'declining_balance',
}

_TERMINAL_METHODS = {
    'perpetuity': 'perpetuity',
    'exitMultiple': 'exit_multiple',
}

_COST_METHODS = {
    'perMW': 'per_mw',
}


def _number(model: Model, path: str, default: float | None = None) -> float:
  value = get_path(model, path)
  if value is None or (isinstance(value, str) and not value.strip()):
    if default is not None:
      return default
    raise InvalidValueError(path, value, 'required numeric field is missing')
  if isinstance(value, bool):
    raise InvalidValueError(path, value, 'expected a number')
  try:
    number = float(value)
  except (TypeError, ValueError) as e:
    raise InvalidValueError(path, value, 'expected a number') from e
  if not isfinite(number):
    raise InvalidValueError(path, value, 'number must be finite')
  return number


def _percent(model: Model, path: str, default: float | None = None) -> float:
  return _number(model, path, default) / 100


def _integer(model: Model, path: str) -> int:
  return int(_number(model, path))


def _date(model: Model, path: str) -> str:
  value = get_path(model, path)
  if not isinstance(value, str) or not value.strip():
    raise InvalidValueError(path, value, 'expected an ISO date')
  try:
    pd.Timestamp(value)
  except ValueError as e:
    raise InvalidValueError(path, value, 'expected an ISO date') from e
  return value


def capex_schedule(model: Model) -> Dict[str, float]:
  """
  Capex by calendar year.

  An explicit financial.capex.byYear map wins. Otherwise the initial capex
  is placed in the year of model.capexDate (not the COD year).
  """
  by_year = get_path(model, 'financial.capex.byYear') or {}
  if by_year:
    schedule = {}
    for year, amount in by_year.items():
      try:
        schedule[str(year)] = float(amount)
      except (TypeError, ValueError) as e:
        raise InvalidValueError('financial.capex.byYear', amount,
                                f'non-numeric capex for {year}') from e
    return schedule
  capex_year = year_of(_date(model, 'model.capexDate'))
  return {capex_year: _number(model, 'financial.capex.initial')}


def to_service_payload(model: Model) -> Dict[str, Any]:
  """
  Convert a normalized Model to the valuation service request body.

  Args:
    model: Complete, normalized Model (see engine.overrides.prepare_model)

  Returns:
    JSON-serializable dictionary

  Raises:
    InvalidValueError: If a numeric or date field is not well-formed
  """
  capacity_market = parse_flag(
      get_path(model, 'pricing.capacityMarket.enabled'))
  tax_losses = parse_flag(get_path(model, 'tax.carryForwardLosses.enabled'))
  cost_method = get_path(model, 'costs.method') or 'manual'

  payload: Dict[str, Any] = {
      # Dates and horizon
      'modelStartDate': _date(model, 'model.startDate'),
      'valuationDate': _date(model, 'model.valuationDate'),
      'commercialOperationDate': _date(model, 'model.codDate'),
      'forecastLength': _integer(model, 'model.forecastPeriod'),
      'discountRate': _percent(model, 'model.discountRate'),
      # Production
      'productionMethod': 'bottom-up',
      'capacity': _number(model, 'production.bottomUp.capacity'),
      'capacityYield': _percent(model, 'production.bottomUp.capacityYield'),
      'degradationRate': _percent(model, 'production.bottomUp.degradationRate'),
      'availability': _percent(model, 'production.bottomUp.availability'),
      # Pricing
      'contractedPrice': _number(model, 'pricing.contracted.price'),
      'contractedEscalationRate': _percent(model,
                                           'pricing.contracted.escalationRate'),
      'merchantPrice': _number(model, 'pricing.merchant.price'),
      'merchantEscalationRate': _percent(model, 'pricing.merchant.priceGrowth'),
      'contractedPercentage': _percent(model, 'pricing.contracted.percentage'),
      'regulatoryPrice': _number(model, 'pricing.regulatory.price', 0.0),
      'capacityMarketRevenue': (_number(model, 'pricing.capacityMarket.revenue')
                                if capacity_market else 0.0),
      'capacityMarketEscalationRate': _percent(
          model, 'pricing.capacityMarket.escalationRate', 0.0),
      'capacityMarketTerm': (_integer(model, 'pricing.capacityMarket.term')
                             if capacity_market else 0),
      # Costs
      'costMethod': _COST_METHODS.get(cost_method, cost_method),
      'operatingCost': (_number(model, 'costs.operationalCosts') +
                        _number(model, 'costs.maintenanceCosts', 0.0)),
      'costInflationRate': _percent(model, 'macro.costInflation'),
      'costDetails': {
          'landLeaseCosts': _number(model, 'costs.landLeaseCosts', 0.0),
          'insuranceCosts': _number(model, 'costs.insuranceCosts', 0.0),
          'administrativeCosts': _number(model, 'costs.administrativeCosts',
                                         0.0),
          'otherCosts': _number(model, 'costs.otherCosts', 0.0),
      },
      # Tax and depreciation
      'taxRate': _percent(model, 'financial.taxRate'),
      'taxLossOpeningBalance': (
          _number(model, 'tax.carryForwardLosses.openingBalance')
          if tax_losses else 0.0),
      'taxLossExpiryPeriod': (
          _integer(model, 'tax.carryForwardLosses.expiryPeriod')
          if tax_losses else 0),
      'depreciationMethod': _DEPRECIATION_METHODS.get(
          get_path(model, 'financial.depreciation.method'),
          'declining_balance'),
      'depreciationYears': _integer(model, 'financial.depreciation.period'),
      # Working capital
      'receivableDays': _integer(model,
                                 'financial.workingCapital.receivableDays'),
      'payableDays': _integer(model, 'financial.workingCapital.payableDays'),
      'inventoryDays': _integer(model, 'financial.workingCapital.inventoryDays'),
      # Capex
      'capex': capex_schedule(model),
      'capexInflationRate': _percent(model, 'macro.capexInflation'),
      # Debt
      'debtAmount': _number(model, 'debt.amount'),
      'interestRate': _percent(model, 'debt.interestRate'),
      # Terminal value
      'terminalValueMethod': _TERMINAL_METHODS.get(
          get_path(model, 'model.terminalValue.method'), 'none'),
      'terminalGrowthRate': _percent(model, 'model.terminalValue.growthRate'),
      'terminalMultiple': _number(model, 'model.terminalValue.multiple'),
  }
  return payload

"""
Override resolver: turns (variable name, value) pairs into valuable Models.

Every write goes through apply_override, which copies the Model, coerces the
value for its variable kind, writes the primary path and every sync path,
applies the toggle rule, clears invalidated derived fields and finally
re-normalizes the whole Model. The input Model is never mutated.

Normalization (normalize_model) is the one place where cross-field rules run:
  - sync paths mirror their primary path (financial.taxRate follows
    tax.corporateRate, costs.costEscalation follows macro.costInflation)
  - a disabled toggle forces its payload fields to '0'
  - model.endDate is derived from model.startDate + model.forecastPeriod

Usage:
  from renewval.engine.overrides import apply_override_set
  from renewval.engine.overrides import resolve_overrides

  overrides = resolve_overrides([('Electricity Price', 55)])
  model = apply_override_set(base_model, overrides)
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from math import isfinite
from typing import Any, Union

import pandas as pd

from renewval.domain.errors import InvalidValueError
from renewval.domain.model import Model
from renewval.domain.model import copy_model
from renewval.domain.model import derive_end_date
from renewval.domain.model import with_defaults
from renewval.domain.paths import get_path
from renewval.domain.paths import set_path
from renewval.variables.registry import BOOL
from renewval.variables.registry import CHOICE
from renewval.variables.registry import DATE
from renewval.variables.registry import DEFAULT_REGISTRY
from renewval.variables.registry import NUMBER
from renewval.variables.registry import ToggleRule
from renewval.variables.registry import VariableDescriptor
from renewval.variables.registry import VariableRegistry

logger = logging.getLogger(__name__)

_TRUE = frozenset({'true', 'yes', 'on', '1'})
_FALSE = frozenset({'false', 'no', 'off', '0'})


@dataclass(frozen=True)
class Override:
  """
  A resolved override: descriptor plus an already-coerced value.

  Attributes:
    descriptor: Registry descriptor of the variable
    value: Value in Model representation (string, bool)
  """
  descriptor: VariableDescriptor
  value: Any

  @property
  def name(self) -> str:
    return self.descriptor.name


OverrideSet = list[Override]
OverridePairs = Union[Mapping[str, Any], Iterable[tuple[str, Any]]]


def format_number(value: float) -> str:
  """
  Canonical string form of a number for storage in a Model.

  Whole numbers drop the decimal point (55.0 -> '55'); others use the
  shortest form that round-trips to the same float (7.50 -> '7.5',
  1e-11 -> '1e-11').
  """
  number = float(value)
  if number.is_integer():
    return str(int(number))
  return repr(number)


def parse_flag(value: Any) -> bool:
  """Interpret a toggle flag stored as bool or string; None is False."""
  if isinstance(value, bool):
    return value
  if value is None:
    return False
  return str(value).strip().lower() in _TRUE


def _normalize_choice(text: str) -> str:
  return text.strip().lower().replace('_', '').replace('-', '').replace(' ', '')


def coerce_value(descriptor: VariableDescriptor, raw: Any) -> Any:
  """
  Convert a caller-supplied value into Model representation.

  Args:
    descriptor: Variable being written
    raw: Caller value (number, string, bool)

  Returns:
    Numeric string for number variables, bool for flags, canonical choice
    for choice variables, ISO date string for dates, stripped text otherwise

  Raises:
    InvalidValueError: If raw is not well-formed for the variable kind
  """
  name = descriptor.name
  kind = descriptor.kind

  if kind == NUMBER:
    if isinstance(raw, bool):
      raise InvalidValueError(name, raw, 'expected a number, got a boolean')
    if isinstance(raw, str) and not raw.strip():
      raise InvalidValueError(name, raw, 'expected a number, got blank')
    try:
      number = float(raw)
    except (TypeError, ValueError) as e:
      raise InvalidValueError(name, raw, 'expected a number') from e
    if not isfinite(number):
      raise InvalidValueError(name, raw, 'number must be finite')
    if descriptor.integer and not number.is_integer():
      raise InvalidValueError(name, raw, 'expected a whole number')
    return format_number(number)

  if kind == BOOL:
    if isinstance(raw, bool):
      return raw
    text = str(raw).strip().lower()
    if text in _TRUE:
      return True
    if text in _FALSE:
      return False
    raise InvalidValueError(name, raw, 'expected true or false')

  if kind == CHOICE:
    key = _normalize_choice(str(raw))
    for choice in descriptor.choices:
      if _normalize_choice(choice) == key:
        return choice
    raise InvalidValueError(name, raw,
                            f'expected one of {list(descriptor.choices)}')

  if kind == DATE:
    if isinstance(raw, (int, float)):
      raise InvalidValueError(name, raw, 'expected an ISO date')
    try:
      timestamp = pd.Timestamp(raw)
    except (TypeError, ValueError) as e:
      raise InvalidValueError(name, raw, 'expected an ISO date') from e
    if pd.isna(timestamp):
      raise InvalidValueError(name, raw, 'expected an ISO date')
    return timestamp.strftime('%Y-%m-%d')

  return '' if raw is None else str(raw).strip()


def _is_zero_or_blank(value: Any) -> bool:
  if value is None:
    return True
  text = str(value).strip()
  if not text:
    return True
  try:
    return float(text) == 0.0
  except ValueError:
    return False


def _apply_toggle(model: Model, rule: ToggleRule) -> None:
  """Enable side of a toggle rule: fill zero or blank payload fields."""
  if not parse_flag(get_path(model, rule.flag_path)):
    return
  for path, default in rule.payload_defaults:
    if _is_zero_or_blank(get_path(model, path)):
      logger.debug('Enabling %s: %s defaults to %s', rule.flag_path, path,
                   default)
      set_path(model, path, default)


def normalize_model(model: Model,
                    registry: VariableRegistry = DEFAULT_REGISTRY) -> Model:
  """
  Apply every cross-field rule to model in place.

  Args:
    model: Complete Model (mutated)
    registry: Registry declaring sync paths and toggle rules

  Returns:
    The same model, for chaining
  """
  for descriptor in registry.sync_descriptors:
    value = get_path(model, descriptor.path)
    for path in descriptor.sync_paths:
      set_path(model, path, value)

  for rule in registry.toggle_rules:
    enabled = parse_flag(get_path(model, rule.flag_path))
    set_path(model, rule.flag_path, enabled)
    if not enabled:
      for path in rule.payload_paths:
        set_path(model, path, '0')

  start = get_path(model, 'model.startDate')
  period = get_path(model, 'model.forecastPeriod')
  try:
    set_path(model, 'model.endDate', derive_end_date(start, period))
  except (TypeError, ValueError):
    logger.warning('Cannot derive end date from start=%r period=%r; keeping '
                   '%r', start, period, get_path(model, 'model.endDate'))
  return model


def prepare_model(model: Model,
                  registry: VariableRegistry = DEFAULT_REGISTRY) -> Model:
  """
  Fill defaults and normalize, without mutating model.

  The result has every default leaf populated and satisfies the sync and
  toggle rules, so it can be handed to a valuation function as is.
  """
  return normalize_model(with_defaults(model), registry)


def apply_override(model: Model,
                   descriptor: VariableDescriptor,
                   value: Any,
                   registry: VariableRegistry = DEFAULT_REGISTRY) -> Model:
  """
  Return a copy of model with one variable overridden.

  Args:
    model: Base Model (not mutated)
    descriptor: Variable to write
    value: New value, coerced with coerce_value
    registry: Registry used for normalization

  Returns:
    New, normalized Model sharing no structure with model

  Raises:
    InvalidValueError: If value is not well-formed for the variable
  """
  coerced = coerce_value(descriptor, value)
  result = copy_model(model)
  for path in descriptor.all_paths:
    set_path(result, path, coerced)
  if descriptor.toggle is not None:
    _apply_toggle(result, descriptor.toggle)
  for path in descriptor.invalidates:
    set_path(result, path, {})
  return normalize_model(result, registry)


def apply_override_set(model: Model,
                       overrides: Iterable[Override],
                       registry: VariableRegistry = DEFAULT_REGISTRY) -> Model:
  """Apply overrides cumulatively, in order. model is not mutated."""
  result = model
  for override in overrides:
    result = apply_override(result, override.descriptor, override.value,
                            registry)
  if result is model:
    result = normalize_model(copy_model(model), registry)
  return result


def check_toggle_enabled(model: Model,
                         descriptor: VariableDescriptor,
                         value: Any,
                         registry: VariableRegistry = DEFAULT_REGISTRY) -> None:
  """
  Reject a write to a toggle payload field while its flag is off in model.

  normalize_model forces such a field to '0', so the write would reach the
  valuation as zero. Bridge and sensitivity requests call this before any
  valuation; batch import stays tolerant.

  Raises:
    InvalidValueError: If the governing flag is disabled in model
  """
  flag = registry.payload_toggle(descriptor.path)
  if flag is None or parse_flag(get_path(model, flag.path)):
    return
  raise InvalidValueError(
      descriptor.name, value,
      f"'{flag.name}' is off in the model; enable it before this override")


def resolve_overrides(
    pairs: OverridePairs,
    registry: VariableRegistry = DEFAULT_REGISTRY) -> OverrideSet:
  """
  Resolve names and validate values for a list of overrides.

  All pairs are checked before returning, so a caller can resolve first and
  only then start issuing valuation calls.

  Args:
    pairs: Mapping or ordered (name, value) pairs
    registry: Registry used to resolve names

  Returns:
    Ordered list of Override

  Raises:
    UnknownVariableError: If a name is not registered
    InvalidValueError: If a value is not well-formed
  """
  items = pairs.items() if isinstance(pairs, Mapping) else pairs
  overrides: OverrideSet = []
  for name, value in items:
    descriptor = registry.resolve(name)
    overrides.append(Override(descriptor, coerce_value(descriptor, value)))
  return overrides


def parse_override_args(args: Iterable[str]) -> list[tuple[str, str]]:
  """
  Parse command-line 'Name=value' arguments into pairs.

  Raises:
    ValueError: If an argument has no '='
  """
  pairs = []
  for arg in args:
    name, sep, value = arg.partition('=')
    if not sep:
      raise ValueError(f"Override must look like 'Name=value', got {arg!r}")
    pairs.append((name.strip(), value.strip()))
  return pairs

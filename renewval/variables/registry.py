"""
Variable registry mapping human-readable names to Model paths.

Bridge, sensitivity and batch callers name variables ('Discount Rate',
'Capacity Market Revenue'); they never supply raw paths. The registry is the
single source of truth for which names are valid, where each one lives in the
Model, and which cross-field rules apply when it is written.

Cross-field rules are declared on the descriptor:
  sync_paths: other paths that must mirror the written value
  toggle: enable/disable rule for an optional revenue or allowance stream
  invalidates: derived fields reset when this variable changes

To add a new variable:
1. Add the leaf (with a default) to DEFAULT_MODEL in domain/model.py
2. Add a VariableDescriptor to DEFAULT_VARIABLES below
3. Add a column to BATCH_COLUMNS in analysis/batch_valuation.py if it
   should be importable from CSV

Example:
  VariableDescriptor(
      name='Curtailment',
      path='production.bottomUp.curtailment',
      default_range=Range(0, 10, 1),
  )
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Optional

from renewval.domain.errors import UnknownVariableError
from renewval.domain.model import DEFAULT_MODEL
from renewval.domain.paths import has_path

NUMBER = 'number'
BOOL = 'bool'
CHOICE = 'choice'
DATE = 'date'
TEXT = 'text'

KINDS = (NUMBER, BOOL, CHOICE, DATE, TEXT)


@dataclass(frozen=True)
class Range:
  """Default sweep range for sensitivity analysis (inclusive)."""
  low: float
  high: float
  step: float


@dataclass(frozen=True)
class ToggleRule:
  """
  Enable/disable rule for an optional stream.

  When the flag transitions to enabled, every payload field that is zero or
  blank receives its default. When the flag is disabled, every payload field
  is forced to '0', so an enabled flag with a zero payload values exactly
  like a disabled one.

  Attributes:
    flag_path: Path of the boolean flag
    payload_defaults: Payload path -> non-zero default used on enable
  """
  flag_path: str
  payload_defaults: tuple[tuple[str, str], ...]

  @property
  def payload_paths(self) -> tuple[str, ...]:
    return tuple(path for path, _ in self.payload_defaults)


@dataclass(frozen=True)
class VariableDescriptor:
  """
  A named, overridable Model variable.

  Attributes:
    name: Human-readable name used by callers
    path: Primary dot path in the Model
    kind: One of number, bool, choice, date, text
    default_range: Sensitivity range used when the caller gives none
    sync_paths: Paths that must hold the same value after a write
    toggle: Toggle rule, for the flag variable of an optional stream
    choices: Allowed values for choice variables
    integer: Numeric variable that must be a whole number
    invalidates: Derived paths cleared when this variable is written
  """
  name: str
  path: str
  kind: str = NUMBER
  default_range: Optional[Range] = None
  sync_paths: tuple[str, ...] = ()
  toggle: Optional[ToggleRule] = None
  choices: tuple[str, ...] = ()
  integer: bool = False
  invalidates: tuple[str, ...] = ()

  @property
  def all_paths(self) -> tuple[str, ...]:
    """Primary path followed by every sync path."""
    return (self.path,) + self.sync_paths


CAPACITY_MARKET = ToggleRule(
    flag_path='pricing.capacityMarket.enabled',
    payload_defaults=(('pricing.capacityMarket.revenue', '100000'),),
)

TAX_LOSS_CARRY_FORWARD = ToggleRule(
    flag_path='tax.carryForwardLosses.enabled',
    payload_defaults=(('tax.carryForwardLosses.openingBalance', '500000'),),
)

CAPEX_SCHEDULE_PATH = 'financial.capex.byYear'

DEFAULT_VARIABLES: tuple[VariableDescriptor, ...] = (
    # Model parameters
    VariableDescriptor('Discount Rate', 'model.discountRate',
                       default_range=Range(7.0, 10.0, 0.5)),
    VariableDescriptor('Forecast Length', 'model.forecastPeriod',
                       integer=True, default_range=Range(15, 35, 5)),
    VariableDescriptor('Model Start Date', 'model.startDate', kind=DATE),
    VariableDescriptor('Valuation Date', 'model.valuationDate', kind=DATE),
    VariableDescriptor('Commercial Operation Date', 'model.codDate',
                       kind=DATE),
    VariableDescriptor('Capex Date', 'model.capexDate', kind=DATE,
                       invalidates=(CAPEX_SCHEDULE_PATH,)),
    VariableDescriptor('Terminal Value Method', 'model.terminalValue.method',
                       kind=CHOICE,
                       choices=('perpetuity', 'exitMultiple', 'none')),
    VariableDescriptor('Terminal Growth Rate',
                       'model.terminalValue.growthRate',
                       default_range=Range(0.0, 3.0, 0.5)),
    VariableDescriptor('Terminal Multiple', 'model.terminalValue.multiple',
                       default_range=Range(6, 14, 2)),
    # Asset identity
    VariableDescriptor('Asset Name', 'asset.name', kind=TEXT),
    VariableDescriptor('Asset Type', 'asset.type', kind=TEXT),
    VariableDescriptor('Location', 'asset.location', kind=TEXT),
    # Production
    VariableDescriptor('Capacity', 'production.bottomUp.capacity',
                       default_range=Range(40, 60, 5)),
    VariableDescriptor('Capacity Factor', 'production.bottomUp.capacityYield',
                       default_range=Range(80, 90, 2)),
    VariableDescriptor('Degradation Rate',
                       'production.bottomUp.degradationRate',
                       default_range=Range(0.0, 1.0, 0.25)),
    VariableDescriptor('Availability', 'production.bottomUp.availability',
                       default_range=Range(94, 100, 1)),
    # Pricing
    VariableDescriptor('Electricity Price', 'pricing.merchant.price',
                       default_range=Range(40, 80, 5)),
    VariableDescriptor('Merchant Price', 'pricing.merchant.price',
                       default_range=Range(40, 80, 5)),
    VariableDescriptor('Merchant Escalation Rate',
                       'pricing.merchant.priceGrowth',
                       default_range=Range(0.0, 3.0, 0.5)),
    VariableDescriptor('Contracted Price', 'pricing.contracted.price',
                       default_range=Range(50, 80, 5)),
    VariableDescriptor('Contracted Percentage', 'pricing.contracted.percentage',
                       default_range=Range(50, 90, 10)),
    VariableDescriptor('Contracted Escalation Rate',
                       'pricing.contracted.escalationRate',
                       default_range=Range(1.0, 4.0, 0.5)),
    VariableDescriptor('Regulatory Price', 'pricing.regulatory.price',
                       default_range=Range(0, 40, 10)),
    # Capacity market
    VariableDescriptor('Capacity Market Enabled',
                       CAPACITY_MARKET.flag_path,
                       kind=BOOL,
                       toggle=CAPACITY_MARKET),
    VariableDescriptor('Capacity Market Revenue',
                       'pricing.capacityMarket.revenue',
                       default_range=Range(0, 200000, 50000)),
    VariableDescriptor('Capacity Market Escalation',
                       'pricing.capacityMarket.escalationRate',
                       default_range=Range(0, 5, 0.5)),
    VariableDescriptor('Capacity Market Term', 'pricing.capacityMarket.term',
                       integer=True, default_range=Range(5, 25, 5)),
    # Tax
    VariableDescriptor('Corporate Tax Rate', 'tax.corporateRate',
                       sync_paths=('financial.taxRate',),
                       default_range=Range(15, 35, 5)),
    VariableDescriptor('Tax Rate', 'tax.corporateRate',
                       sync_paths=('financial.taxRate',),
                       default_range=Range(15, 35, 5)),
    VariableDescriptor('Tax Loss Carry Forward Enabled',
                       TAX_LOSS_CARRY_FORWARD.flag_path,
                       kind=BOOL,
                       toggle=TAX_LOSS_CARRY_FORWARD),
    VariableDescriptor('Tax Loss Opening Balance',
                       'tax.carryForwardLosses.openingBalance',
                       default_range=Range(0, 1000000, 200000)),
    VariableDescriptor('Tax Loss Expiry Period',
                       'tax.carryForwardLosses.expiryPeriod',
                       integer=True, default_range=Range(0, 10, 1)),
    VariableDescriptor('Capital Allowance Rate', 'tax.capitalAllowances.rate',
                       default_range=Range(2, 10, 2)),
    VariableDescriptor('Capital Allowance Method',
                       'tax.capitalAllowances.method',
                       kind=CHOICE,
                       choices=('straightLine', 'decliningBalance', 'custom')),
    # Capex and financial
    VariableDescriptor('Initial CAPEX', 'financial.capex.initial',
                       invalidates=(CAPEX_SCHEDULE_PATH,),
                       default_range=Range(60000000, 90000000, 5000000)),
    VariableDescriptor('Ongoing CAPEX', 'financial.capex.ongoing',
                       default_range=Range(100000, 500000, 50000)),
    VariableDescriptor('Depreciation Method', 'financial.depreciation.method',
                       kind=CHOICE,
                       choices=('straightLine', 'decliningBalance', 'custom')),
    VariableDescriptor('Depreciation Years', 'financial.depreciation.period',
                       integer=True, default_range=Range(15, 30, 5)),
    VariableDescriptor('Receivable Days',
                       'financial.workingCapital.receivableDays',
                       integer=True),
    VariableDescriptor('Payable Days', 'financial.workingCapital.payableDays',
                       integer=True),
    VariableDescriptor('Inventory Days',
                       'financial.workingCapital.inventoryDays',
                       integer=True),
    # Costs
    VariableDescriptor('Cost Method', 'costs.method',
                       kind=CHOICE,
                       choices=('manual', 'perMW', 'percentage')),
    VariableDescriptor('O&M Costs', 'costs.operationalCosts',
                       default_range=Range(250000, 450000, 50000)),
    VariableDescriptor('Maintenance Costs', 'costs.maintenanceCosts',
                       default_range=Range(150000, 350000, 50000)),
    VariableDescriptor('Land Lease Costs', 'costs.landLeaseCosts',
                       default_range=Range(50000, 150000, 25000)),
    VariableDescriptor('Insurance Costs', 'costs.insuranceCosts',
                       default_range=Range(80000, 150000, 10000)),
    VariableDescriptor('Administrative Costs', 'costs.administrativeCosts',
                       default_range=Range(25000, 100000, 25000)),
    # Macro
    VariableDescriptor('Inflation Rate', 'macro.revenueInflation',
                       default_range=Range(1, 4, 0.5)),
    VariableDescriptor('Cost Inflation Rate', 'macro.costInflation',
                       sync_paths=('costs.costEscalation',),
                       default_range=Range(1, 4, 0.5)),
    VariableDescriptor('Capex Inflation Rate', 'macro.capexInflation',
                       default_range=Range(1, 3, 0.5)),
    # Debt
    VariableDescriptor('Debt Amount', 'debt.amount',
                       default_range=Range(30000000, 70000000, 10000000)),
    VariableDescriptor('Interest Rate', 'debt.interestRate',
                       default_range=Range(3, 8, 0.5)),
)


class VariableRegistry:
  """
  Immutable catalogue of VariableDescriptors keyed by name.

  Construct once and inject into the resolver and engines; tests can pass
  an alternate registry.
  """

  def __init__(
      self,
      descriptors: tuple[VariableDescriptor, ...] = DEFAULT_VARIABLES,
      model_template: Mapping[str, Any] = DEFAULT_MODEL,
  ):
    """
    Build and validate the registry.

    Args:
      descriptors: Variable descriptors, names must be unique
      model_template: Fully-populated Model used to validate paths

    Raises:
      ValueError: On duplicate names, unknown kinds or invalid paths
    """
    by_name: dict[str, VariableDescriptor] = {}
    for descriptor in descriptors:
      if descriptor.name in by_name:
        raise ValueError(f'Duplicate variable name: {descriptor.name!r}')
      if descriptor.kind not in KINDS:
        raise ValueError(f'Unknown kind {descriptor.kind!r} for '
                         f'{descriptor.name!r}')
      if descriptor.kind == CHOICE and not descriptor.choices:
        raise ValueError(f'Choice variable {descriptor.name!r} has no '
                         'choices')
      for path in _referenced_paths(descriptor):
        if not has_path(model_template, path):
          raise ValueError(f'Variable {descriptor.name!r} references '
                           f'unknown path: {path!r}')
      by_name[descriptor.name] = descriptor
    self._by_name = by_name

  def resolve(self, name: str) -> VariableDescriptor:
    """
    Look up a descriptor by name.

    Raises:
      UnknownVariableError: If the name is not registered
    """
    try:
      return self._by_name[name]
    except KeyError as e:
      raise UnknownVariableError(name, self.names()) from e

  def get(self, name: str) -> Optional[VariableDescriptor]:
    """Look up a descriptor by name, returning None if unknown."""
    return self._by_name.get(name)

  def names(self) -> list[str]:
    return list(self._by_name)

  def payload_toggle(self, path: str) -> Optional[VariableDescriptor]:
    """Flag variable whose toggle rule zeroes path while off, if any."""
    for d in self._by_name.values():
      if d.toggle is not None and path in d.toggle.payload_paths:
        return d
    return None

  @property
  def sync_descriptors(self) -> list[VariableDescriptor]:
    """One descriptor per primary path that has sync paths."""
    seen: dict[str, VariableDescriptor] = {}
    for d in self._by_name.values():
      if d.sync_paths and d.path not in seen:
        seen[d.path] = d
    return list(seen.values())

  @property
  def toggle_rules(self) -> list[ToggleRule]:
    """Distinct toggle rules declared by the registry."""
    rules: list[ToggleRule] = []
    for d in self._by_name.values():
      if d.toggle is not None and d.toggle not in rules:
        rules.append(d.toggle)
    return rules

  def __contains__(self, name: object) -> bool:
    return name in self._by_name

  def __iter__(self) -> Iterator[VariableDescriptor]:
    return iter(self._by_name.values())

  def __len__(self) -> int:
    return len(self._by_name)


def _referenced_paths(descriptor: VariableDescriptor) -> list[str]:
  paths = list(descriptor.all_paths) + list(descriptor.invalidates)
  if descriptor.toggle is not None:
    paths.append(descriptor.toggle.flag_path)
    paths.extend(descriptor.toggle.payload_paths)
  return paths


DEFAULT_REGISTRY = VariableRegistry()


def list_variables(
    registry: VariableRegistry = DEFAULT_REGISTRY) -> dict[str, list[str]]:
  """
  List registered variable names grouped by Model section.

  Returns:
    Dictionary mapping top-level section to variable names
  """
  result: dict[str, list[str]] = {}
  for descriptor in registry:
    section = descriptor.path.split('.', 1)[0]
    result.setdefault(section, []).append(descriptor.name)
  return result

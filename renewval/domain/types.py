'''
Domain types for the attribution engine.

These dataclasses provide typed interfaces between the valuation service,
the bridge, the sensitivity sweep and the batch runner.
'''

from dataclasses import dataclass, field
from math import isfinite
from typing import Any, Dict, Generic, List, Mapping, Optional, TypeVar

T = TypeVar('T')

# IRR value returned by the valuation service when IRR cannot be computed
# (e.g. cash flows never turn positive).
IRR_NOT_COMPUTABLE = -999.0


def irr_is_computable(irr: float) -> bool:
  '''False for the -999 sentinel and for non-finite values.'''
  return isfinite(irr) and irr != IRR_NOT_COMPUTABLE


def format_irr(irr: float) -> str:
  '''Format an IRR (fraction) for display; the sentinel shows as N/A.'''
  if not irr_is_computable(irr):
    return 'N/A'
  return f'{irr:.2%}'


def format_currency(value: float) -> str:
  '''Format a currency amount with thousands separators, no decimals.'''
  if not isfinite(value):
    return 'N/A'
  sign = '-' if value < 0 else ''
  return f'{sign}${abs(value):,.0f}'


@dataclass
class PolicyOutput(Generic[T]):
  '''
  Standard output from any policy.

  Attributes:
    value: The computed value (type depends on policy)
    diag: Dictionary of diagnostic information
  '''
  value: T
  diag: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ValuationResult:
  '''
  Output of one call to the external valuation function.

  Attributes:
    npv: Net present value
    irr: Internal rate of return as a fraction, or IRR_NOT_COMPUTABLE
    payback_period: Years to recover the initial investment
    annual_cash_flows: Yearly free cash flows
    dscr_min: Minimum debt service coverage ratio
    dscr_average: Average debt service coverage ratio
    extra: Any additional fields returned by the service
  '''
  npv: float
  irr: float = IRR_NOT_COMPUTABLE
  payback_period: float = 0.0
  annual_cash_flows: List[float] = field(default_factory=list)
  dscr_min: float = 0.0
  dscr_average: float = 0.0
  extra: Dict[str, Any] = field(default_factory=dict)

  @property
  def irr_computable(self) -> bool:
    return irr_is_computable(self.irr)

  @classmethod
  def from_mapping(cls, data: Mapping[str, Any]) -> 'ValuationResult':
    '''
    Build from a service response (camelCase keys).

    Raises:
      KeyError: If 'npv' is missing
      ValueError: If a numeric field cannot be converted
    '''
    known = {'npv', 'irr', 'paybackPeriod', 'annualCashFlows', 'dscr'}
    dscr = data.get('dscr') or {}
    irr = data.get('irr')
    return cls(
        npv=float(data['npv']),
        irr=IRR_NOT_COMPUTABLE if irr is None else float(irr),
        payback_period=float(data.get('paybackPeriod') or 0.0),
        annual_cash_flows=[float(cf) for cf in data.get('annualCashFlows') or []],
        dscr_min=float(dscr.get('min', 0.0)),
        dscr_average=float(dscr.get('average', 0.0)),
        extra={k: v for k, v in data.items() if k not in known},
    )

  @classmethod
  def coerce(cls, obj: Any) -> 'ValuationResult':
    '''Accept either a ValuationResult or a response mapping.'''
    if isinstance(obj, ValuationResult):
      return obj
    if isinstance(obj, Mapping):
      return cls.from_mapping(obj)
    raise TypeError(
        f'valuate must return ValuationResult or mapping, got {type(obj)}')

  def to_dict(self) -> Dict[str, Any]:
    '''Convert to dictionary for DataFrame creation.'''
    result = {
        'npv': self.npv,
        'irr': self.irr,
        'irr_display': format_irr(self.irr),
        'payback_period': self.payback_period,
        'dscr_min': self.dscr_min,
        'dscr_average': self.dscr_average,
    }
    result.update(self.extra)
    return result


@dataclass(frozen=True)
class BridgeStep:
  '''
  One bar of a valuation waterfall.

  Attributes:
    label: 'Base Value', a variable name, or 'Final Value'
    impact: Change in NPV caused by this step (0 for base and final)
    cumulative_value: NPV after this step
  '''
  label: str
  impact: float
  cumulative_value: float

  def to_dict(self) -> Dict[str, Any]:
    return {
        'label': self.label,
        'impact': self.impact,
        'cumulative_value': self.cumulative_value,
    }


@dataclass(frozen=True)
class SensitivityPoint:
  '''
  One valuation at one swept value of one variable.

  Attributes:
    variable: Registry name of the swept variable
    value: Swept value (in the variable's own units)
    npv: Resulting NPV
    irr: Resulting IRR, possibly IRR_NOT_COMPUTABLE
  '''
  variable: str
  value: float
  npv: float
  irr: float

  def to_dict(self) -> Dict[str, Any]:
    return {
        'variable': self.variable,
        'value': self.value,
        'npv': self.npv,
        'irr': self.irr,
        'irr_display': format_irr(self.irr),
    }


@dataclass
class BatchRowResult:
  '''
  Outcome of valuing one batch row.

  Exactly one of result / error is set.

  Attributes:
    row_index: Position of the row in the input
    identity: Display identity (name, type, location)
    result: ValuationResult if the row succeeded
    error: Error message if the row failed
  '''
  row_index: int
  identity: Dict[str, str]
  result: Optional[ValuationResult] = None
  error: Optional[str] = None

  @property
  def succeeded(self) -> bool:
    return self.result is not None

  def to_dict(self) -> Dict[str, Any]:
    row: Dict[str, Any] = {'row_index': self.row_index}
    row.update(self.identity)
    if self.result is not None:
      row.update(self.result.to_dict())
    else:
      row['error'] = self.error
    return row

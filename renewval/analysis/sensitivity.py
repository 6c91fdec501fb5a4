"""
One-at-a-time sensitivity analysis.

Each requested variable is swept over a closed range against the same,
unmodified base Model: every point changes exactly one variable. Unlike the
valuation bridge there is no cumulative application, so the order of the
requested variables never changes any result, and variables can be swept
concurrently.

CLI Usage:
  python -m renewval.analysis.sensitivity \\
      --model assets/sunny_hill.json \\
      --variable "Discount Rate" \\
      --variable "Electricity Price=40:80:5"
"""

import argparse
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
import logging
import math
from pathlib import Path
import threading
from typing import Any, Callable, Optional

import pandas as pd

from renewval.domain.errors import InvalidValueError
from renewval.domain.errors import SensitivityPointError
from renewval.domain.model import Model
from renewval.domain.types import SensitivityPoint
from renewval.domain.types import ValuationResult
from renewval.domain.types import format_currency
from renewval.domain.types import format_irr
from renewval.engine.overrides import apply_override
from renewval.engine.overrides import check_toggle_enabled
from renewval.engine.overrides import prepare_model
from renewval.engine.payload import to_service_payload
from renewval.run import add_service_arguments
from renewval.run import load_model
from renewval.run import service_config_from_args
from renewval.service import build_valuator
from renewval.variables.registry import DEFAULT_REGISTRY
from renewval.variables.registry import NUMBER
from renewval.variables.registry import VariableDescriptor
from renewval.variables.registry import VariableRegistry

logger = logging.getLogger(__name__)

Valuator = Callable[[Model], Any]

_TOLERANCE = 1e-9


@dataclass(frozen=True)
class SweepRequest:
  """
  One variable to sweep.

  low/high/step default to the variable's registered range.
  """
  name: str
  low: Optional[float] = None
  high: Optional[float] = None
  step: Optional[float] = None


def inclusive_range(low: float, high: float, step: float,
                    name: str = 'range') -> list[float]:
  """
  Closed float range [low, high] stepping by step.

  Values are strictly increasing and the last value is exactly high: when
  (high - low) is not a multiple of step, high is appended instead of being
  skipped or overshot.

  Args:
      low: First value
      high: Last value (inclusive)
      step: Positive step size
      name: Variable name used in error messages

  Returns:
      List of floats from low to high (inclusive)

  Raises:
      InvalidValueError: If step <= 0, low > high or a bound is not finite
  """
  for value in (low, high, step):
    if not math.isfinite(value):
      raise InvalidValueError(name, value, 'range bounds must be finite')
  if step <= 0:
    raise InvalidValueError(name, step, 'step must be > 0')
  if low > high:
    raise InvalidValueError(name, (low, high), 'low must be <= high')

  n = int(math.floor((high - low) / step + _TOLERANCE))
  values = [round(low + k * step, 12) for k in range(n + 1)]
  if abs(values[-1] - high) <= _TOLERANCE * max(1.0, abs(step)):
    values[-1] = high
  elif values[-1] < high:
    values.append(high)
  return values


class SensitivitySweep:
  """
  Sweep variables one at a time against a fixed base Model.

  Points within one variable's curve run in order; different variables may
  run concurrently (max_workers > 1).
  """

  def __init__(
      self,
      valuate: Valuator,
      registry: VariableRegistry = DEFAULT_REGISTRY,
      max_workers: int = 1,
  ):
    """
    Initialize sensitivity sweep.

    Args:
        valuate: Callable returning ValuationResult (or a response mapping)
        registry: Registry used to resolve variable names
        max_workers: Variables valued concurrently (1 = sequential)
    """
    self.valuate = valuate
    self.registry = registry
    self.max_workers = max(1, max_workers)

  def plan(self, requests: list[SweepRequest]
           ) -> list[tuple[VariableDescriptor, list[float]]]:
    """
    Resolve every request into (descriptor, values).

    Raises:
        UnknownVariableError: If a name is not registered
        InvalidValueError: If a range is missing or malformed, or the
            variable is not numeric
    """
    planned = []
    for request in requests:
      descriptor = self.registry.resolve(request.name)
      if descriptor.kind != NUMBER:
        raise InvalidValueError(descriptor.name, request,
                                'only numeric variables can be swept')
      default = descriptor.default_range
      low = request.low if request.low is not None else (
          default.low if default else None)
      high = request.high if request.high is not None else (
          default.high if default else None)
      step = request.step if request.step is not None else (
          default.step if default else None)
      if low is None or high is None or step is None:
        raise InvalidValueError(descriptor.name, request,
                                'no range given and no default range')
      values = inclusive_range(float(low), float(high), float(step),
                               descriptor.name)
      if descriptor.integer:
        for value in values:
          if not float(value).is_integer():
            raise InvalidValueError(descriptor.name, value,
                                    'expected whole-number sweep values')
      planned.append((descriptor, values))
    return planned

  def run(
      self,
      base_model: Model,
      requests: list[SweepRequest],
      cancel_event: Optional[threading.Event] = None,
  ) -> list[SensitivityPoint]:
    """
    Run the sweep.

    Every request is resolved, every range generated and the base Model
    mapped to a service payload before the first valuation call. A variable
    whose stream toggle is off in the base Model is rejected, since every
    point would be sent as zero.

    Args:
        base_model: Base Model (not mutated)
        requests: Variables to sweep
        cancel_event: Set to stop issuing valuation calls; variables whose
            curves are incomplete are then left out of the result

    Returns:
        Points grouped by variable in request order, values increasing

    Raises:
        UnknownVariableError, InvalidValueError: On bad requests
        SensitivityPointError: If a valuation fails
    """
    planned = self.plan(requests)
    base = prepare_model(base_model, self.registry)
    to_service_payload(base)
    for descriptor, values in planned:
      check_toggle_enabled(base, descriptor, values, self.registry)
    total = sum(len(values) for _, values in planned)
    logger.info('Sweeping %d variables (%d points)', len(planned), total)

    curves: dict[int, list[SensitivityPoint]] = {}
    if self.max_workers == 1 or len(planned) <= 1:
      for index, (descriptor, values) in enumerate(planned):
        curve = self._sweep_variable(base, descriptor, values, cancel_event,
                                     None)
        if curve is not None:
          curves[index] = curve
    else:
      # Set by the first failing curve so running curves stop early
      failed = threading.Event()
      with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
        futures = {
            executor.submit(self._sweep_variable, base, descriptor, values,
                            cancel_event, failed): index
            for index, (descriptor, values) in enumerate(planned)
        }
        try:
          for future in as_completed(futures):
            curve = future.result()
            if curve is not None:
              curves[futures[future]] = curve
        except SensitivityPointError:
          for future in futures:
            future.cancel()
          raise

    points: list[SensitivityPoint] = []
    for index in sorted(curves):
      points.extend(curves[index])
    return points

  def _sweep_variable(
      self,
      base: Model,
      descriptor: VariableDescriptor,
      values: list[float],
      cancel_event: Optional[threading.Event],
      failed: Optional[threading.Event],
  ) -> Optional[list[SensitivityPoint]]:
    curve = []
    for point_index, value in enumerate(values):
      if cancel_event is not None and cancel_event.is_set():
        logger.info('  ✗ %s: cancelled after %d of %d points',
                    descriptor.name, point_index, len(values))
        return None
      if failed is not None and failed.is_set():
        logger.debug('  ✗ %s: stopped after %d of %d points',
                     descriptor.name, point_index, len(values))
        return None
      model = apply_override(base, descriptor, value, self.registry)
      try:
        result = ValuationResult.coerce(self.valuate(model))
      except Exception as e:  # pylint: disable=broad-except
        if failed is not None:
          failed.set()
        logger.error('  ✗ %s = %s: %s', descriptor.name, value, e)
        raise SensitivityPointError(descriptor.name, point_index, value,
                                    e) from e
      curve.append(SensitivityPoint(descriptor.name, value, result.npv,
                                    result.irr))
    logger.info('  ✓ %s: %d points', descriptor.name, len(curve))
    return curve


def run_sensitivity(
    base_model: Model,
    requests: list[SweepRequest],
    valuate: Valuator,
    registry: VariableRegistry = DEFAULT_REGISTRY,
    max_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> list[SensitivityPoint]:
  """Convenience wrapper around SensitivitySweep.run."""
  sweep = SensitivitySweep(valuate, registry, max_workers)
  return sweep.run(base_model, requests, cancel_event)


def points_to_frame(points: list[SensitivityPoint]) -> pd.DataFrame:
  """Sensitivity points as a long DataFrame, one row per point."""
  return pd.DataFrame(
      [p.to_dict() for p in points],
      columns=['variable', 'value', 'npv', 'irr', 'irr_display'])


def _parse_variable(spec: str) -> SweepRequest:
  """Parse 'Name' or 'Name=low:high:step'."""
  name, sep, bounds = spec.partition('=')
  if not sep:
    return SweepRequest(name.strip())
  parts = bounds.split(':')
  if len(parts) != 3:
    raise ValueError(f"Range must look like 'low:high:step', got {bounds!r}")
  low, high, step = (float(p) for p in parts)
  return SweepRequest(name.strip(), low, high, step)


def main() -> None:
  """CLI entrypoint for sensitivity analysis."""
  parser = argparse.ArgumentParser(
      description='One-at-a-time NPV sensitivity analysis',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  # Registered default range
  python -m renewval.analysis.sensitivity --variable "Discount Rate"

  # Explicit range (low:high:step) and parallel sweeps
  python -m renewval.analysis.sensitivity \\
      --model assets/sunny_hill.json \\
      --variable "Electricity Price=40:80:5" \\
      --variable "Capacity Factor=80:90:2" \\
      --max-workers 4
      """)
  parser.add_argument('--model',
                      type=Path,
                      help='JSON Model file (default: asset-type template)')
  parser.add_argument('--asset-type',
                      type=str,
                      help='Template for missing fields (solar, wind, hydro)')
  parser.add_argument('--variable',
                      action='append',
                      required=True,
                      metavar='NAME[=LOW:HIGH:STEP]',
                      help='Variable to sweep (repeatable)')
  parser.add_argument('--output', type=Path, help='Output CSV path (optional)')
  parser.add_argument('--verbose',
                      '-v',
                      action='store_true',
                      help='Verbose output')
  add_service_arguments(parser)
  args = parser.parse_args()

  logging.basicConfig(
      level=logging.DEBUG if args.verbose else logging.INFO,
      format='%(asctime)s [%(levelname)s] %(message)s',
      datefmt='%Y-%m-%d %H:%M:%S',
  )

  config = service_config_from_args(args)
  model = load_model(args.model, args.asset_type)
  requests = [_parse_variable(v) for v in args.variable]

  points = run_sensitivity(model, requests, build_valuator(config),
                           max_workers=config.max_workers)
  table = points_to_frame(points)

  for variable, group in table.groupby('variable', sort=False):
    print('\n' + '=' * 70)
    print(f'Sensitivity: {variable}')
    print('=' * 70)
    for _, row in group.iterrows():
      print(f"  {row['value']:>14g}  NPV {format_currency(row['npv']):>16}"
            f"  IRR {format_irr(row['irr']):>8}")
  print('=' * 70 + '\n')

  if args.output:
    table.to_csv(args.output, index=False)
    logger.info('Saved to: %s', args.output)


if __name__ == '__main__':
  main()

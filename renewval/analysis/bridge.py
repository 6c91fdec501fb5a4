"""
Valuation bridge (waterfall) for attributing NPV changes to variables.

Starting from a base Model, overrides are applied one at a time and
cumulatively; the Model is valued after each step and the step's impact is
its NPV minus the previous step's NPV:

  Base Value      0        npv(base)
  <override 1>    d1       npv(base + o1)
  <override 2>    d2       npv(base + o1 + o2)
  Final Value     0        npv(base + o1 + o2)

Attribution is order-dependent. When the valuation is non-linear (terminal
value, tax), swapping two overrides can change their individual impacts while
the final value stays the same. Impacts are reported, not corrected: each is
the marginal effect of that override given every override before it, and the
presentation order is the attribution order. No interaction effects are
apportioned between variables.

A bridge is all-or-nothing. If any valuation fails the whole bridge fails
with BridgeStepError (carrying the step index and label); no truncated
waterfall is ever returned.

CLI Usage:
  python -m renewval.analysis.bridge \\
      --model assets/sunny_hill.json \\
      --override "Electricity Price=55" \\
      --override "Discount Rate=9"
"""

import argparse
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

import pandas as pd

from renewval.domain.errors import BridgeStepError
from renewval.domain.errors import WorkflowCancelled
from renewval.domain.model import Model
from renewval.domain.types import BridgeStep
from renewval.domain.types import ValuationResult
from renewval.domain.types import format_currency
from renewval.engine.overrides import OverridePairs
from renewval.engine.overrides import apply_override
from renewval.engine.overrides import check_toggle_enabled
from renewval.engine.overrides import parse_override_args
from renewval.engine.overrides import prepare_model
from renewval.engine.overrides import resolve_overrides
from renewval.engine.payload import to_service_payload
from renewval.run import add_service_arguments
from renewval.run import load_model
from renewval.run import service_config_from_args
from renewval.service import build_valuator
from renewval.variables.registry import DEFAULT_REGISTRY
from renewval.variables.registry import VariableRegistry

logger = logging.getLogger(__name__)

BASE_LABEL = 'Base Value'
FINAL_LABEL = 'Final Value'

Valuator = Callable[[Model], Any]


class ValuationBridge:
  """
  Build valuation bridges against one valuation function.

  The bridge is strictly sequential: step N+1's Model is step N's Model plus
  one override, so there is nothing to parallelize.
  """

  def __init__(
      self,
      valuate: Valuator,
      registry: VariableRegistry = DEFAULT_REGISTRY,
  ):
    """
    Initialize bridge builder.

    Args:
        valuate: Callable returning ValuationResult (or a response mapping)
        registry: Registry used to resolve variable names
    """
    self.valuate = valuate
    self.registry = registry

  def build(
      self,
      base_model: Model,
      overrides: OverridePairs,
      cancel_event: Optional[threading.Event] = None,
  ) -> list[BridgeStep]:
    """
    Build a bridge from base_model through overrides, in order.

    Every name and value is validated, and every intermediate Model is
    built and mapped to a service payload, before the first valuation call.

    Args:
        base_model: Starting Model (not mutated)
        overrides: Ordered (variable name, new value) pairs
        cancel_event: Set to stop issuing valuation calls

    Returns:
        Base step, one step per override, final step

    Raises:
        UnknownVariableError: If a variable name is not registered
        InvalidValueError: If a value is not well-formed, targets a stream
            whose toggle is off, or a stage Model has a malformed leaf
        BridgeStepError: If a valuation fails
        WorkflowCancelled: If cancel_event is set before completion
    """
    resolved = resolve_overrides(overrides, self.registry)

    stages = [(BASE_LABEL, prepare_model(base_model, self.registry))]
    for override in resolved:
      previous = stages[-1][1]
      check_toggle_enabled(previous, override.descriptor, override.value,
                           self.registry)
      current = apply_override(previous, override.descriptor,
                               override.value, self.registry)
      stages.append((override.name, current))
    for _, model in stages:
      to_service_payload(model)

    logger.info('Building bridge with %d overrides', len(resolved))

    steps: list[BridgeStep] = []
    cumulative = 0.0
    for index, (label, model) in enumerate(stages):
      if cancel_event is not None and cancel_event.is_set():
        raise WorkflowCancelled(
            f'Bridge cancelled before step {index} ({label})')
      result = self._valuate_step(index, label, model)
      impact = 0.0 if index == 0 else result.npv - cumulative
      cumulative = result.npv
      steps.append(BridgeStep(label, impact, cumulative))
      logger.debug('  ✓ [%d] %s: impact=%.2f cumulative=%.2f', index, label,
                   impact, cumulative)

    steps.append(BridgeStep(FINAL_LABEL, 0.0, cumulative))
    logger.info('Bridge complete: %s -> %s',
                format_currency(steps[0].cumulative_value),
                format_currency(cumulative))
    return steps

  def _valuate_step(self, index: int, label: str,
                    model: Model) -> ValuationResult:
    try:
      return ValuationResult.coerce(self.valuate(model))
    except Exception as e:  # pylint: disable=broad-except
      logger.error('  ✗ [%d] %s: %s', index, label, e)
      raise BridgeStepError(index, label, e) from e


def build_bridge(
    base_model: Model,
    overrides: OverridePairs,
    valuate: Valuator,
    registry: VariableRegistry = DEFAULT_REGISTRY,
    cancel_event: Optional[threading.Event] = None,
) -> list[BridgeStep]:
  """Convenience wrapper around ValuationBridge.build."""
  return ValuationBridge(valuate, registry).build(base_model, overrides,
                                                  cancel_event)


def bridge_to_frame(steps: list[BridgeStep]) -> pd.DataFrame:
  """Bridge steps as a DataFrame (label, impact, cumulative_value)."""
  return pd.DataFrame([s.to_dict() for s in steps],
                      columns=['label', 'impact', 'cumulative_value'])


def main() -> None:
  """CLI entrypoint for valuation bridges."""
  parser = argparse.ArgumentParser(
      description='Valuation bridge (NPV waterfall)',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog=__doc__,
  )
  parser.add_argument('--model',
                      type=Path,
                      help='JSON Model file (default: asset-type template)')
  parser.add_argument('--asset-type',
                      type=str,
                      help='Template for missing fields (solar, wind, hydro)')
  parser.add_argument('--override',
                      action='append',
                      required=True,
                      metavar='NAME=VALUE',
                      help='Override applied in order, e.g. "Capacity=60"')
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

  model = load_model(args.model, args.asset_type)
  valuate = build_valuator(service_config_from_args(args))
  steps = build_bridge(model, parse_override_args(args.override), valuate)
  table = bridge_to_frame(steps)

  print('\n' + '=' * 70)
  print(f"Valuation Bridge: {model['asset']['name']}")
  print('=' * 70)
  print(table.to_string(index=False, float_format=format_currency))
  print('=' * 70)
  print('Impacts are marginal, in the order shown.\n')

  if args.output:
    table.to_csv(args.output, index=False)
    logger.info('Saved to: %s', args.output)


if __name__ == '__main__':
  main()

'''
Single-asset valuation entrypoint.

This module provides the main entry point for valuing one asset. It:
1. Loads a Model (JSON file or asset-type template) and fills defaults
2. Applies optional overrides and a discount rate policy
3. Calls the valuation service
4. Returns ValuationResult with policy diagnostics

Usage:
  from renewval.run import load_model, run_valuation

  model = load_model(Path('assets/sunny_hill.json'))
  result = run_valuation(model)
  print(f"NPV: {format_currency(result.npv)}")
'''

import argparse
from dataclasses import replace
import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

from renewval.domain.model import Model
from renewval.domain.model import with_defaults
from renewval.domain.types import ValuationResult
from renewval.domain.types import format_currency
from renewval.domain.types import format_irr
from renewval.engine.overrides import apply_override
from renewval.engine.overrides import check_toggle_enabled
from renewval.engine.overrides import parse_override_args
from renewval.engine.overrides import prepare_model
from renewval.engine.overrides import resolve_overrides
from renewval.policies.discount import DiscountPolicy
from renewval.policies.discount import FixedRate
from renewval.policies.discount import WaccRate
from renewval.policies.discount import apply_discount_policy
from renewval.service import build_valuator
from renewval.service.config import ServiceConfig
from renewval.variables.templates import template_for

logger = logging.getLogger(__name__)

Valuator = Callable[[Model], Any]


def load_model(path: Optional[Path] = None,
               asset_type: Optional[str] = None) -> Model:
  '''
  Load a Model from JSON, or start from an asset-type template.

  A JSON Model may be sparse: missing leaves come from the template for
  asset_type (or the file's asset.type, else solar).

  Args:
    path: JSON file with a (possibly partial) Model
    asset_type: Template name used for missing leaves

  Returns:
    Complete, normalized Model

  Raises:
    FileNotFoundError: If path does not exist
  '''
  if path is None:
    return prepare_model(template_for(asset_type))

  path = Path(path)
  if not path.exists():
    raise FileNotFoundError(f'Model file not found: {path}')
  with open(path, 'r', encoding='utf-8') as f:
    raw = json.load(f)

  template_type = asset_type or raw.get('asset', {}).get('type')
  return prepare_model(with_defaults(raw, template_for(template_type)))


def run_valuation(
    model: Model,
    valuate: Optional[Valuator] = None,
    config: Optional[ServiceConfig] = None,
    discount_policy: Optional[DiscountPolicy] = None,
) -> ValuationResult:
  '''
  Value a single Model.

  Args:
    model: Base Model (not mutated)
    valuate: Valuation callable (default: HTTP client built from config)
    config: ServiceConfig used when valuate is not given
    discount_policy: Optional policy overriding model.discountRate

  Returns:
    ValuationResult; policy diagnostics are stored in extra['discount']
  '''
  if valuate is None:
    valuate = build_valuator(config)

  prepared = prepare_model(model)
  diag = None
  if discount_policy is not None:
    prepared, discount_result = apply_discount_policy(prepared,
                                                      discount_policy)
    diag = discount_result.diag
    logger.debug('Discount rate from policy: %.2f%%', discount_result.value)

  result = ValuationResult.coerce(valuate(prepared))
  if diag is not None:
    result = replace(result, extra={**result.extra, 'discount': diag})
  return result


def add_service_arguments(parser: argparse.ArgumentParser) -> None:
  '''Add the valuation service flags shared by every CLI.'''
  parser.add_argument('--service-config',
                      type=Path,
                      help='JSON file with ServiceConfig fields')
  parser.add_argument('--base-url',
                      type=str,
                      help='Valuation service root (overrides config)')
  parser.add_argument('--timeout',
                      type=float,
                      help='Request timeout in seconds (overrides config)')
  parser.add_argument('--max-workers',
                      type=int,
                      help='Concurrent valuations (overrides config)')
  parser.add_argument('--no-cache',
                      action='store_true',
                      help='Disable the result cache')


def service_config_from_args(args: argparse.Namespace) -> ServiceConfig:
  '''Build a ServiceConfig from --service-config plus flag overrides.'''
  if args.service_config:
    config = ServiceConfig.from_file(args.service_config)
  else:
    config = ServiceConfig.default()
  if args.base_url:
    config.base_url = args.base_url
  if args.timeout is not None:
    config.timeout_sec = args.timeout
  if args.max_workers is not None:
    config.max_workers = args.max_workers
  if args.no_cache:
    config.cache_results = False
  return config


def main() -> None:
  '''CLI entrypoint.'''
  parser = argparse.ArgumentParser(description='Run DCF valuation of one asset')
  parser.add_argument('--model',
                      type=Path,
                      help='JSON Model file (default: asset-type template)')
  parser.add_argument('--asset-type',
                      type=str,
                      help='Template for missing fields (solar, wind, hydro)')
  parser.add_argument('--override',
                      action='append',
                      default=[],
                      metavar='NAME=VALUE',
                      help='Variable override, e.g. "Discount Rate=9"')
  parser.add_argument(
      '--discount',
      type=str,
      default='model',
      choices=['model', 'fixed', 'wacc'],
      help='Discount rate source (default: model.discountRate)',
  )
  parser.add_argument('--discount-rate',
                      type=float,
                      default=8.5,
                      help='Rate in percent for --discount fixed')
  parser.add_argument('-v',
                      '--verbose',
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
  overrides = resolve_overrides(parse_override_args(args.override))
  for override in overrides:
    check_toggle_enabled(model, override.descriptor, override.value)
    model = apply_override(model, override.descriptor, override.value)

  policy_map = {
      'model': None,
      'fixed': FixedRate(rate=args.discount_rate),
      'wacc': WaccRate(),
  }

  result = run_valuation(
      model,
      config=service_config_from_args(args),
      discount_policy=policy_map[args.discount],
  )

  separator = '=' * 70
  logger.info('\n%s', separator)
  logger.info('DCF Valuation - %s (%s, %s)', model['asset']['name'],
              model['asset']['type'], model['asset']['location'])
  logger.info(separator)

  if overrides:
    logger.info('\nOverrides:')
    for override in overrides:
      logger.info('  %s = %s', override.name, override.value)

  logger.info('\nResults:')
  logger.info('  NPV: %s', format_currency(result.npv))
  logger.info('  IRR: %s', format_irr(result.irr))
  logger.info('  Payback: %.1f years', result.payback_period)
  for key, value in result.extra.get('discount', {}).items():
    logger.info('  %s: %s', key, value)
  logger.info(separator)


if __name__ == '__main__':
  main()

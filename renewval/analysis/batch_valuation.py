'''
Batch valuation for a portfolio of assets imported from CSV.

This module provides tools to:
1. Resolve flat CSV rows (one per asset) into complete Models
2. Value every row, isolating failures per row
3. Export results to CSV and summarize the portfolio

Each row starts from the template for its assetType (solar, wind, hydro;
unknown types fall back to solar). Recognized columns become registry
overrides; unrecognized columns are ignored. A recognized column that is
absent or blank keeps the template's value.

Date columns are resolved before the generic overrides: a *Date column wins
over its *Year column ('2026' -> '2026-01-01'), and the initial capex is
placed in the capex date's year, not the commercial operation year.

Usage (CLI):
  python -m renewval.analysis.batch_valuation \
    --input portfolio.csv \
    --output results/portfolio_valuation.csv \
    --max-workers 4 \
    -v

Usage (Python API):
  from renewval.analysis.batch_valuation import resolve_rows, run_batch

  rows = load_rows(Path('portfolio.csv'))
  results = run_batch(resolve_rows(rows), valuate)
  batch_to_frame(results).to_csv('results.csv', index=False)
'''

import argparse
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
import logging
from pathlib import Path
import threading
import traceback
from typing import Any, Callable, Dict, List, Mapping, Optional

import pandas as pd

from renewval.domain.errors import InvalidValueError
from renewval.domain.model import Model
from renewval.domain.model import year_of
from renewval.domain.paths import get_path
from renewval.domain.paths import set_path
from renewval.domain.types import BatchRowResult
from renewval.domain.types import ValuationResult
from renewval.domain.types import irr_is_computable
from renewval.engine.overrides import Override
from renewval.engine.overrides import apply_override_set
from renewval.engine.overrides import coerce_value
from renewval.engine.overrides import prepare_model
from renewval.run import add_service_arguments
from renewval.run import service_config_from_args
from renewval.service import build_valuator
from renewval.variables.registry import CAPEX_SCHEDULE_PATH
from renewval.variables.registry import DEFAULT_REGISTRY
from renewval.variables.registry import VariableRegistry
from renewval.variables.templates import template_for

logger = logging.getLogger(__name__)

Valuator = Callable[[Model], Any]
BatchRow = Mapping[str, Any]


@dataclass(frozen=True)
class BatchColumn:
  '''
  A recognized CSV column.

  Attributes:
    header: Canonical header in the CSV template
    variable: Registry name the column writes
    default: Documented default, used when the template leaf is blank
    aliases: Other accepted headers
  '''
  header: str
  variable: str
  default: str
  aliases: tuple[str, ...] = ()

  @property
  def headers(self) -> tuple[str, ...]:
    return (self.header,) + self.aliases


@dataclass(frozen=True)
class DateColumn:
  '''A date column with an optional whole-year fallback column.'''
  header: str
  variable: str
  year_header: str
  aliases: tuple[str, ...] = ()


# Generic columns, applied in this order after the dates and capex.
BATCH_COLUMNS: tuple[BatchColumn, ...] = (
    BatchColumn('assetName', 'Asset Name', 'Unnamed Asset', ('name',)),
    BatchColumn('location', 'Location', 'Unknown Location'),
    BatchColumn('capacity', 'Capacity', '50'),
    BatchColumn('capacityYield', 'Capacity Factor', '85',
                ('capacityFactor',)),
    BatchColumn('degradationRate', 'Degradation Rate', '0.5'),
    BatchColumn('availability', 'Availability', '98'),
    BatchColumn('contractedPrice', 'Contracted Price', '65'),
    BatchColumn('contractPercentage', 'Contracted Percentage', '70',
                ('contractedPercentage',)),
    BatchColumn('contractedEscalationRate', 'Contracted Escalation Rate',
                '2.5'),
    BatchColumn('merchantPrice', 'Merchant Price', '45',
                ('electricityPrice',)),
    BatchColumn('merchantEscalationRate', 'Merchant Escalation Rate', '1.5'),
    BatchColumn('regulatoryPrice', 'Regulatory Price', '0'),
    BatchColumn('capacityMarketEnabled', 'Capacity Market Enabled', 'false'),
    BatchColumn('capacityMarketRevenue', 'Capacity Market Revenue', '0'),
    BatchColumn('discountRate', 'Discount Rate', '8.5'),
    BatchColumn('forecastLength', 'Forecast Length', '25',
                ('forecastPeriod',)),
    BatchColumn('terminalValueMethod', 'Terminal Value Method', 'perpetuity'),
    BatchColumn('terminalGrowthRate', 'Terminal Growth Rate', '1.5'),
    BatchColumn('terminalMultiple', 'Terminal Multiple', '10'),
    BatchColumn('receivableDays', 'Receivable Days', '45'),
    BatchColumn('payableDays', 'Payable Days', '30'),
    BatchColumn('inventoryDays', 'Inventory Days', '15'),
    BatchColumn('depreciationMethod', 'Depreciation Method', 'straight_line'),
    BatchColumn('depreciationYears', 'Depreciation Years', '25'),
    BatchColumn('operatingCost', 'O&M Costs', '350000',
                ('operationalCosts',)),
    BatchColumn('costInflationRate', 'Cost Inflation Rate', '2.5'),
    BatchColumn('taxRate', 'Tax Rate', '21', ('corporateTaxRate',)),
    BatchColumn('taxLossCarryForward', 'Tax Loss Carry Forward Enabled',
                'false'),
    BatchColumn('taxLossOpeningBalance', 'Tax Loss Opening Balance', '0'),
    BatchColumn('capexInflationRate', 'Capex Inflation Rate', '1.8'),
    BatchColumn('debtAmount', 'Debt Amount', '50000000'),
    BatchColumn('interestRate', 'Interest Rate', '5.5'),
)

DATE_COLUMNS: tuple[DateColumn, ...] = (
    DateColumn('modelStartDate', 'Model Start Date', 'modelStartYear'),
    DateColumn('valuationDate', 'Valuation Date', 'valuationYear'),
    DateColumn('commercialOperationDate', 'Commercial Operation Date',
               'commercialOperationYear', ('codDate',)),
    DateColumn('capexDate', 'Capex Date', 'capexYear'),
)

ASSET_TYPE_HEADER = 'assetType'
INITIAL_CAPEX = BatchColumn('initialCapex', 'Initial CAPEX', '75000000')


@dataclass
class ResolvedRow:
  '''
  A batch row resolved into a Model.

  Attributes:
    row_index: Position of the row in the input
    identity: Display identity (name, type, location)
    model: Complete Model, or None if resolution failed
    overrides: Overrides applied on top of the template, in order
    error: Resolution error message, if any
  '''
  row_index: int
  identity: Dict[str, str]
  model: Optional[Model] = None
  overrides: List[Override] = field(default_factory=list)
  error: Optional[str] = None


def _normalize_row(row: BatchRow) -> Dict[str, str]:
  '''Lower-case headers and strip cell text; None becomes blank.'''
  normalized = {}
  for key, value in row.items():
    if key is None:
      continue
    normalized[str(key).strip().lower()] = \
        '' if value is None else str(value).strip()
  return normalized


def _lookup(cells: Dict[str, str], headers: tuple[str, ...]) -> str:
  '''First non-blank cell among headers, or blank.'''
  for header in headers:
    value = cells.get(header.lower(), '')
    if value:
      return value
  return ''


class BatchResolver:
  '''
  Resolve flat rows into Models.

  Unlike bridge and sensitivity requests, rows are tolerant: unknown columns
  are ignored and missing columns keep template values. Malformed values in
  recognized columns still raise InvalidValueError.
  '''

  def __init__(self, registry: VariableRegistry = DEFAULT_REGISTRY):
    self.registry = registry

  def identity(self, row: BatchRow, row_index: int) -> Dict[str, str]:
    '''Display identity of a row; blank names become "Asset <n>".'''
    cells = _normalize_row(row)
    return {
        'name': _lookup(cells, ('assetName', 'name')) or
                f'Asset {row_index + 1}',
        'type': _lookup(cells, (ASSET_TYPE_HEADER,)) or 'solar',
        'location': _lookup(cells, ('location',)),
    }

  def resolve_row(self, row: BatchRow, row_index: int) -> ResolvedRow:
    '''
    Resolve one row.

    Raises:
      InvalidValueError: If a recognized cell is malformed
    '''
    cells = _normalize_row(row)
    identity = self.identity(row, row_index)
    template = prepare_model(template_for(identity['type']), self.registry)

    overrides = self._date_overrides(cells)
    capex = self._capex_override(cells)
    if capex is not None:
      overrides.append(capex)
    model = apply_override_set(template, overrides, self.registry)
    # Keyed by the capex date's year; no generic column invalidates it.
    capex_year = year_of(get_path(model, 'model.capexDate'))
    set_path(model, CAPEX_SCHEDULE_PATH,
             {capex_year: get_path(model, 'financial.capex.initial')})

    generic = self._generic_overrides(cells, template)
    if not _lookup(cells, ('assetName', 'name')):
      generic.insert(0, self._override('Asset Name', identity['name']))
    model = apply_override_set(model, generic, self.registry)

    return ResolvedRow(row_index=row_index,
                       identity=identity,
                       model=model,
                       overrides=overrides + generic)

  def _override(self, name: str, raw: Any) -> Override:
    descriptor = self.registry.resolve(name)
    return Override(descriptor, coerce_value(descriptor, raw))

  def _date_overrides(self, cells: Dict[str, str]) -> List[Override]:
    overrides = []
    for column in DATE_COLUMNS:
      value = _lookup(cells, (column.header,) + column.aliases)
      if not value:
        year = _lookup(cells, (column.year_header,))
        if year:
          value = f'{_whole_year(column.year_header, year)}-01-01'
      if value:
        overrides.append(self._override(column.variable, value))
    return overrides

  def _capex_override(self, cells: Dict[str, str]) -> Optional[Override]:
    value = _lookup(cells, INITIAL_CAPEX.headers)
    if not value:
      return None
    return self._override(INITIAL_CAPEX.variable, value)

  def _generic_overrides(self, cells: Dict[str, str],
                         template: Model) -> List[Override]:
    overrides = []
    for column in BATCH_COLUMNS:
      value = _lookup(cells, column.headers)
      if not value:
        path = self.registry.resolve(column.variable).path
        current = get_path(template, path)
        if current is not None and str(current).strip():
          continue
        value = column.default
      overrides.append(self._override(column.variable, value))
    return overrides


def _whole_year(header: str, value: str) -> int:
  try:
    year = float(value)
  except ValueError as e:
    raise InvalidValueError(header, value, 'expected a year') from e
  if not year.is_integer() or not 1900 <= year <= 2200:
    raise InvalidValueError(header, value, 'expected a year')
  return int(year)


def resolve_rows(
    rows: List[BatchRow],
    registry: VariableRegistry = DEFAULT_REGISTRY,
) -> List[ResolvedRow]:
  '''
  Resolve every row, isolating failures.

  A row that cannot be resolved is returned with error set and no Model;
  the other rows are unaffected.
  '''
  resolver = BatchResolver(registry)
  resolved = []
  for index, row in enumerate(rows):
    try:
      resolved.append(resolver.resolve_row(row, index))
    except Exception as e:  # pylint: disable=broad-except
      logger.warning('Row %d could not be resolved: %s', index + 1, e)
      resolved.append(ResolvedRow(row_index=index,
                                  identity=resolver.identity(row, index),
                                  error=str(e)))
  return resolved


def _value_row(row: ResolvedRow, valuate: Valuator,
               verbose: bool) -> BatchRowResult:
  if row.error is not None:
    return BatchRowResult(row.row_index, row.identity, error=row.error)
  try:
    result = ValuationResult.coerce(valuate(row.model))
  except Exception as e:  # pylint: disable=broad-except
    logger.warning('  ✗ %s: %s', row.identity['name'], e)
    if verbose:
      logger.debug('%s', traceback.format_exc())
    return BatchRowResult(row.row_index, row.identity, error=str(e))
  logger.info('  ✓ %s: NPV=%.0f', row.identity['name'], result.npv)
  return BatchRowResult(row.row_index, row.identity, result=result)


def run_batch(
    rows: List[ResolvedRow],
    valuate: Valuator,
    max_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
    verbose: bool = False,
) -> List[BatchRowResult]:
  '''
  Value resolved rows.

  Rows are independent: a failing row records its error and the others
  proceed. Rows may be valued concurrently.

  Args:
    rows: Output of resolve_rows
    valuate: Callable returning ValuationResult (or a response mapping)
    max_workers: Rows valued concurrently (1 = sequential)
    cancel_event: Set to stop starting new rows; only completed rows are
      returned
    verbose: Log tracebacks of failed rows

  Returns:
    One BatchRowResult per completed row, in input order
  '''
  def cancelled() -> bool:
    return cancel_event is not None and cancel_event.is_set()

  def task(row: ResolvedRow) -> Optional[BatchRowResult]:
    if cancelled():
      return None
    return _value_row(row, valuate, verbose)

  logger.info('Valuing %d assets', len(rows))
  results: List[BatchRowResult] = []
  if max_workers <= 1:
    for row in rows:
      outcome = task(row)
      if outcome is None:
        break
      results.append(outcome)
  else:
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
      futures = [executor.submit(task, row) for row in rows]
      for future in as_completed(futures):
        outcome = future.result()
        if outcome is not None:
          results.append(outcome)

  if cancelled():
    logger.warning('Batch cancelled: %d of %d rows completed', len(results),
                   len(rows))
  return sorted(results, key=lambda r: r.row_index)


def batch_to_frame(results: List[BatchRowResult]) -> pd.DataFrame:
  '''Convert batch results to a DataFrame, one row per asset.'''
  columns = ['row_index', 'name', 'type', 'location', 'npv', 'irr',
             'irr_display', 'payback_period', 'dscr_min', 'dscr_average',
             'error']
  df = pd.DataFrame([r.to_dict() for r in results])
  for column in columns:
    if column not in df.columns:
      df[column] = None
  extra = [c for c in df.columns if c not in columns]
  return df[columns + extra]


def load_rows(path: Path) -> List[Dict[str, str]]:
  '''Load batch rows from CSV; every cell is read as text.'''
  if not Path(path).exists():
    raise FileNotFoundError(f'Batch file not found: {path}')
  df = pd.read_csv(path, dtype=str, keep_default_na=False)
  return df.to_dict('records')


def summarize_batch(df: pd.DataFrame) -> Dict[str, Any]:
  '''Log summary statistics for batch results and return them.'''
  total = len(df)
  ok = df[df['error'].isna()] if total else df
  failed = total - len(ok)
  summary: Dict[str, Any] = {'total': total, 'succeeded': len(ok),
                             'failed': failed}

  logger.info('')
  logger.info('=' * 70)
  logger.info('Summary Statistics')
  logger.info('=' * 70)
  logger.info('Total assets: %d', total)
  logger.info('Succeeded: %d', len(ok))
  logger.info('Failed: %d', failed)
  logger.info('')

  if len(ok) > 0:
    npv = ok['npv'].astype(float)
    summary.update({
        'npv_total': npv.sum(),
        'npv_mean': npv.mean(),
        'npv_median': npv.median(),
        'npv_min': npv.min(),
        'npv_max': npv.max(),
    })
    logger.info('NPV:')
    logger.info('  Total:  %.0f', npv.sum())
    logger.info('  Mean:   %.0f', npv.mean())
    logger.info('  Median: %.0f', npv.median())
    logger.info('  Min:    %.0f (%s)', npv.min(),
                ok.loc[npv.idxmin(), 'name'])
    logger.info('  Max:    %.0f (%s)', npv.max(),
                ok.loc[npv.idxmax(), 'name'])
    logger.info('')

    computable = ok['irr'].astype(float).map(irr_is_computable)
    summary['irr_not_computable'] = int((~computable).sum())
    if computable.any():
      irr = ok.loc[computable, 'irr'].astype(float)
      summary['irr_median'] = irr.median()
      logger.info('IRR:')
      logger.info('  Median: %.2f%%', irr.median() * 100)
    logger.info('IRR not computable: %d', summary['irr_not_computable'])

  if failed:
    logger.info('')
    logger.info('Failed rows:')
    for _, row in df[df['error'].notna()].iterrows():
      logger.info('  %s: %s', row['name'], row['error'])

  logger.info('=' * 70)
  return summary


def main() -> None:
  '''CLI entrypoint for batch valuation.'''
  parser = argparse.ArgumentParser(
      description='Batch valuation for a portfolio CSV',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog=__doc__,
  )
  parser.add_argument('--input',
                      type=Path,
                      required=True,
                      help='CSV file, one asset per row')
  parser.add_argument('--output',
                      type=Path,
                      required=True,
                      help='Output CSV file path')
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

  config = service_config_from_args(args)
  rows = load_rows(args.input)
  logger.info('Loaded %d rows from %s', len(rows), args.input)

  resolved = resolve_rows(rows)
  results = run_batch(resolved,
                      build_valuator(config),
                      max_workers=config.max_workers,
                      verbose=args.verbose)
  df = batch_to_frame(results)

  args.output.parent.mkdir(parents=True, exist_ok=True)
  df.to_csv(args.output, index=False)

  logger.info('')
  logger.info('Saved %d results to %s', len(df), args.output)

  summarize_batch(df)


if __name__ == '__main__':
  main()

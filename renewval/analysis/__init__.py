'''
Value attribution workflows.

Note: To avoid RuntimeWarning when using -m flag, import directly:
  from renewval.analysis.bridge import build_bridge
  from renewval.analysis.sensitivity import run_sensitivity
  from renewval.analysis.batch_valuation import run_batch
'''

__all__ = [
    'ValuationBridge',
    'build_bridge',
    'SensitivitySweep',
    'SweepRequest',
    'run_sensitivity',
    'resolve_rows',
    'run_batch',
]

# Direct imports for convenience (may cause RuntimeWarning with -m flag)
from renewval.analysis.batch_valuation import resolve_rows
from renewval.analysis.batch_valuation import run_batch
from renewval.analysis.bridge import ValuationBridge
from renewval.analysis.bridge import build_bridge
from renewval.analysis.sensitivity import SensitivitySweep
from renewval.analysis.sensitivity import SweepRequest
from renewval.analysis.sensitivity import run_sensitivity

"""Domain types, Model defaults and path access."""

from renewval.domain.model import DEFAULT_MODEL
from renewval.domain.model import Model
from renewval.domain.model import default_model
from renewval.domain.model import with_defaults
from renewval.domain.paths import get_path
from renewval.domain.paths import set_path
from renewval.domain.types import BatchRowResult
from renewval.domain.types import BridgeStep
from renewval.domain.types import IRR_NOT_COMPUTABLE
from renewval.domain.types import PolicyOutput
from renewval.domain.types import SensitivityPoint
from renewval.domain.types import ValuationResult

__all__ = [
    'BatchRowResult',
    'BridgeStep',
    'DEFAULT_MODEL',
    'IRR_NOT_COMPUTABLE',
    'Model',
    'PolicyOutput',
    'SensitivityPoint',
    'ValuationResult',
    'default_model',
    'get_path',
    'set_path',
    'with_defaults',
]

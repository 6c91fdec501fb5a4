"""Override resolution and service payload mapping."""

from renewval.engine.overrides import Override
from renewval.engine.overrides import apply_override
from renewval.engine.overrides import apply_override_set
from renewval.engine.overrides import normalize_model
from renewval.engine.overrides import prepare_model
from renewval.engine.overrides import resolve_overrides
from renewval.engine.payload import to_service_payload

__all__ = [
    'Override',
    'apply_override',
    'apply_override_set',
    'normalize_model',
    'prepare_model',
    'resolve_overrides',
    'to_service_payload',
]

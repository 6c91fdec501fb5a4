"""
Result cache for valuate callables.

Bridges, sweeps and batches frequently valuate identical Models (the base
case of every sweep, repeated batch rows). CachingValuator keys results by
the SHA-256 of the canonical service payload, so two Models that map to the
same request share one service call.
"""

from collections.abc import Callable
import copy
import hashlib
import json
import logging
import threading
from typing import Any, Dict

from renewval.domain.model import Model
from renewval.domain.types import ValuationResult
from renewval.engine.payload import to_service_payload

logger = logging.getLogger(__name__)

Valuator = Callable[[Model], Any]


def payload_key(payload: Dict[str, Any]) -> str:
  """SHA-256 hex digest of the canonical JSON form of payload."""
  canonical = json.dumps(payload, sort_keys=True, separators=(',', ':'))
  return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


class CachingValuator:
  """
  Thread-safe memoizing wrapper around a valuate callable.

  Every caller receives its own copy of the result, so mutating one never
  changes the cache. Failures are not cached. Concurrent misses for the same
  key may both call the wrapped valuator; the last result wins.
  """

  def __init__(self, valuate: Valuator):
    self._valuate = valuate
    self._cache: dict[str, ValuationResult] = {}
    self._lock = threading.Lock()
    self.hits = 0
    self.misses = 0

  def __call__(self, model: Model) -> ValuationResult:
    key = payload_key(to_service_payload(model))
    with self._lock:
      cached = self._cache.get(key)
      if cached is not None:
        self.hits += 1
        return copy.deepcopy(cached)
      self.misses += 1

    result = ValuationResult.coerce(self._valuate(model))
    with self._lock:
      self._cache[key] = copy.deepcopy(result)
    return result

  def __len__(self) -> int:
    with self._lock:
      return len(self._cache)

  def clear(self) -> None:
    """Drop every cached result and reset counters."""
    with self._lock:
      logger.debug('Clearing %d cached valuations', len(self._cache))
      self._cache.clear()
      self.hits = 0
      self.misses = 0

"""
HTTP client for the external valuation service.

The client is a valuate callable: Model in, ValuationResult out. It never
retries; every failure (transport, HTTP status, malformed body) surfaces as
ValuationServiceError so workflows can tell "service unavailable" apart from
"bad input" (UnknownVariableError / InvalidValueError).
"""

import logging
from typing import Any, Dict, Optional

import requests

from renewval.domain.errors import ValuationServiceError
from renewval.domain.model import Model
from renewval.domain.types import ValuationResult
from renewval.engine.payload import to_service_payload
from renewval.service.config import ServiceConfig

logger = logging.getLogger(__name__)


class ValuationServiceClient:
  """
  Valuate a Model by POSTing it to the DCF calculation endpoint.

  Usage:
    client = ValuationServiceClient(ServiceConfig.default())
    result = client(model)
  """

  def __init__(
      self,
      config: Optional[ServiceConfig] = None,
      session: Optional[requests.Session] = None,
  ):
    """
    Args:
      config: Service configuration (default: ServiceConfig.default())
      session: HTTP session to reuse (default: new requests.Session)
    """
    self.config = config or ServiceConfig.default()
    self.session = session or requests.Session()

  def calculate(self, payload: Dict[str, Any]) -> ValuationResult:
    """
    Send an already-mapped payload to the service.

    Raises:
      ValuationServiceError: On transport error, HTTP error or bad body
    """
    url = self.config.calculate_url
    try:
      resp = self.session.post(url, json=payload,
                               timeout=self.config.timeout_sec)
    except requests.RequestException as e:
      raise ValuationServiceError(f'Valuation request to {url} failed: '
                                  f'{e}') from e

    status = int(resp.status_code)
    if status >= 400:
      raise ValuationServiceError(
          f'HTTP {status} from {url}: {resp.text[:200]}')

    try:
      body = resp.json()
    except ValueError as e:
      raise ValuationServiceError(
          f'Invalid JSON from {url}: {resp.text[:200]}') from e
    if not isinstance(body, dict):
      raise ValuationServiceError(
          f'Unexpected response from {url}: {type(body).__name__}')

    try:
      result = ValuationResult.from_mapping(body)
    except (KeyError, TypeError, ValueError) as e:
      raise ValuationServiceError(
          f'Malformed valuation response from {url}: {e}') from e
    logger.debug('Valuation: npv=%.2f irr=%s', result.npv, result.irr)
    return result

  def __call__(self, model: Model) -> ValuationResult:
    """Map model to a service payload and valuate it."""
    return self.calculate(to_service_payload(model))

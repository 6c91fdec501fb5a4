import threading

import pytest

from renewval.domain.model import Model
from renewval.domain.model import default_model
from renewval.domain.paths import get_path
from renewval.domain.types import IRR_NOT_COMPUTABLE
from renewval.domain.types import ValuationResult
from renewval.variables.templates import create_template


class StubValuator:
  """
  Deterministic stand-in for the valuation service.

  npv = 1000 + 10 * merchant price - 100 * discount rate + capacity market
  revenue / 1000. IRR is not computable when the merchant price is zero.
  Records every Model it is called with.
  """

  def __init__(self, fail_on_price: float | None = None):
    self.fail_on_price = fail_on_price
    self.calls: list[Model] = []
    self._lock = threading.Lock()

  @property
  def call_count(self) -> int:
    return len(self.calls)

  def __call__(self, model: Model) -> ValuationResult:
    with self._lock:
      self.calls.append(model)
    price = float(get_path(model, 'pricing.merchant.price'))
    if self.fail_on_price is not None and price == self.fail_on_price:
      raise RuntimeError(f'service rejected price {price}')
    rate = float(get_path(model, 'model.discountRate'))
    revenue = float(get_path(model, 'pricing.capacityMarket.revenue'))
    npv = 1000 + 10 * price - 100 * (rate - 8.5) + revenue / 1000
    irr = IRR_NOT_COMPUTABLE if price == 0 else price / 1000
    return ValuationResult(npv=npv, irr=irr)


@pytest.fixture
def base_model() -> Model:
  """Default Model (merchant price 45, discount rate 8.5)."""
  return default_model()


@pytest.fixture
def wind_model() -> Model:
  """Wind template Model."""
  return create_template('wind')


@pytest.fixture
def price_valuator() -> StubValuator:
  """Valuator with npv = 1000 + 10 * price at the default discount rate."""
  return StubValuator()


@pytest.fixture
def failing_valuator() -> StubValuator:
  """Valuator that raises when the merchant price is 55."""
  return StubValuator(fail_on_price=55)

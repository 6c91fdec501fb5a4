import pytest

from renewval.domain.paths import get_path
from renewval.domain.types import PolicyOutput
from renewval.policies.discount import FixedRate
from renewval.policies.discount import WaccRate
from renewval.policies.discount import apply_discount_policy


class TestFixedRate:
  """Tests for FixedRate discount policy."""

  def test_basic_usage(self):
    """Basic discount rate policy usage."""
    policy = FixedRate(rate=7.0)
    result = policy.compute()

    assert isinstance(result, PolicyOutput)
    assert result.value == 7.0
    assert result.diag['discount_method'] == 'fixed'
    assert result.diag['discount_rate'] == 7.0

  def test_default_initialization(self):
    """Default initialization to 8.5%."""
    assert FixedRate().compute().value == 8.5


class TestWaccRate:
  """Tests for WaccRate discount policy."""

  def test_default_components(self):
    """60/40 structure: 0.6*5*0.75 + 0.4*(3 + 1.2*5.5 + 1) = 6.49."""
    result = WaccRate().compute()

    assert result.value == pytest.approx(6.49)
    assert result.diag['discount_method'] == 'wacc'
    assert result.diag['cost_of_equity'] == pytest.approx(10.6)
    assert result.diag['after_tax_cost_of_debt'] == pytest.approx(3.75)

  def test_all_equity(self):
    result = WaccRate(debt_weight=0, equity_weight=100, beta=1.0).compute()
    assert result.value == pytest.approx(9.5)

  def test_rounded_to_two_places(self):
    result = WaccRate(beta=1.234).compute()
    assert result.value == round(result.value, 2)

  def test_negative_weight_rejected(self):
    with pytest.raises(ValueError):
      WaccRate(debt_weight=-10)


class TestApplyDiscountPolicy:
  """Writing a policy rate into a Model."""

  def test_writes_discount_rate(self, base_model):
    updated, output = apply_discount_policy(base_model, WaccRate())

    assert get_path(updated, 'model.discountRate') == '6.49'
    assert output.value == pytest.approx(6.49)
    assert get_path(base_model, 'model.discountRate') == '8.5'

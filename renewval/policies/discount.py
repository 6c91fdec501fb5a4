"""
Discount rate policies.

These policies determine the discount rate written to model.discountRate
before valuation. Rates are in percent units, like every rate in the Model.
"""

from abc import ABC
from abc import abstractmethod

from renewval.domain.model import Model
from renewval.domain.types import PolicyOutput
from renewval.engine.overrides import apply_override
from renewval.variables.registry import DEFAULT_REGISTRY
from renewval.variables.registry import VariableRegistry


class DiscountPolicy(ABC):
  """
  Base class for discount rate policies.

  Subclasses implement compute() to return a discount rate in percent.
  """

  @abstractmethod
  def compute(self) -> PolicyOutput[float]:
    """
    Compute discount rate.

    Returns:
      PolicyOutput with discount rate (percent) and diagnostics
    """


class FixedRate(DiscountPolicy):
  """
  Fixed discount rate.

  Simple policy that returns a constant rate.
  """

  def __init__(self, rate: float = 8.5):
    """
    Initialize fixed rate policy.

    Args:
      rate: Fixed discount rate in percent (default: 8.5%)
    """
    self.rate = rate

  def compute(self) -> PolicyOutput[float]:
    """Return fixed discount rate."""
    return PolicyOutput(
      value=self.rate,
      diag={
        'discount_method': 'fixed',
        'discount_rate': self.rate,
      }
    )


class WaccRate(DiscountPolicy):
  """
  Weighted average cost of capital.

  Cost of equity follows CAPM with a country risk premium:
    ke = risk_free_rate + beta * market_risk_premium + country_risk_premium
  and debt is taken after tax:
    wacc = dw * kd * (1 - t) + ew * ke

  All inputs are in percent. The result is rounded to 2 decimal places.
  """

  def __init__(
      self,
      debt_weight: float = 60.0,
      equity_weight: float = 40.0,
      cost_of_debt: float = 5.0,
      risk_free_rate: float = 3.0,
      beta: float = 1.2,
      market_risk_premium: float = 5.5,
      country_risk_premium: float = 1.0,
      tax_rate: float = 25.0,
  ):
    """
    Initialize WACC policy.

    Args:
      debt_weight: Share of debt in the capital structure (%)
      equity_weight: Share of equity in the capital structure (%)
      cost_of_debt: Pre-tax cost of debt (%)
      risk_free_rate: Risk-free rate (%)
      beta: Equity beta
      market_risk_premium: Market risk premium (%)
      country_risk_premium: Country risk premium (%)
      tax_rate: Tax rate used for the debt shield (%)

    Raises:
      ValueError: If the weights are negative
    """
    if debt_weight < 0 or equity_weight < 0:
      raise ValueError('Capital structure weights must be non-negative')
    self.debt_weight = debt_weight
    self.equity_weight = equity_weight
    self.cost_of_debt = cost_of_debt
    self.risk_free_rate = risk_free_rate
    self.beta = beta
    self.market_risk_premium = market_risk_premium
    self.country_risk_premium = country_risk_premium
    self.tax_rate = tax_rate

  def compute(self) -> PolicyOutput[float]:
    """Compute WACC from the capital structure."""
    cost_of_equity = (self.risk_free_rate +
                      self.beta * self.market_risk_premium +
                      self.country_risk_premium)
    after_tax_debt = self.cost_of_debt * (1 - self.tax_rate / 100)
    wacc = (self.debt_weight / 100 * after_tax_debt +
            self.equity_weight / 100 * cost_of_equity)
    wacc = round(wacc, 2)

    return PolicyOutput(
      value=wacc,
      diag={
        'discount_method': 'wacc',
        'discount_rate': wacc,
        'cost_of_equity': cost_of_equity,
        'after_tax_cost_of_debt': after_tax_debt,
        'debt_weight': self.debt_weight,
        'equity_weight': self.equity_weight,
      }
    )


def apply_discount_policy(
    model: Model,
    policy: DiscountPolicy,
    registry: VariableRegistry = DEFAULT_REGISTRY,
) -> tuple[Model, PolicyOutput[float]]:
  """
  Write a policy's discount rate into a copy of model.

  Returns:
    Tuple of (new Model, policy output)
  """
  output = policy.compute()
  updated = apply_override(model, registry.resolve('Discount Rate'),
                           output.value, registry)
  return updated, output

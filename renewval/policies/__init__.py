"""
Valuation policies for estimating model inputs.

Each policy estimates one input of the valuation Model and returns both a
value and diagnostic information.

To add a new policy:
1. Create a new class inheriting from the appropriate base (e.g.,
   DiscountPolicy)
2. Implement the compute() method returning PolicyOutput

Example:
  class RegulatedRate(DiscountPolicy):
    def compute(self) -> PolicyOutput[float]:
      return PolicyOutput(value=6.0, diag={'discount_method': 'regulated'})
"""

from renewval.policies.discount import DiscountPolicy
from renewval.policies.discount import FixedRate
from renewval.policies.discount import WaccRate
from renewval.policies.discount import apply_discount_policy

__all__ = [
  'DiscountPolicy', 'FixedRate', 'WaccRate',
  'apply_discount_policy',
]

import pytest

from renewval.domain.errors import UnknownVariableError
from renewval.variables.registry import BOOL
from renewval.variables.registry import CAPACITY_MARKET
from renewval.variables.registry import DEFAULT_REGISTRY
from renewval.variables.registry import Range
from renewval.variables.registry import TAX_LOSS_CARRY_FORWARD
from renewval.variables.registry import VariableDescriptor
from renewval.variables.registry import VariableRegistry
from renewval.variables.registry import list_variables


class TestResolve:
  """Tests for name resolution."""

  def test_known_name(self):
    """Resolves a registered name to its path."""
    descriptor = DEFAULT_REGISTRY.resolve('Electricity Price')
    assert descriptor.path == 'pricing.merchant.price'
    assert descriptor.default_range == Range(40, 80, 5)

  def test_unknown_name_raises(self):
    """Unknown names are a configuration error, never None."""
    with pytest.raises(UnknownVariableError, match='Nonexistent Variable'):
      DEFAULT_REGISTRY.resolve('Nonexistent Variable')

  def test_unknown_name_is_key_error(self):
    """UnknownVariableError is catchable as KeyError."""
    with pytest.raises(KeyError):
      DEFAULT_REGISTRY.resolve('Nope')

  def test_get_returns_none(self):
    """get() is the tolerant lookup."""
    assert DEFAULT_REGISTRY.get('Nope') is None

  def test_error_lists_available(self):
    try:
      DEFAULT_REGISTRY.resolve('Nope')
    except UnknownVariableError as e:
      assert 'Discount Rate' in e.available


class TestNormalizationRules:
  """The load-bearing cross-field rules are declared in the table."""

  def test_tax_rate_synced(self):
    for name in ('Corporate Tax Rate', 'Tax Rate'):
      descriptor = DEFAULT_REGISTRY.resolve(name)
      assert descriptor.path == 'tax.corporateRate'
      assert descriptor.sync_paths == ('financial.taxRate',)

  def test_toggles(self):
    cm = DEFAULT_REGISTRY.resolve('Capacity Market Enabled')
    tl = DEFAULT_REGISTRY.resolve('Tax Loss Carry Forward Enabled')
    assert cm.kind == BOOL and cm.toggle is CAPACITY_MARKET
    assert tl.kind == BOOL and tl.toggle is TAX_LOSS_CARRY_FORWARD
    assert DEFAULT_REGISTRY.toggle_rules == [CAPACITY_MARKET,
                                            TAX_LOSS_CARRY_FORWARD]

  def test_sync_descriptors_unique_per_path(self):
    paths = [d.path for d in DEFAULT_REGISTRY.sync_descriptors]
    assert sorted(paths) == ['macro.costInflation', 'tax.corporateRate']

  def test_capex_invalidates_schedule(self):
    for name in ('Initial CAPEX', 'Capex Date'):
      descriptor = DEFAULT_REGISTRY.resolve(name)
      assert descriptor.invalidates == ('financial.capex.byYear',)


class TestValidation:
  """Registry construction validates the table."""

  def test_duplicate_name(self):
    with pytest.raises(ValueError, match='Duplicate'):
      VariableRegistry((
          VariableDescriptor('A', 'model.discountRate'),
          VariableDescriptor('A', 'pricing.merchant.price'),
      ))

  def test_unknown_path(self):
    with pytest.raises(ValueError, match='unknown path'):
      VariableRegistry((VariableDescriptor('A', 'model.nope'),))

  def test_unknown_sync_path(self):
    with pytest.raises(ValueError, match='financial.nope'):
      VariableRegistry((VariableDescriptor(
          'A', 'tax.corporateRate', sync_paths=('financial.nope',)),))

  def test_choice_without_choices(self):
    with pytest.raises(ValueError, match='no choices'):
      VariableRegistry((VariableDescriptor('A', 'costs.method',
                                           kind='choice'),))

  def test_alternate_registry(self):
    """A small alternate registry is a first-class citizen."""
    registry = VariableRegistry((VariableDescriptor('Rate',
                                                    'model.discountRate'),))
    assert len(registry) == 1
    assert 'Rate' in registry
    assert 'Discount Rate' not in registry


class TestListing:
  """Tests for listing helpers."""

  def test_list_variables_grouped(self):
    grouped = list_variables()
    assert 'Discount Rate' in grouped['model']
    assert 'Interest Rate' in grouped['debt']

  def test_payload_toggle(self):
    flag = DEFAULT_REGISTRY.payload_toggle('pricing.capacityMarket.revenue')
    assert flag.name == 'Capacity Market Enabled'
    flag = DEFAULT_REGISTRY.payload_toggle(
        'tax.carryForwardLosses.openingBalance')
    assert flag.name == 'Tax Loss Carry Forward Enabled'

  def test_payload_toggle_none(self):
    assert DEFAULT_REGISTRY.payload_toggle('model.discountRate') is None
    assert DEFAULT_REGISTRY.payload_toggle(
        'pricing.capacityMarket.enabled') is None

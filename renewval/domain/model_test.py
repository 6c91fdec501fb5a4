import pytest

from renewval.domain.model import DEFAULT_MODEL
from renewval.domain.model import default_model
from renewval.domain.model import derive_end_date
from renewval.domain.model import with_defaults
from renewval.domain.model import year_of
from renewval.domain.paths import get_path
from renewval.domain.paths import iter_leaf_paths


class TestDefaults:
  """Tests for default_model and with_defaults."""

  def test_default_model_is_copy(self):
    """Mutating a default model never leaks into DEFAULT_MODEL."""
    model = default_model()
    model['pricing']['merchant']['price'] = '1'
    assert DEFAULT_MODEL['pricing']['merchant']['price'] == '45'

  def test_every_leaf_defined(self):
    """No default leaf is None or blank, except free-text description."""
    for path in iter_leaf_paths(DEFAULT_MODEL):
      value = get_path(DEFAULT_MODEL, path)
      assert value is not None, path
      if path not in ('asset.description', 'financial.capex.byYear'):
        assert value != '', path

  def test_fills_missing_sections(self):
    """A sparse model gains every default section."""
    model = with_defaults({'pricing': {'merchant': {'price': '55'}}})
    assert model['pricing']['merchant']['price'] == '55'
    assert model['pricing']['contracted']['price'] == '65'
    assert model['model']['discountRate'] == '8.5'

  def test_fills_blank_leaves(self):
    """Blank strings are treated as missing."""
    model = with_defaults({'model': {'discountRate': '  '}})
    assert model['model']['discountRate'] == '8.5'

  def test_keeps_false_toggle(self):
    """False is a value, not a blank."""
    model = with_defaults({'pricing': {'capacityMarket': {'enabled': True}}})
    assert model['pricing']['capacityMarket']['enabled'] is True

  def test_atomic_capex_schedule(self):
    """The capex schedule is kept as given, not merged."""
    model = with_defaults(
        {'financial': {'capex': {'byYear': {'2027': '60000000'}}}})
    assert model['financial']['capex']['byYear'] == {'2027': '60000000'}

  def test_input_not_mutated(self):
    """with_defaults returns a new model."""
    sparse = {'asset': {'name': 'A'}}
    with_defaults(sparse)
    assert sparse == {'asset': {'name': 'A'}}


class TestDates:
  """Tests for date helpers."""

  def test_derive_end_date(self):
    assert derive_end_date('2023-01-01', '25') == '2048-01-01'

  def test_derive_end_date_decimal_string(self):
    assert derive_end_date('2024-06-30', '10.0') == '2034-06-30'

  def test_derive_end_date_invalid(self):
    with pytest.raises(ValueError):
      derive_end_date('2024-01-01', 'ten')

  def test_year_of(self):
    assert year_of('2027-03-15') == '2027'

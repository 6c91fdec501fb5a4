import pytest

from renewval.domain.errors import InvalidValueError
from renewval.domain.errors import UnknownVariableError
from renewval.domain.model import copy_model
from renewval.domain.paths import get_path
from renewval.engine.overrides import apply_override
from renewval.engine.overrides import apply_override_set
from renewval.engine.overrides import check_toggle_enabled
from renewval.engine.overrides import coerce_value
from renewval.engine.overrides import format_number
from renewval.engine.overrides import parse_override_args
from renewval.engine.overrides import prepare_model
from renewval.engine.overrides import resolve_overrides
from renewval.variables.registry import DEFAULT_REGISTRY

resolve = DEFAULT_REGISTRY.resolve


class TestCoerceValue:
  """Tests for value coercion by variable kind."""

  @pytest.mark.parametrize('raw,expected', [
      (55, '55'),
      (55.0, '55'),
      ('7.50', '7.5'),
      (' 8.25 ', '8.25'),
      (0.1 + 0.2, '0.30000000000000004'),
      (1e-11, '1e-11'),
      (45.123456789012, '45.123456789012'),
      (-0.0, '0'),
  ])
  def test_number(self, raw, expected):
    assert coerce_value(resolve('Discount Rate'), raw) == expected

  @pytest.mark.parametrize('raw', ['abc', '', None, float('nan'),
                                   float('inf'), True])
  def test_number_rejected(self, raw):
    with pytest.raises(InvalidValueError):
      coerce_value(resolve('Discount Rate'), raw)

  def test_integer_rejects_fraction(self):
    with pytest.raises(InvalidValueError, match='whole number'):
      coerce_value(resolve('Forecast Length'), '20.5')
    assert coerce_value(resolve('Forecast Length'), '20.0') == '20'

  @pytest.mark.parametrize('raw,expected', [
      (True, True), ('true', True), ('Yes', True), ('0', False),
      ('false', False),
  ])
  def test_bool(self, raw, expected):
    assert coerce_value(resolve('Capacity Market Enabled'), raw) is expected

  def test_bool_rejected(self):
    with pytest.raises(InvalidValueError):
      coerce_value(resolve('Capacity Market Enabled'), 'maybe')

  @pytest.mark.parametrize('raw,expected', [
      ('straight_line', 'straightLine'),
      ('declining_balance', 'decliningBalance'),
      ('straightLine', 'straightLine'),
  ])
  def test_choice(self, raw, expected):
    assert coerce_value(resolve('Depreciation Method'), raw) == expected

  def test_choice_snake_case(self):
    assert coerce_value(resolve('Cost Method'), 'per_mw') == 'perMW'
    assert coerce_value(resolve('Terminal Value Method'),
                        'exit_multiple') == 'exitMultiple'

  def test_choice_rejected(self):
    with pytest.raises(InvalidValueError, match='expected one of'):
      coerce_value(resolve('Depreciation Method'), 'sum_of_digits')

  def test_date(self):
    assert coerce_value(resolve('Capex Date'), '2025-06-30') == '2025-06-30'
    assert coerce_value(resolve('Capex Date'),
                        '2025-06-30T00:00:00') == '2025-06-30'

  @pytest.mark.parametrize('raw', ['not a date', '', 2025])
  def test_date_rejected(self, raw):
    with pytest.raises(InvalidValueError):
      coerce_value(resolve('Capex Date'), raw)

  def test_text(self):
    assert coerce_value(resolve('Asset Name'), '  Sunny Hill ') == 'Sunny Hill'

  def test_format_number(self):
    assert format_number(75000000.0) == '75000000'
    assert format_number(2.125) == '2.125'


class TestApplyOverride:
  """Tests for single overrides."""

  def test_writes_primary_path(self, base_model):
    result = apply_override(base_model, resolve('Electricity Price'), 55)
    assert get_path(result, 'pricing.merchant.price') == '55'

  def test_purity(self, base_model):
    """The input Model is never mutated."""
    snapshot = copy_model(base_model)
    apply_override(base_model, resolve('Electricity Price'), 55)
    apply_override(base_model, resolve('Capacity Market Enabled'), True)
    apply_override(base_model, resolve('Initial CAPEX'), 1)
    assert base_model == snapshot

  def test_no_shared_structure(self, base_model):
    result = apply_override(base_model, resolve('Electricity Price'), 55)
    result['pricing']['contracted']['price'] = '999'
    assert base_model['pricing']['contracted']['price'] == '65'

  @pytest.mark.parametrize('name', ['Corporate Tax Rate', 'Tax Rate'])
  def test_tax_sync(self, base_model, name):
    """Corporate and financial tax rates always match."""
    result = apply_override(base_model, resolve(name), '25')
    assert get_path(result, 'tax.corporateRate') == '25'
    assert get_path(result, 'financial.taxRate') == '25'

  def test_cost_inflation_sync(self, base_model):
    result = apply_override(base_model, resolve('Cost Inflation Rate'), 3)
    assert get_path(result, 'macro.costInflation') == '3'
    assert get_path(result, 'costs.costEscalation') == '3'

  def test_sync_survives_unrelated_override(self, base_model):
    base_model['financial']['taxRate'] = '30'
    result = apply_override(base_model, resolve('Electricity Price'), 50)
    assert get_path(result, 'financial.taxRate') == '21'

  def test_end_date_derived(self, base_model):
    result = apply_override(base_model, resolve('Forecast Length'), 30)
    assert get_path(result, 'model.endDate') == '2053-01-01'

  def test_invalid_value(self, base_model):
    with pytest.raises(InvalidValueError):
      apply_override(base_model, resolve('Electricity Price'), 'high')

  def test_tiny_value_not_rounded_to_zero(self, base_model):
    result = apply_override(base_model, resolve('Degradation Rate'), 1e-11)
    assert get_path(result, 'production.bottomUp.degradationRate') == '1e-11'


class TestToggleRules:
  """Enable/disable normalization of optional streams."""

  def test_enable_from_zero_uses_default(self, base_model):
    result = apply_override(base_model, resolve('Capacity Market Enabled'),
                            True)
    assert get_path(result, 'pricing.capacityMarket.enabled') is True
    assert get_path(result, 'pricing.capacityMarket.revenue') == '100000'

  def test_enable_keeps_nonzero_value(self, base_model):
    base_model['pricing']['capacityMarket']['revenue'] = '250000'
    result = apply_override(base_model, resolve('Capacity Market Enabled'),
                            True)
    assert get_path(result, 'pricing.capacityMarket.revenue') == '250000'

  def test_disable_forces_zero(self, base_model):
    model = apply_override(base_model, resolve('Capacity Market Enabled'),
                           True)
    model = apply_override(model, resolve('Capacity Market Revenue'), 250000)
    assert get_path(model, 'pricing.capacityMarket.revenue') == '250000'
    model = apply_override(model, resolve('Capacity Market Enabled'), False)
    assert get_path(model, 'pricing.capacityMarket.revenue') == '0'

  def test_payload_zero_while_disabled(self, base_model):
    result = apply_override(base_model, resolve('Capacity Market Revenue'),
                            50000)
    assert get_path(result, 'pricing.capacityMarket.revenue') == '0'

  def test_tax_loss_toggle(self, base_model):
    model = apply_override(base_model,
                           resolve('Tax Loss Carry Forward Enabled'), 'true')
    assert get_path(model,
                    'tax.carryForwardLosses.openingBalance') == '500000'
    model = apply_override(model, resolve('Tax Loss Carry Forward Enabled'),
                           'false')
    assert get_path(model, 'tax.carryForwardLosses.openingBalance') == '0'

  def test_enable_disable_sends_default_then_zero(self, base_model,
                                                  price_valuator):
    """Revenue reaches the valuator as the default, then exactly zero."""
    enabled = apply_override(base_model, resolve('Capacity Market Enabled'),
                             True)
    enabled = apply_override(enabled, resolve('Capacity Market Revenue'),
                             300000)
    disabled = apply_override(enabled, resolve('Capacity Market Enabled'),
                              False)
    price_valuator(apply_override(base_model,
                                  resolve('Capacity Market Enabled'), True))
    price_valuator(disabled)
    sent = [get_path(m, 'pricing.capacityMarket.revenue')
            for m in price_valuator.calls]
    assert sent == ['100000', '0']


class TestCheckToggleEnabled:
  """Writes to a disabled stream's payload are rejected, not dropped."""

  @pytest.mark.parametrize('name', ['Capacity Market Revenue',
                                    'Tax Loss Opening Balance'])
  def test_disabled_flag_rejected(self, base_model, name):
    with pytest.raises(InvalidValueError, match='Enabled'):
      check_toggle_enabled(prepare_model(base_model), resolve(name), 200000)

  def test_enabled_flag_accepted(self, base_model):
    model = apply_override(base_model, resolve('Capacity Market Enabled'),
                           True)
    check_toggle_enabled(model, resolve('Capacity Market Revenue'), 200000)

  def test_unrelated_variable_accepted(self, base_model):
    check_toggle_enabled(base_model, resolve('Electricity Price'), 55)
    check_toggle_enabled(base_model, resolve('Capacity Market Enabled'), True)


class TestCapexSchedule:
  """Capex changes invalidate an explicit schedule."""

  def test_initial_capex_clears_schedule(self, base_model):
    base_model['financial']['capex']['byYear'] = {'2023': '75000000'}
    result = apply_override(base_model, resolve('Initial CAPEX'), 80000000)
    assert get_path(result, 'financial.capex.byYear') == {}

  def test_capex_date_clears_schedule(self, base_model):
    base_model['financial']['capex']['byYear'] = {'2023': '75000000'}
    result = apply_override(base_model, resolve('Capex Date'), '2024-03-01')
    assert get_path(result, 'financial.capex.byYear') == {}


class TestOverrideSets:
  """Tests for resolving and folding override sets."""

  def test_resolve_pairs(self):
    overrides = resolve_overrides([('Electricity Price', 55),
                                   ('Discount Rate', '9')])
    assert [o.name for o in overrides] == ['Electricity Price',
                                           'Discount Rate']
    assert [o.value for o in overrides] == ['55', '9']

  def test_resolve_mapping(self):
    overrides = resolve_overrides({'Capacity': 60})
    assert overrides[0].descriptor.path == 'production.bottomUp.capacity'

  def test_unknown_name_fails_fast(self):
    with pytest.raises(UnknownVariableError):
      resolve_overrides([('Electricity Price', 55),
                         ('Nonexistent Variable', 1)])

  def test_invalid_value_fails_fast(self):
    with pytest.raises(InvalidValueError):
      resolve_overrides([('Electricity Price', 'abc')])

  def test_fold_in_order(self, base_model):
    overrides = resolve_overrides([('Electricity Price', 55),
                                   ('Merchant Price', 60)])
    result = apply_override_set(base_model, overrides)
    assert get_path(result, 'pricing.merchant.price') == '60'
    assert get_path(base_model, 'pricing.merchant.price') == '45'

  def test_empty_set_returns_copy(self, base_model):
    result = apply_override_set(base_model, [])
    assert result == base_model
    assert result is not base_model

  def test_parse_override_args(self):
    assert parse_override_args(['Electricity Price=55']) == [
        ('Electricity Price', '55')]
    with pytest.raises(ValueError):
      parse_override_args(['Electricity Price'])


class TestPrepareModel:
  """Tests for default filling and normalization."""

  def test_sparse_model(self):
    model = prepare_model({'pricing': {'merchant': {'price': '50'}},
                           'tax': {'corporateRate': '30'}})
    assert get_path(model, 'pricing.merchant.price') == '50'
    assert get_path(model, 'financial.taxRate') == '30'
    assert get_path(model, 'debt.amount') == '50000000'

  def test_enabled_flag_as_string(self):
    model = prepare_model({'pricing': {'capacityMarket': {
        'enabled': 'true', 'revenue': '80000'}}})
    assert get_path(model, 'pricing.capacityMarket.enabled') is True
    assert get_path(model, 'pricing.capacityMarket.revenue') == '80000'

  def test_disabled_payload_zeroed(self):
    model = prepare_model({'tax': {'carryForwardLosses': {
        'enabled': False, 'openingBalance': '900000'}}})
    assert get_path(model, 'tax.carryForwardLosses.openingBalance') == '0'

  def test_bad_start_date_keeps_end_date(self):
    model = prepare_model({'model': {'startDate': 'soon'}})
    assert get_path(model, 'model.endDate') == '2048-01-01'

'''
Value attribution for renewable-energy asset valuations.

This package explains how a valuation changes under input assumptions. An
external DCF service produces NPV and IRR for a Model; renewval builds the
Models, calls the service and attributes the differences:
- Valuation bridge: cumulative waterfall from a base NPV to a final NPV
- Sensitivity: one-at-a-time sweeps of registered variables
- Batch: portfolio valuation from a flat CSV, one asset per row

Usage:
  from renewval.run import load_model
  from renewval.service import build_valuator
  from renewval.analysis.bridge import build_bridge

  model = load_model(asset_type='wind')
  steps = build_bridge(model, [('Electricity Price', 55)], build_valuator())
'''

'''
Error types raised by the attribution workflows.

Callers can tell "bad input" (UnknownVariableError, InvalidValueError) apart
from "external service unavailable" (ValuationServiceError). Step errors carry
the index and label of the failing step.
'''

from typing import Any, Optional


class ValuationWorkflowError(Exception):
  '''Base class for all errors raised by renewval.'''


class UnknownVariableError(ValuationWorkflowError, KeyError):
  '''A variable name has no descriptor in the registry.'''

  def __init__(self, name: str, available: Optional[list[str]] = None):
    self.name = name
    self.available = available or []
    message = f"Unknown variable: '{name}'"
    if self.available:
      message += f'. Available: {self.available}'
    super().__init__(message)

  def __str__(self) -> str:
    # KeyError quotes its argument; keep the plain message
    return str(self.args[0])


class InvalidValueError(ValuationWorkflowError, ValueError):
  '''An override value is not well-formed for its variable.'''

  def __init__(self, name: str, value: Any, reason: str):
    self.name = name
    self.value = value
    self.reason = reason
    super().__init__(f'Invalid value for {name!r}: {value!r} ({reason})')


class ValuationServiceError(ValuationWorkflowError):
  '''The external valuation call failed, timed out or returned garbage.'''


class BridgeStepError(ValuationWorkflowError):
  '''
  A valuation failed while building a bridge.

  Attributes:
    step_index: Position of the failing step (0 = base valuation)
    label: Step label ("Base Value" or the variable name)
  '''

  def __init__(self, step_index: int, label: str, cause: Exception):
    self.step_index = step_index
    self.label = label
    self.cause = cause
    super().__init__(
        f'Bridge step {step_index} ({label}) failed: {cause}')


class SensitivityPointError(ValuationWorkflowError):
  '''
  A valuation failed during a sensitivity sweep.

  Attributes:
    variable: Name of the swept variable
    point_index: Position of the failing value within the sweep
    value: The swept value being valued
  '''

  def __init__(self, variable: str, point_index: int, value: float,
               cause: Exception):
    self.variable = variable
    self.point_index = point_index
    self.value = value
    self.cause = cause
    super().__init__(f'Sensitivity point {point_index} of {variable!r} '
                     f'(value={value}) failed: {cause}')


class WorkflowCancelled(ValuationWorkflowError):
  '''Cancellation was requested before the workflow could complete.'''

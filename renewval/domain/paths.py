"""
Dot-delimited path access into nested Model dictionaries.

  get_path(model, 'pricing.merchant.price')  -> '45'
  set_path(model, 'pricing.merchant.price', '55')

get_path never raises on a missing path. set_path mutates in place and
creates intermediate dictionaries as needed; callers copy first when they
need the original left untouched.
"""

from collections.abc import MutableMapping
from typing import Any


def split_path(path: str) -> list[str]:
  """Split a dot path into segments, rejecting empty segments."""
  parts = path.split('.')
  if not path or any(not p for p in parts):
    raise ValueError(f'Invalid path: {path!r}')
  return parts


def get_path(model: Any, path: str) -> Any:
  """
  Return the value stored at path, or None if any segment is absent.

  Args:
    model: Nested mapping (typically a Model dict)
    path: Dot-delimited path, e.g. 'tax.carryForwardLosses.enabled'

  Returns:
    The leaf (or subtree) at path, or None
  """
  current = model
  for part in path.split('.'):
    if not isinstance(current, MutableMapping) or part not in current:
      return None
    current = current[part]
  return current


def set_path(model: MutableMapping, path: str, value: Any) -> MutableMapping:
  """
  Assign value at path, creating intermediate dictionaries.

  A non-mapping intermediate value is replaced by a dictionary.

  Args:
    model: Nested mapping to mutate in place
    path: Dot-delimited path
    value: Value to store at the leaf

  Returns:
    The same model, for chaining
  """
  parts = split_path(path)
  current = model
  for part in parts[:-1]:
    child = current.get(part)
    if not isinstance(child, MutableMapping):
      child = {}
      current[part] = child
    current = child
  current[parts[-1]] = value
  return model


def has_path(model: Any, path: str) -> bool:
  """True if every segment of path exists in model."""
  current = model
  for part in path.split('.'):
    if not isinstance(current, MutableMapping) or part not in current:
      return False
    current = current[part]
  return True


def iter_leaf_paths(model: Any, prefix: str = '') -> list[str]:
  """
  List the dot paths of every leaf in a nested mapping.

  Mapping-valued leaves that are empty (e.g. an empty capex schedule) are
  reported as leaves themselves.
  """
  paths: list[str] = []
  for key, value in model.items():
    path = f'{prefix}.{key}' if prefix else str(key)
    if isinstance(value, MutableMapping) and value:
      paths.extend(iter_leaf_paths(value, path))
    else:
      paths.append(path)
  return paths

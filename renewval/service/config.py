"""
Valuation service configuration.

ServiceConfig is a serializable (JSON-friendly) configuration class that
specifies where the valuation service lives and how the workflows call it.
"""

from dataclasses import asdict
from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any


@dataclass
class ServiceConfig:
  """
  Configuration for calls to the valuation service.

  Attributes:
    base_url: Service root, e.g. 'http://localhost:5000'
    calculate_path: Path of the DCF calculation endpoint
    timeout_sec: Per-request timeout in seconds
    max_workers: Concurrent valuations for sweeps and batches (1 = sequential)
    cache_results: Memoize results by request payload
  """
  base_url: str = 'http://localhost:5000'
  calculate_path: str = '/api/DCF/calculate'
  timeout_sec: float = 30.0
  max_workers: int = 1
  cache_results: bool = True

  @classmethod
  def default(cls) -> 'ServiceConfig':
    """Local service, 30 s timeout, sequential, cached."""
    return cls()

  @property
  def calculate_url(self) -> str:
    return self.base_url.rstrip('/') + '/' + self.calculate_path.lstrip('/')

  def to_dict(self) -> dict[str, Any]:
    """Convert to dictionary."""
    return asdict(self)

  def to_json(self) -> str:
    """Serialize to JSON string."""
    return json.dumps(self.to_dict(), indent=2)

  @classmethod
  def from_dict(cls, data: dict[str, Any]) -> 'ServiceConfig':
    """Create from dictionary."""
    return cls(**data)

  @classmethod
  def from_json(cls, json_str: str) -> 'ServiceConfig':
    """Create from JSON string."""
    return cls.from_dict(json.loads(json_str))

  @classmethod
  def from_file(cls, path: Path) -> 'ServiceConfig':
    """Load from a JSON file."""
    return cls.from_json(Path(path).read_text(encoding='utf-8'))

"""
Encrypted state synchronization for the confidential health-metrics ledger.

`HealthAnalyzer` is the entry point; the components it wires are importable
individually for callers that manage their own state record.
"""

from .config import AnalyzerConfig, DeploymentRegistry
from .core import HealthAnalyzer
from .outcome import Outcome

__all__ = [
    "AnalyzerConfig",
    "DeploymentRegistry",
    "HealthAnalyzer",
    "Outcome",
]

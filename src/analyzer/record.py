from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from state.models import ClearValue, ScoreHandles, TimeSeriesHandles


logger = logging.getLogger("analyzer.state")


@dataclass
class AnalyzerState:
    """
    Session state owned by the client core.

    Each slice is written only by its owning component, after a staleness
    check: handles by the synchronizer / aggregate trigger, clear values by
    the decryption orchestrator. `message` is the latest human-readable status.
    """

    score_handles: Optional[ScoreHandles] = None
    time_series_handles: Optional[TimeSeriesHandles] = None
    clear_scores: Dict[str, ClearValue] = field(default_factory=dict)
    clear_time_series: Dict[str, ClearValue] = field(default_factory=dict)
    message: str = ""

    def report(self, message: str, *, level: int = logging.INFO) -> None:
        self.message = message
        logger.log(level, message)

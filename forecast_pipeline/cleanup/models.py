"""
Data models for leftover resource cleanup.
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class FoundResource:
    """A Forecast resource found by its run tags."""
    resource_type: str  # "dataset", "dataset-import-job", "dataset-group", "predictor", "forecast", "forecast-export-job"
    arn: str
    tags: Dict[str, str]
    reason: Optional[str] = None  # Why we think it belongs to this run

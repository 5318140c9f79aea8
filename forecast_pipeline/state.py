"""
Local run directories.

Each run gets ``<home>/<run_id>/`` holding its ``logs.ndjson`` event trail.
The home defaults to ``.forecast_pipeline`` in the working directory and can
be moved with ``FORECAST_PIPELINE_HOME``. Only well-formed run IDs map to a
directory, which keeps a user-supplied ID from escaping the home.
"""

import os
from pathlib import Path
from typing import List

from .ids import is_valid_run_id

HOME_ENV = "FORECAST_PIPELINE_HOME"
DEFAULT_HOME = ".forecast_pipeline"


def get_home() -> Path:
    return Path(os.environ.get(HOME_ENV, DEFAULT_HOME)).resolve()


def get_run_dir(run_id: str) -> Path:
    """
    Map a run ID to its directory. The directory may not exist yet.

    Raises:
        ValueError: If run ID is malformed
    """
    if not is_valid_run_id(run_id):
        raise ValueError(f"Invalid run ID: {run_id}")
    return get_home() / run_id


def create_run_dir(run_id: str) -> Path:
    run_dir = get_run_dir(run_id)
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def list_runs() -> List[str]:
    """Run IDs with a directory under the home, newest first."""
    home = get_home()
    if not home.is_dir():
        return []
    return sorted((p.name for p in home.iterdir() if p.is_dir() and is_valid_run_id(p.name)),
                  reverse=True)


def run_exists(run_id: str) -> bool:
    return get_run_dir(run_id).is_dir()

"""
Run IDs.

A run ID is stamped on every Forecast resource as the ``run_id`` tag and names
the run's directory. The cleanup sweep finds a run's leftovers by that tag,
so the ID has to be safe both as a tag value and as a path component.
"""

import random
import re
import string
from datetime import datetime

RUN_ID_PATTERN = re.compile(r"r-\d{8}-\d{6}-[a-z0-9]{4}")

_SUFFIX_CHARS = string.ascii_lowercase + string.digits


def new_run_id() -> str:
    """Return a fresh ID like ``r-20240101-120000-k3x9``; sorts by start time."""
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    return f"r-{stamp}-{''.join(random.choices(_SUFFIX_CHARS, k=4))}"


def is_valid_run_id(run_id: str) -> bool:
    return RUN_ID_PATTERN.fullmatch(run_id) is not None

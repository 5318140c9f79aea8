"""
Tagging utilities so every resource of a run can be found again.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

PROJECT_TAG = "forecast-pipeline"


def base_tags(run_id: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Generate base tags for a pipeline run.

    Args:
        run_id: Run ID
        extra: Additional tags to include

    Returns:
        Dictionary of tags to apply to resources
    """
    tags = {
        "project": PROJECT_TAG,
        "run_id": run_id,
        "created_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }

    if extra:
        tags.update(extra)

    return tags


def parse_user_tags(tag_strings: List[str]) -> Dict[str, str]:
    """
    Parse user-provided tag strings in format "key=value".

    Raises:
        ValueError: If tag string format is invalid
    """
    tags = {}

    for tag_str in tag_strings:
        if "=" not in tag_str:
            raise ValueError(f"Invalid tag format: {tag_str}. Expected 'key=value'")

        key, value = tag_str.split("=", 1)
        if not key.strip() or not value.strip():
            raise ValueError(f"Invalid tag format: {tag_str}. Key and value must not be empty")

        tags[key.strip()] = value.strip()

    return tags


def to_api_tags(tags: Dict[str, str]) -> List[Dict[str, str]]:
    """Convert a tag dict to the Key/Value list the Forecast API expects."""
    return [{"Key": k, "Value": v} for k, v in tags.items()]


def from_api_tags(tag_list: List[Dict[str, str]]) -> Dict[str, str]:
    return {t["Key"]: t["Value"] for t in tag_list}

"""
Cleanup utilities for resources left behind by failed runs.
"""

from .models import FoundResource
from .sweep import list_tagged_resources, nuke_leftovers, resource_type_from_arn

__all__ = [
    "list_tagged_resources",
    "nuke_leftovers",
    "resource_type_from_arn",
    "FoundResource",
]

"""
Find and delete Forecast resources left behind by a failed run.
"""

import logging
import threading
from typing import List, Optional, Tuple

from ..config import PollPolicy
from ..context import ForecastContext
from ..errors import ErrorKind, classify_error
from ..resources import ForecastResources
from ..tags import PROJECT_TAG, from_api_tags
from .models import FoundResource

logger = logging.getLogger(__name__)

# Dependents first: a dataset can't go while an import job or group still references it
DELETE_ORDER = [
    "forecast-export-job",
    "forecast",
    "predictor",
    "dataset-group",
    "dataset-import-job",
    "dataset",
]


def resource_type_from_arn(arn: str) -> str:
    """
    Extract the Forecast resource type from an ARN.

    arn:aws:forecast:<region>:<account>:dataset-import-job/<dataset>/<job> -> "dataset-import-job"
    """
    parts = arn.split(":", 5)
    if len(parts) < 6 or parts[2] != "forecast":
        return "unknown"
    return parts[5].split("/", 1)[0]


def list_tagged_resources(ctx: ForecastContext, run_id: str) -> List[FoundResource]:
    """
    List Forecast resources tagged with project=forecast-pipeline and run_id=<id>.

    Args:
        ctx: Forecast context with a resourcegroupstaggingapi client
        run_id: Run ID to search for

    Returns:
        Found resources sorted into deletion order
    """
    if ctx.tagging is None:
        raise ValueError("ForecastContext has no resourcegroupstaggingapi client")

    found = []
    paginator = ctx.tagging.get_paginator("get_resources")

    for page in paginator.paginate(
        TagFilters=[
            {"Key": "project", "Values": [PROJECT_TAG]},
            {"Key": "run_id", "Values": [run_id]},
        ],
        ResourceTypeFilters=["forecast"],
    ):
        for mapping in page.get("ResourceTagMappingList", []):
            arn = mapping["ResourceARN"]
            found.append(FoundResource(
                resource_type=resource_type_from_arn(arn),
                arn=arn,
                tags=from_api_tags(mapping.get("Tags", [])),
                reason=f"Tagged with project={PROJECT_TAG} and run_id={run_id}",
            ))

    return sort_for_deletion(found)


def sort_for_deletion(found: List[FoundResource]) -> List[FoundResource]:
    def rank(resource: FoundResource) -> int:
        if resource.resource_type in DELETE_ORDER:
            return DELETE_ORDER.index(resource.resource_type)
        return len(DELETE_ORDER)

    return sorted(found, key=rank)


def nuke_leftovers(ctx: ForecastContext, found: List[FoundResource],
                   policy: Optional[PollPolicy] = None,
                   cancel: Optional[threading.Event] = None) -> Tuple[int, int]:
    """
    Delete leftover resources in dependency order.

    A resource that is already gone counts as removed. Failures are logged
    and counted, and the sweep moves on to the next resource.

    Returns:
        Tuple of (removed_count, failed_count)
    """
    resources = ForecastResources(ctx, policy=policy, cancel=cancel)
    deleters = {
        "forecast-export-job": resources.delete_forecast_export_job,
        "forecast": resources.delete_forecast,
        "predictor": resources.delete_predictor,
        "dataset-group": resources.delete_dataset_group,
        "dataset-import-job": resources.delete_dataset_import_job,
        "dataset": resources.delete_dataset,
    }

    removed = 0
    failed = 0

    for resource in sort_for_deletion(found):
        delete = deleters.get(resource.resource_type)
        if delete is None:
            failed += 1
            logger.warning(f"Don't know how to delete {resource.resource_type} resource: {resource.arn}")
            continue

        try:
            delete(resource.arn)
        except Exception as e:
            if classify_error(e) is ErrorKind.NOT_FOUND:
                removed += 1
                logger.info(f"{resource.resource_type} already gone: {resource.arn}")
                continue
            failed += 1
            logger.error(f"Error deleting {resource.resource_type} resource {resource.arn}: {e}")
            continue

        removed += 1
        logger.info(f"Deleted {resource.resource_type} resource: {resource.arn}")

    return removed, failed

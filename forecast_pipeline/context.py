"""
AWS context shared by every pipeline operation.
"""

from dataclasses import dataclass
from typing import Any, Optional
import logging

import boto3

logger = logging.getLogger(__name__)

ARN_PREFIX = "arn:aws:forecast"


@dataclass
class ForecastContext:
    """Service clients plus the caller identity, passed explicitly to each operation."""
    region: str
    account: str
    forecast: Any
    query: Any = None
    tagging: Any = None

    def arn_for(self, resource_type: str, name: str) -> str:
        """
        Render the ARN a resource of this type and name has in this account.

        Args:
            resource_type: Resource type tag, e.g. "dataset" or
                "dataset-import-job/<dataset name>"
            name: Resource name

        Returns:
            ARN string
        """
        return f"{ARN_PREFIX}:{self.region}:{self.account}:{resource_type}/{name}"

    @classmethod
    def from_session(cls, session: Optional[boto3.session.Session] = None,
                     region: Optional[str] = None) -> "ForecastContext":
        """
        Create clients from a boto3 session and resolve the caller's account.

        Raises:
            ValueError: If no region is configured
        """
        session = session or boto3.session.Session(region_name=region)
        region = region or session.region_name
        if not region:
            raise ValueError("Missing AWS region (set AWS_REGION/AWS_DEFAULT_REGION or pass --region)")

        identity = session.client("sts", region_name=region).get_caller_identity()
        logger.debug(f"Resolved caller {identity.get('Arn')} in {region}")

        return cls(
            region=region,
            account=identity["Account"],
            forecast=session.client("forecast", region_name=region),
            query=session.client("forecastquery", region_name=region),
            tagging=session.client("resourcegroupstaggingapi", region_name=region),
        )

"""
Configuration for pipeline runs.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional


DEFAULT_POLL_INTERVAL_SECONDS = 60.0


@dataclass
class PollPolicy:
    """Fixed-interval polling with an optional cap on the number of polls."""
    interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_attempts: Optional[int] = None

    def __post_init__(self):
        if self.interval_seconds < 0:
            raise ValueError(f"interval_seconds must be >= 0, got {self.interval_seconds}")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")


@dataclass
class S3Location:
    """An S3 path plus the IAM role Forecast assumes to reach it."""
    path: str
    role_arn: str

    def to_api(self) -> Dict[str, str]:
        return {"Path": self.path, "RoleArn": self.role_arn}


@dataclass
class PipelineConfig:
    """Names and parameters for every resource the pipeline creates."""
    bucket: str
    role_arn: str
    dataset_name: str = "electricityusagedata"
    data_frequency: str = "H"
    time_zone: str = "America/Los_Angeles"
    forecast_horizon: int = 72
    holiday_country: str = "US"
    input_key: Optional[str] = None
    output_prefix: Optional[str] = None
    poll: PollPolicy = field(default_factory=PollPolicy)
    teardown: bool = True
    extra_tags: Dict[str, str] = field(default_factory=dict)

    @property
    def import_job_name(self) -> str:
        return f"import_{self.dataset_name}"

    @property
    def dataset_group_name(self) -> str:
        return f"{self.dataset_name}group"

    @property
    def predictor_name(self) -> str:
        return f"{self.dataset_name}_predictor"

    @property
    def forecast_name(self) -> str:
        return f"{self.dataset_name}_forecast"

    @property
    def export_job_name(self) -> str:
        return f"export_{self.forecast_name}"

    @property
    def source(self) -> S3Location:
        key = self.input_key or f"{self.dataset_name}.csv"
        return S3Location(path=f"s3://{self.bucket}/{key}", role_arn=self.role_arn)

    @property
    def destination(self) -> S3Location:
        prefix = self.output_prefix or f"{self.forecast_name}/"
        return S3Location(path=f"s3://{self.bucket}/{prefix}", role_arn=self.role_arn)

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        """
        Build a config from FORECAST_PIPELINE_* environment variables.

        Keyword overrides that are not None win over the environment.

        Raises:
            ValueError: If the bucket or role ARN is missing, or a numeric
                variable does not parse
        """
        values = {
            "bucket": os.environ.get("FORECAST_PIPELINE_BUCKET"),
            "role_arn": os.environ.get("FORECAST_PIPELINE_ROLE_ARN"),
            "dataset_name": os.environ.get("FORECAST_PIPELINE_DATASET_NAME"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        if not values.get("bucket"):
            raise ValueError("Missing bucket (set FORECAST_PIPELINE_BUCKET or pass --bucket)")
        if not values.get("role_arn"):
            raise ValueError("Missing role ARN (set FORECAST_PIPELINE_ROLE_ARN or pass --role-arn)")
        if not values.get("dataset_name"):
            values.pop("dataset_name", None)

        if "poll" not in values:
            values["poll"] = poll_policy_from_env()

        return cls(**values)


def poll_policy_from_env() -> PollPolicy:
    interval_raw = os.environ.get("FORECAST_PIPELINE_POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL_SECONDS))
    attempts_raw = os.environ.get("FORECAST_PIPELINE_MAX_ATTEMPTS", "")

    try:
        interval = float(interval_raw)
        max_attempts = int(attempts_raw) if attempts_raw.strip() else None
    except ValueError as e:
        raise ValueError(f"Invalid poll settings in environment: {e}") from e

    return PollPolicy(interval_seconds=interval, max_attempts=max_attempts)

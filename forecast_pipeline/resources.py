"""
Create and delete operations for each Amazon Forecast resource type.

Creates go through skip_if_already_exists, and the asynchronous ones then
block in wait_for_active. Deletes of asynchronous resources block in
wait_for_deleted; dataset groups and datasets are deleted synchronously.
"""

import logging
import threading
from typing import Dict, List, Optional

from .config import PollPolicy, S3Location
from .context import ForecastContext
from .lifecycle import skip_if_already_exists, wait_for_active, wait_for_deleted
from .tags import to_api_tags

logger = logging.getLogger(__name__)

DATASET_SCHEMA = {
    "Attributes": [
        {"AttributeName": "timestamp", "AttributeType": "timestamp"},
        {"AttributeName": "target_value", "AttributeType": "float"},
        {"AttributeName": "item_id", "AttributeType": "string"},
    ]
}


class ForecastResources:
    """Lifecycle operations for one pipeline, bound to a context and poll policy."""

    def __init__(self, ctx: ForecastContext, policy: Optional[PollPolicy] = None,
                 cancel: Optional[threading.Event] = None, tags: Optional[Dict[str, str]] = None,
                 data_frequency: str = "H", time_zone: str = "America/Los_Angeles",
                 forecast_horizon: int = 72, holiday_country: str = "US"):
        self.ctx = ctx
        self.policy = policy or PollPolicy()
        self.cancel = cancel or threading.Event()
        self.tags = tags or {}
        self.data_frequency = data_frequency
        self.time_zone = time_zone
        self.forecast_horizon = forecast_horizon
        self.holiday_country = holiday_country

    @property
    def svc(self):
        return self.ctx.forecast

    def _tag_args(self) -> Dict[str, List[Dict[str, str]]]:
        return {"Tags": to_api_tags(self.tags)} if self.tags else {}

    def _wait_active(self, name: str, describe, arn_key: str, arn: str, with_remaining: bool = True) -> None:
        def poll():
            desc = describe(**{arn_key: arn})
            remaining = desc.get("EstimatedTimeRemainingInMinutes") if with_remaining else None
            return desc["Status"], remaining

        wait_for_active(name, poll, self.policy, self.cancel)

    def _wait_deleted(self, name: str, describe, arn_key: str, arn: str) -> None:
        def poll():
            return describe(**{arn_key: arn})["Status"]

        wait_for_deleted(name, poll, self.policy, self.cancel)

    # -----------------
    # Create
    # -----------------

    def create_dataset(self, name: str) -> str:
        def create():
            resp = self.svc.create_dataset(
                DatasetName=name,
                Domain="CUSTOM",
                DatasetType="TARGET_TIME_SERIES",
                DataFrequency=self.data_frequency,
                Schema=DATASET_SCHEMA,
                **self._tag_args(),
            )
            return resp.get("DatasetArn")

        return skip_if_already_exists(self.ctx, "dataset", name, create)

    def create_dataset_import_job(self, name: str, dataset_name: str, dataset_arn: str,
                                  source: S3Location) -> str:
        """
        Import data from S3 into a dataset and wait for the job to finish.

        Args:
            name: Import job name
            dataset_name: Name of the target dataset, part of the job's ARN
            dataset_arn: ARN of the target dataset
            source: S3 location of the CSV data

        Returns:
            Import job ARN
        """
        def create():
            resp = self.svc.create_dataset_import_job(
                DatasetImportJobName=name,
                DatasetArn=dataset_arn,
                DataSource={"S3Config": source.to_api()},
                TimeZone=self.time_zone,
                **self._tag_args(),
            )
            return resp.get("DatasetImportJobArn")

        arn = skip_if_already_exists(self.ctx, f"dataset-import-job/{dataset_name}", name, create)
        self._wait_active("dataset-import-job", self.svc.describe_dataset_import_job,
                          "DatasetImportJobArn", arn)
        return arn

    def create_dataset_group(self, name: str, dataset_arns: List[str]) -> str:
        def create():
            resp = self.svc.create_dataset_group(
                DatasetGroupName=name,
                Domain="CUSTOM",
                DatasetArns=dataset_arns,
                **self._tag_args(),
            )
            return resp.get("DatasetGroupArn")

        return skip_if_already_exists(self.ctx, "dataset-group", name, create)

    def create_predictor(self, name: str, dataset_group_arn: str) -> str:
        """Train an AutoML predictor on the dataset group and wait until it is ACTIVE."""
        def create():
            resp = self.svc.create_predictor(
                PredictorName=name,
                ForecastHorizon=self.forecast_horizon,
                PerformAutoML=True,
                InputDataConfig={
                    "DatasetGroupArn": dataset_group_arn,
                    "SupplementaryFeatures": [
                        {"Name": "holiday", "Value": self.holiday_country},
                    ],
                },
                FeaturizationConfig={"ForecastFrequency": self.data_frequency},
                **self._tag_args(),
            )
            return resp.get("PredictorArn")

        arn = skip_if_already_exists(self.ctx, "predictor", name, create)
        self._wait_active("predictor", self.svc.describe_predictor, "PredictorArn", arn)
        return arn

    def create_forecast(self, name: str, predictor_arn: str) -> str:
        def create():
            resp = self.svc.create_forecast(
                ForecastName=name,
                PredictorArn=predictor_arn,
                **self._tag_args(),
            )
            return resp.get("ForecastArn")

        arn = skip_if_already_exists(self.ctx, "forecast", name, create)
        self._wait_active("forecast", self.svc.describe_forecast, "ForecastArn", arn)
        return arn

    def create_forecast_export_job(self, name: str, forecast_name: str, forecast_arn: str,
                                   destination: S3Location) -> str:
        def create():
            resp = self.svc.create_forecast_export_job(
                ForecastExportJobName=name,
                ForecastArn=forecast_arn,
                Destination={"S3Config": destination.to_api()},
                **self._tag_args(),
            )
            return resp.get("ForecastExportJobArn")

        arn = skip_if_already_exists(self.ctx, f"forecast-export-job/{forecast_name}", name, create)
        # Export jobs carry no remaining-time estimate
        self._wait_active("forecast-export-job", self.svc.describe_forecast_export_job,
                          "ForecastExportJobArn", arn, with_remaining=False)
        return arn

    # -----------------
    # Delete
    # -----------------

    def delete_forecast_export_job(self, arn: str) -> None:
        self.svc.delete_forecast_export_job(ForecastExportJobArn=arn)
        self._wait_deleted("forecast-export-job", self.svc.describe_forecast_export_job,
                           "ForecastExportJobArn", arn)

    def delete_forecast(self, arn: str) -> None:
        self.svc.delete_forecast(ForecastArn=arn)
        self._wait_deleted("forecast", self.svc.describe_forecast, "ForecastArn", arn)

    def delete_predictor(self, arn: str) -> None:
        self.svc.delete_predictor(PredictorArn=arn)
        self._wait_deleted("predictor", self.svc.describe_predictor, "PredictorArn", arn)

    def delete_dataset_group(self, arn: str) -> None:
        self.svc.delete_dataset_group(DatasetGroupArn=arn)

    def delete_dataset_import_job(self, arn: str) -> None:
        self.svc.delete_dataset_import_job(DatasetImportJobArn=arn)
        self._wait_deleted("dataset-import-job", self.svc.describe_dataset_import_job,
                           "DatasetImportJobArn", arn)

    def delete_dataset(self, arn: str) -> None:
        self.svc.delete_dataset(DatasetArn=arn)

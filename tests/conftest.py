"""
Shared fixtures: mocked AWS clients and real botocore errors.
"""

import pytest
from unittest.mock import Mock
from botocore.exceptions import ClientError

from forecast_pipeline.config import PollPolicy
from forecast_pipeline.context import ForecastContext


def make_client_error(code: str, operation: str = "DescribeDataset") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, operation)


@pytest.fixture
def client_error():
    return make_client_error


@pytest.fixture
def fast_policy():
    return PollPolicy(interval_seconds=0)


@pytest.fixture
def forecast_ctx():
    return ForecastContext(
        region="us-east-1",
        account="111122223333",
        forecast=Mock(),
        query=Mock(),
        tagging=Mock(),
    )


@pytest.fixture
def run_home(tmp_path, monkeypatch):
    monkeypatch.setenv("FORECAST_PIPELINE_HOME", str(tmp_path))
    return tmp_path

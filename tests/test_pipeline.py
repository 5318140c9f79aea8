"""
Tests for the Forecast resource operations and the pipeline sequence.
"""

import threading

import pytest
from unittest.mock import Mock

from forecast_pipeline.config import PipelineConfig, PollPolicy, S3Location
from forecast_pipeline.errors import CreationError, ProvisioningFailed, RunCancelled, UnexpectedState
from forecast_pipeline.events import get_status_from_events, read_events
from forecast_pipeline.ids import new_run_id
from forecast_pipeline.pipeline import PipelineHandles, run_pipeline, teardown_pipeline
from forecast_pipeline.resources import ForecastResources


DESCRIBES = [
    "describe_dataset_import_job",
    "describe_predictor",
    "describe_forecast",
    "describe_forecast_export_job",
]


def _config(**kwargs):
    return PipelineConfig(bucket="hogefuga", role_arn="arn:aws:iam::111122223333:role/forecast",
                          poll=PollPolicy(interval_seconds=0), **kwargs)


def _happy_client(svc, client_error):
    """Every create succeeds, every async resource is ACTIVE once and then gone."""
    svc.create_dataset.return_value = {"DatasetArn": "arn:ds"}
    svc.create_dataset_import_job.return_value = {"DatasetImportJobArn": "arn:dij"}
    svc.create_dataset_group.return_value = {"DatasetGroupArn": "arn:dsg"}
    svc.create_predictor.return_value = {"PredictorArn": "arn:pred"}
    svc.create_forecast.return_value = {"ForecastArn": "arn:fc"}
    svc.create_forecast_export_job.return_value = {"ForecastExportJobArn": "arn:fej"}
    for name in DESCRIBES:
        getattr(svc, name).side_effect = [
            {"Status": "CREATE_IN_PROGRESS", "EstimatedTimeRemainingInMinutes": 3},
            {"Status": "ACTIVE"},
            {"Status": "DELETE_IN_PROGRESS"},
            client_error("ResourceNotFoundException"),
        ]


def _called_methods(svc):
    return [c[0] for c in svc.mock_calls]


class TestForecastResources:

    def test_create_dataset_params(self, forecast_ctx):
        forecast_ctx.forecast.create_dataset.return_value = {"DatasetArn": "arn:ds"}
        resources = ForecastResources(forecast_ctx, tags={"project": "forecast-pipeline"})

        assert resources.create_dataset("electricityusagedata") == "arn:ds"

        kwargs = forecast_ctx.forecast.create_dataset.call_args.kwargs
        assert kwargs["DatasetName"] == "electricityusagedata"
        assert kwargs["DatasetType"] == "TARGET_TIME_SERIES"
        assert kwargs["Domain"] == "CUSTOM"
        assert kwargs["DataFrequency"] == "H"
        assert [a["AttributeName"] for a in kwargs["Schema"]["Attributes"]] == ["timestamp", "target_value", "item_id"]
        assert kwargs["Tags"] == [{"Key": "project", "Value": "forecast-pipeline"}]

    def test_untagged_create_omits_tags(self, forecast_ctx):
        forecast_ctx.forecast.create_dataset_group.return_value = {"DatasetGroupArn": "arn:dsg"}

        ForecastResources(forecast_ctx).create_dataset_group("g", ["arn:ds"])

        assert "Tags" not in forecast_ctx.forecast.create_dataset_group.call_args.kwargs

    def test_import_job_waits_for_active(self, forecast_ctx, fast_policy):
        svc = forecast_ctx.forecast
        svc.create_dataset_import_job.return_value = {"DatasetImportJobArn": "arn:dij"}
        svc.describe_dataset_import_job.side_effect = [
            {"Status": "CREATE_PENDING"},
            {"Status": "ACTIVE"},
        ]
        resources = ForecastResources(forecast_ctx, policy=fast_policy)
        source = S3Location(path="s3://hogefuga/data.csv", role_arn="arn:role")

        arn = resources.create_dataset_import_job("import_ds", "ds", "arn:ds", source)

        assert arn == "arn:dij"
        assert svc.describe_dataset_import_job.call_count == 2
        svc.describe_dataset_import_job.assert_called_with(DatasetImportJobArn="arn:dij")
        kwargs = svc.create_dataset_import_job.call_args.kwargs
        assert kwargs["DataSource"] == {"S3Config": {"Path": "s3://hogefuga/data.csv", "RoleArn": "arn:role"}}
        assert kwargs["TimeZone"] == "America/Los_Angeles"

    def test_existing_predictor_is_polled_by_synthesized_arn(self, forecast_ctx, fast_policy, client_error):
        svc = forecast_ctx.forecast
        svc.create_predictor.side_effect = client_error("ResourceAlreadyExistsException", "CreatePredictor")
        svc.describe_predictor.return_value = {"Status": "ACTIVE"}

        arn = ForecastResources(forecast_ctx, policy=fast_policy).create_predictor("p1", "arn:dsg")

        assert arn == "arn:aws:forecast:us-east-1:111122223333:predictor/p1"
        svc.describe_predictor.assert_called_once_with(PredictorArn=arn)

    def test_predictor_params(self, forecast_ctx, fast_policy):
        svc = forecast_ctx.forecast
        svc.create_predictor.return_value = {"PredictorArn": "arn:pred"}
        svc.describe_predictor.return_value = {"Status": "ACTIVE"}

        ForecastResources(forecast_ctx, policy=fast_policy, forecast_horizon=24).create_predictor("p1", "arn:dsg")

        kwargs = svc.create_predictor.call_args.kwargs
        assert kwargs["ForecastHorizon"] == 24
        assert kwargs["PerformAutoML"] is True
        assert kwargs["InputDataConfig"]["SupplementaryFeatures"] == [{"Name": "holiday", "Value": "US"}]

    def test_export_job_wait_failure_propagates(self, forecast_ctx, fast_policy):
        svc = forecast_ctx.forecast
        svc.create_forecast_export_job.return_value = {"ForecastExportJobArn": "arn:fej"}
        svc.describe_forecast_export_job.return_value = {"Status": "CREATE_FAILED"}
        resources = ForecastResources(forecast_ctx, policy=fast_policy)

        with pytest.raises(ProvisioningFailed):
            resources.create_forecast_export_job("export_fc", "fc", "arn:fc",
                                                 S3Location(path="s3://hogefuga/out/", role_arn="arn:role"))

    def test_export_job_ignores_remaining_estimate(self, forecast_ctx, fast_policy, caplog):
        svc = forecast_ctx.forecast
        svc.create_forecast_export_job.return_value = {"ForecastExportJobArn": "arn:fej"}
        svc.describe_forecast_export_job.side_effect = [
            {"Status": "CREATE_IN_PROGRESS", "EstimatedTimeRemainingInMinutes": 5},
            {"Status": "ACTIVE"},
        ]
        resources = ForecastResources(forecast_ctx, policy=fast_policy)

        with caplog.at_level("INFO", logger="forecast_pipeline.lifecycle"):
            resources.create_forecast_export_job("export_fc", "fc", "arn:fc",
                                                 S3Location(path="s3://hogefuga/out/", role_arn="arn:role"))

        assert svc.describe_forecast_export_job.call_count == 2
        assert "forecast-export-job is ACTIVE" in caplog.text
        assert "remaining" not in caplog.text

    def test_export_job_synthesized_arn_includes_forecast(self, forecast_ctx, fast_policy, client_error):
        svc = forecast_ctx.forecast
        svc.create_forecast_export_job.side_effect = client_error("ResourceAlreadyExistsException")
        svc.describe_forecast_export_job.return_value = {"Status": "ACTIVE"}

        arn = ForecastResources(forecast_ctx, policy=fast_policy).create_forecast_export_job(
            "export_fc", "fc", "arn:fc", S3Location(path="s3://hogefuga/out/", role_arn="arn:role"))

        assert arn == "arn:aws:forecast:us-east-1:111122223333:forecast-export-job/fc/export_fc"

    def test_delete_forecast_waits_until_gone(self, forecast_ctx, fast_policy, client_error):
        svc = forecast_ctx.forecast
        svc.describe_forecast.side_effect = [{"Status": "DELETE_IN_PROGRESS"}, client_error("ResourceNotFoundException")]

        ForecastResources(forecast_ctx, policy=fast_policy).delete_forecast("arn:fc")

        svc.delete_forecast.assert_called_once_with(ForecastArn="arn:fc")
        assert svc.describe_forecast.call_count == 2

    def test_delete_dataset_does_not_poll(self, forecast_ctx):
        ForecastResources(forecast_ctx).delete_dataset("arn:ds")

        forecast_ctx.forecast.delete_dataset.assert_called_once_with(DatasetArn="arn:ds")
        assert _called_methods(forecast_ctx.forecast) == ["delete_dataset"]


class TestRunPipeline:

    def test_full_sequence_order(self, forecast_ctx, client_error):
        svc = forecast_ctx.forecast
        _happy_client(svc, client_error)

        handles = run_pipeline(forecast_ctx, _config())

        assert handles == PipelineHandles(
            dataset_arn="arn:ds",
            dataset_import_job_arn="arn:dij",
            dataset_group_arn="arn:dsg",
            predictor_arn="arn:pred",
            forecast_arn="arn:fc",
            forecast_export_job_arn="arn:fej",
        )
        calls = [m for m in _called_methods(svc) if not m.startswith("describe_")]
        assert calls == [
            "create_dataset",
            "create_dataset_import_job",
            "create_dataset_group",
            "create_predictor",
            "create_forecast",
            "create_forecast_export_job",
            "delete_forecast_export_job",
            "delete_forecast",
            "delete_predictor",
            "delete_dataset_group",
            "delete_dataset_import_job",
            "delete_dataset",
        ]

    def test_resource_names_and_locations(self, forecast_ctx, client_error):
        svc = forecast_ctx.forecast
        _happy_client(svc, client_error)

        run_pipeline(forecast_ctx, _config())

        assert svc.create_dataset_group.call_args.kwargs["DatasetGroupName"] == "electricityusagedatagroup"
        assert svc.create_dataset_group.call_args.kwargs["DatasetArns"] == ["arn:ds"]
        assert svc.create_predictor.call_args.kwargs["PredictorName"] == "electricityusagedata_predictor"
        assert svc.create_forecast.call_args.kwargs["PredictorArn"] == "arn:pred"
        export = svc.create_forecast_export_job.call_args.kwargs
        assert export["ForecastExportJobName"] == "export_electricityusagedata_forecast"
        assert export["Destination"]["S3Config"]["Path"] == "s3://hogefuga/electricityusagedata_forecast/"

    def test_no_teardown_leaves_resources(self, forecast_ctx, client_error):
        svc = forecast_ctx.forecast
        _happy_client(svc, client_error)

        run_pipeline(forecast_ctx, _config(teardown=False))

        assert not any(m.startswith("delete_") for m in _called_methods(svc))

    def test_unexpected_status_aborts_without_later_stages(self, forecast_ctx, client_error):
        svc = forecast_ctx.forecast
        _happy_client(svc, client_error)
        svc.describe_dataset_import_job.side_effect = None
        svc.describe_dataset_import_job.return_value = {"Status": "SUSPENDED"}

        with pytest.raises(UnexpectedState):
            run_pipeline(forecast_ctx, _config())

        called = _called_methods(svc)
        assert "create_dataset_group" not in called
        assert not any(m.startswith("delete_") for m in called)

    def test_creation_error_aborts(self, forecast_ctx, client_error):
        svc = forecast_ctx.forecast
        _happy_client(svc, client_error)
        svc.create_predictor.side_effect = client_error("LimitExceededException", "CreatePredictor")

        with pytest.raises(CreationError):
            run_pipeline(forecast_ctx, _config())

        svc.create_forecast.assert_not_called()
        svc.delete_dataset.assert_not_called()

    def test_run_id_tags_and_events(self, forecast_ctx, client_error, run_home):
        svc = forecast_ctx.forecast
        _happy_client(svc, client_error)
        run_id = new_run_id()

        run_pipeline(forecast_ctx, _config(extra_tags={"owner": "ml"}), run_id=run_id)

        tags = {t["Key"]: t["Value"] for t in svc.create_dataset.call_args.kwargs["Tags"]}
        assert tags["run_id"] == run_id
        assert tags["project"] == "forecast-pipeline"
        assert tags["owner"] == "ml"

        events = read_events(run_id)
        assert events[0]["type"] == "RUN_START"
        assert events[-1]["type"] == "DONE"
        assert events[-1]["data"]["forecast_arn"] == "arn:fc"
        assert get_status_from_events(run_id) == "succeeded"

    def test_failure_recorded_in_events(self, forecast_ctx, client_error, run_home):
        svc = forecast_ctx.forecast
        _happy_client(svc, client_error)
        svc.describe_predictor.side_effect = None
        svc.describe_predictor.return_value = {"Status": "CREATE_FAILED"}
        run_id = new_run_id()

        with pytest.raises(ProvisioningFailed):
            run_pipeline(forecast_ctx, _config(), run_id=run_id)

        last = read_events(run_id)[-1]
        assert last["type"] == "ERROR"
        assert last["data"]["error_type"] == "ProvisioningFailed"
        assert get_status_from_events(run_id) == "failed"

    def test_deadline_during_import_wait_stops_run(self, forecast_ctx, client_error, run_home):
        svc = forecast_ctx.forecast
        _happy_client(svc, client_error)
        cancel = threading.Event()

        def describe_import_job(**kwargs):
            cancel.set()
            return {"Status": "CREATE_IN_PROGRESS"}

        svc.describe_dataset_import_job.side_effect = describe_import_job
        run_id = new_run_id()

        with pytest.raises(RunCancelled) as exc_info:
            run_pipeline(forecast_ctx, _config(), cancel=cancel, run_id=run_id)

        assert exc_info.value.next_stage == "create dataset group"
        called = _called_methods(svc)
        assert [m for m in called if m.startswith("create_")] == ["create_dataset", "create_dataset_import_job"]
        assert not any(m.startswith("delete_") for m in called)

        last = read_events(run_id)[-1]
        assert last["type"] == "CANCELLED"
        assert last["data"]["next_stage"] == "create dataset group"
        assert get_status_from_events(run_id) == "cancelled"

    def test_deadline_during_last_wait_is_not_success(self, forecast_ctx, client_error, run_home):
        svc = forecast_ctx.forecast
        _happy_client(svc, client_error)
        cancel = threading.Event()

        def describe_export_job(**kwargs):
            cancel.set()
            return {"Status": "CREATE_IN_PROGRESS"}

        svc.describe_forecast_export_job.side_effect = describe_export_job
        run_id = new_run_id()

        with pytest.raises(RunCancelled) as exc_info:
            run_pipeline(forecast_ctx, _config(teardown=False), cancel=cancel, run_id=run_id)

        assert exc_info.value.next_stage == "completion"
        types = [e["type"] for e in read_events(run_id)]
        assert "DONE" not in types
        assert types[-1] == "CANCELLED"


class TestTeardownPipeline:

    def test_deletes_in_reverse_order(self, forecast_ctx, fast_policy, client_error):
        svc = forecast_ctx.forecast
        for name in DESCRIBES:
            getattr(svc, name).side_effect = client_error("ResourceNotFoundException")
        handles = PipelineHandles("arn:ds", "arn:dij", "arn:dsg", "arn:pred", "arn:fc", "arn:fej")

        teardown_pipeline(forecast_ctx, handles, fast_policy)

        deletes = [m for m in _called_methods(svc) if m.startswith("delete_")]
        assert deletes == [
            "delete_forecast_export_job",
            "delete_forecast",
            "delete_predictor",
            "delete_dataset_group",
            "delete_dataset_import_job",
            "delete_dataset",
        ]

    def test_cancel_stops_before_next_delete(self, forecast_ctx, fast_policy):
        svc = forecast_ctx.forecast
        cancel = threading.Event()

        def describe_export_job(**kwargs):
            cancel.set()
            return {"Status": "DELETE_IN_PROGRESS"}

        svc.describe_forecast_export_job.side_effect = describe_export_job
        handles = PipelineHandles("arn:ds", "arn:dij", "arn:dsg", "arn:pred", "arn:fc", "arn:fej")

        with pytest.raises(RunCancelled) as exc_info:
            teardown_pipeline(forecast_ctx, handles, fast_policy, cancel)

        assert exc_info.value.next_stage == "delete forecast"
        deletes = [m for m in _called_methods(svc) if m.startswith("delete_")]
        assert deletes == ["delete_forecast_export_job"]

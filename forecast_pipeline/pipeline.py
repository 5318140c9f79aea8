"""
The fixed create-then-delete sequence of a forecasting run.

Stages run strictly one after another. The first failure aborts the run and
propagates; resources created so far are left in place for inspection and
can be removed later with the cleanup sweep. A set cancel event ends the
current wait early and stops the run before its next stage.
"""

import logging
import threading
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from .config import PipelineConfig, PollPolicy
from .context import ForecastContext
from .errors import RunCancelled
from .events import EventTypes, emit_event
from .resources import ForecastResources
from .state import create_run_dir
from .tags import base_tags

logger = logging.getLogger(__name__)


@dataclass
class PipelineHandles:
    dataset_arn: str
    dataset_import_job_arn: str
    dataset_group_arn: str
    predictor_arn: str
    forecast_arn: str
    forecast_export_job_arn: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def _stage(run_id: Optional[str], stage: str, fn: Callable[[], Any],
           cancel: threading.Event) -> Any:
    if cancel.is_set():
        raise RunCancelled(stage)
    logger.info(stage)
    if run_id:
        emit_event(run_id, EventTypes.STAGE_START, {"stage": stage})
    result = fn()
    if run_id:
        emit_event(run_id, EventTypes.STAGE_DONE, {"stage": stage, "arn": result})
    return result


def run_pipeline(ctx: ForecastContext, config: PipelineConfig,
                 cancel: Optional[threading.Event] = None,
                 run_id: Optional[str] = None) -> PipelineHandles:
    """
    Provision every resource, export the forecast, then tear everything down.

    Args:
        ctx: Forecast context
        config: Pipeline configuration
        cancel: Event that ends the in-progress wait early and stops the run
            before its next stage
        run_id: Run ID; when given, resources are tagged with it and stage
            events are written to the run's event trail

    Returns:
        Handles of the resources the run created

    Raises:
        RunCancelled: If cancel was set before the run finished
        ForecastPipelineError, ClientError: On the first failing stage
    """
    cancel = cancel or threading.Event()
    tags = base_tags(run_id, config.extra_tags) if run_id else dict(config.extra_tags)
    resources = ForecastResources(
        ctx,
        policy=config.poll,
        cancel=cancel,
        tags=tags,
        data_frequency=config.data_frequency,
        time_zone=config.time_zone,
        forecast_horizon=config.forecast_horizon,
        holiday_country=config.holiday_country,
    )

    if run_id:
        create_run_dir(run_id)
        emit_event(run_id, EventTypes.RUN_START, {
            "region": ctx.region,
            "dataset_name": config.dataset_name,
            "teardown": config.teardown,
        })

    try:
        dataset_arn = _stage(run_id, "create dataset",
                             lambda: resources.create_dataset(config.dataset_name),
                             cancel)
        import_job_arn = _stage(run_id, "create dataset import job",
                                lambda: resources.create_dataset_import_job(
                                    config.import_job_name, config.dataset_name, dataset_arn, config.source),
                                cancel)
        dataset_group_arn = _stage(run_id, "create dataset group",
                                   lambda: resources.create_dataset_group(config.dataset_group_name, [dataset_arn]),
                                   cancel)
        predictor_arn = _stage(run_id, "create predictor",
                               lambda: resources.create_predictor(config.predictor_name, dataset_group_arn),
                               cancel)
        forecast_arn = _stage(run_id, "create forecast",
                              lambda: resources.create_forecast(config.forecast_name, predictor_arn),
                              cancel)
        export_job_arn = _stage(run_id, "create forecast export job",
                                lambda: resources.create_forecast_export_job(
                                    config.export_job_name, config.forecast_name, forecast_arn,
                                    config.destination),
                                cancel)

        handles = PipelineHandles(
            dataset_arn=dataset_arn,
            dataset_import_job_arn=import_job_arn,
            dataset_group_arn=dataset_group_arn,
            predictor_arn=predictor_arn,
            forecast_arn=forecast_arn,
            forecast_export_job_arn=export_job_arn,
        )

        if config.teardown:
            _teardown(resources, handles, run_id, cancel)
        else:
            logger.info("Teardown disabled; leaving resources in place")

        # the last wait may have been cut short
        if cancel.is_set():
            raise RunCancelled("completion")
    except RunCancelled as e:
        logger.warning(str(e))
        if run_id:
            emit_event(run_id, EventTypes.CANCELLED, {"next_stage": e.next_stage})
        raise
    except Exception as e:
        if run_id:
            emit_event(run_id, EventTypes.ERROR, {"error": str(e), "error_type": type(e).__name__})
        raise

    if run_id:
        emit_event(run_id, EventTypes.DONE, handles.to_dict())
    return handles


def teardown_pipeline(ctx: ForecastContext, handles: PipelineHandles,
                      policy: Optional[PollPolicy] = None,
                      cancel: Optional[threading.Event] = None) -> None:
    """
    Delete a known set of pipeline resources in reverse creation order.

    Raises:
        RunCancelled: If cancel is set before a delete stage starts
    """
    cancel = cancel or threading.Event()
    _teardown(ForecastResources(ctx, policy=policy, cancel=cancel), handles, None, cancel)


def _teardown(resources: ForecastResources, handles: PipelineHandles, run_id: Optional[str],
              cancel: threading.Event) -> None:
    logger.info("clean up")
    if run_id:
        emit_event(run_id, EventTypes.TEARDOWN_START, {})

    _stage(run_id, "delete forecast export job",
           lambda: resources.delete_forecast_export_job(handles.forecast_export_job_arn), cancel)
    _stage(run_id, "delete forecast",
           lambda: resources.delete_forecast(handles.forecast_arn), cancel)
    _stage(run_id, "delete predictor",
           lambda: resources.delete_predictor(handles.predictor_arn), cancel)
    _stage(run_id, "delete dataset group",
           lambda: resources.delete_dataset_group(handles.dataset_group_arn), cancel)
    _stage(run_id, "delete dataset import job",
           lambda: resources.delete_dataset_import_job(handles.dataset_import_job_arn), cancel)
    _stage(run_id, "delete dataset",
           lambda: resources.delete_dataset(handles.dataset_arn), cancel)

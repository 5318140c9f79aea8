"""Main CLI entrypoint for forecast-pipeline."""

import json
import logging
import sys
import threading
from typing import Any, Dict, Optional

import click
from botocore.exceptions import BotoCoreError, ClientError

from ..cleanup import list_tagged_resources, nuke_leftovers
from ..config import PipelineConfig, PollPolicy, poll_policy_from_env
from ..context import ForecastContext
from ..errors import ForecastPipelineError
from ..events import EventTypes, emit_event, get_status_from_events, read_events
from ..ids import is_valid_run_id, new_run_id
from ..pipeline import run_pipeline
from ..query import query_forecast
from ..state import list_runs, run_exists
from ..tags import parse_user_tags

PIPELINE_ERRORS = (ForecastPipelineError, ClientError, BotoCoreError, ValueError)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    formatter = logging.Formatter("%(levelname)s: %(message)s")
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    else:
        root.setLevel(level)
        for handler in root.handlers:
            handler.setFormatter(formatter)
    # botocore is chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.option('--region', envvar='AWS_REGION', help='AWS region (defaults to the boto3 session region)')
@click.pass_context
def main(ctx, verbose, region):
    """Provision, run and tear down an Amazon Forecast pipeline."""
    ctx.ensure_object(dict)
    ctx.obj['region'] = region
    _setup_logging(verbose)


def _json_output(data: Dict[str, Any]) -> None:
    click.echo(json.dumps(data, indent=None))


def _fail(message: str, output_json: bool, code: int = 1) -> None:
    if output_json:
        _json_output({'error': message})
    else:
        click.echo(f"❌ {message}", err=True)
    sys.exit(code)


def _build_context(ctx) -> ForecastContext:
    return ForecastContext.from_session(region=ctx.obj.get('region'))


def _poll_policy(poll_interval: Optional[float], max_attempts: Optional[int]) -> PollPolicy:
    policy = poll_policy_from_env()
    if poll_interval is not None:
        policy = PollPolicy(interval_seconds=poll_interval, max_attempts=policy.max_attempts)
    if max_attempts is not None:
        policy = PollPolicy(interval_seconds=policy.interval_seconds, max_attempts=max_attempts)
    return policy


def _arm_deadline(cancel: threading.Event, deadline_minutes: Optional[float]) -> Optional[threading.Timer]:
    if not deadline_minutes:
        return None
    timer = threading.Timer(deadline_minutes * 60, cancel.set)
    timer.daemon = True
    timer.start()
    return timer


@main.command()
@click.option('--bucket', envvar='FORECAST_PIPELINE_BUCKET', help='S3 bucket holding input data and receiving the export')
@click.option('--role-arn', envvar='FORECAST_PIPELINE_ROLE_ARN', help='IAM role Forecast assumes to access the bucket')
@click.option('--dataset-name', envvar='FORECAST_PIPELINE_DATASET_NAME', help='Base name for every resource')
@click.option('--input-key', help='S3 key of the input CSV (default: <dataset-name>.csv)')
@click.option('--output-prefix', help='S3 prefix for the export (default: <dataset-name>_forecast/)')
@click.option('--horizon', type=int, help='Forecast horizon in data-frequency steps')
@click.option('--poll-interval', type=float, help='Seconds between status polls')
@click.option('--max-attempts', type=int, help='Give up waiting after this many polls')
@click.option('--deadline-minutes', type=float,
              help='Stop the run after this long; the current wait ends and no further stage starts')
@click.option('--no-teardown', is_flag=True, help='Leave resources in place after the export')
@click.option('--tag', 'tag_strings', multiple=True, help='Extra resource tag key=value')
@click.option('--json', 'output_json', is_flag=True, help='Output machine-readable JSON')
@click.pass_context
def run(ctx, bucket, role_arn, dataset_name, input_key, output_prefix, horizon, poll_interval,
        max_attempts, deadline_minutes, no_teardown, tag_strings, output_json):
    """Run the full create, export and teardown sequence."""
    cancel = threading.Event()
    timer = None
    run_id = None
    try:
        config = PipelineConfig.from_env(
            bucket=bucket,
            role_arn=role_arn,
            dataset_name=dataset_name,
            input_key=input_key,
            output_prefix=output_prefix,
            forecast_horizon=horizon,
            poll=_poll_policy(poll_interval, max_attempts),
            teardown=not no_teardown,
            extra_tags=parse_user_tags(list(tag_strings)),
        )
        forecast_ctx = _build_context(ctx)

        run_id = new_run_id()
        if not output_json:
            click.echo(f"🚀 Run started: {run_id}")

        timer = _arm_deadline(cancel, deadline_minutes)
        handles = run_pipeline(forecast_ctx, config, cancel=cancel, run_id=run_id)
    except PIPELINE_ERRORS as e:
        suffix = f" (run {run_id}; leftovers can be removed with 'cleanup {run_id}')" if run_id else ""
        _fail(f"Pipeline failed: {e}{suffix}", output_json)
        return
    finally:
        if timer is not None:
            timer.cancel()

    if output_json:
        _json_output({'run_id': run_id, 'status': 'succeeded', 'handles': handles.to_dict()})
    else:
        click.echo(f"✅ Run {run_id} finished")
        for key, arn in handles.to_dict().items():
            click.echo(f"  {key}: {arn}")


@main.command()
@click.argument('run_id', required=False)
@click.option('--json', 'output_json', is_flag=True, help='Output machine-readable JSON')
def status(run_id, output_json):
    """Show a run's status, or list runs when no RUN_ID is given."""
    try:
        if run_id is None:
            runs = [{'run_id': r, 'status': get_status_from_events(r)} for r in list_runs()]
            if output_json:
                _json_output({'runs': runs})
            else:
                for r in runs:
                    click.echo(f"{r['run_id']}  {r['status']}")
            return

        if not run_exists(run_id):
            _fail(f"Run {run_id} not found", output_json, code=2)
            return

        events = read_events(run_id)
        run_status = get_status_from_events(run_id)
    except ValueError as e:
        _fail(str(e), output_json)
        return

    if output_json:
        _json_output({'run_id': run_id, 'status': run_status, 'events': events})
        return

    color = 'green' if run_status == 'succeeded' else 'red' if run_status == 'failed' else 'yellow'
    click.echo(f"📊 Run: {run_id}")
    click.echo(f"Status: {click.style(run_status, fg=color)}")
    for event in events[-5:]:
        click.echo(f"  [{event.get('ts', '')}] {event.get('type', 'UNKNOWN')}: {json.dumps(event.get('data', {}))}")


@main.command()
@click.argument('forecast_arn')
@click.option('--item-id', required=True, help='item_id to fetch predictions for')
@click.option('--start-date', help='ISO 8601 start, e.g. 2015-01-01T00:00:00')
@click.option('--end-date', help='ISO 8601 end')
@click.option('--json', 'output_json', is_flag=True, help='Output machine-readable JSON')
@click.pass_context
def query(ctx, forecast_arn, item_id, start_date, end_date, output_json):
    """Print the predictions of an ACTIVE forecast for one item."""
    try:
        predictions = query_forecast(_build_context(ctx), forecast_arn, item_id,
                                     start_date=start_date, end_date=end_date)
    except PIPELINE_ERRORS as e:
        _fail(f"Query failed: {e}", output_json)
        return

    if output_json:
        _json_output({'item_id': item_id, 'predictions': predictions})
        return

    for quantile, points in sorted(predictions.items()):
        click.echo(f"{quantile}:")
        for point in points:
            click.echo(f"  {point.get('Timestamp')}  {point.get('Value')}")


@main.command()
@click.argument('run_id')
@click.option('--yes', is_flag=True, help='Skip confirmation prompt')
@click.option('--poll-interval', type=float, help='Seconds between status polls')
@click.option('--max-attempts', type=int, help='Give up waiting after this many polls')
@click.option('--json', 'output_json', is_flag=True, help='Output machine-readable JSON')
@click.pass_context
def cleanup(ctx, run_id, yes, poll_interval, max_attempts, output_json):
    """Delete every Forecast resource tagged with RUN_ID."""
    try:
        forecast_ctx = _build_context(ctx)
        found = list_tagged_resources(forecast_ctx, run_id)
    except PIPELINE_ERRORS as e:
        _fail(f"Cleanup failed: {e}", output_json)
        return

    if not found:
        if output_json:
            _json_output({'run_id': run_id, 'removed': 0, 'failed': 0})
        else:
            click.echo(f"No resources tagged with run_id={run_id}")
        return

    if not output_json:
        for resource in found:
            click.echo(f"  {resource.resource_type}: {resource.arn}")
    if not yes and not click.confirm(f"Delete {len(found)} resources?"):
        click.echo("❌ Cleanup cancelled")
        return

    has_trail = is_valid_run_id(run_id) and run_exists(run_id)
    if has_trail:
        emit_event(run_id, EventTypes.GC_SCAN, {'found': [r.arn for r in found]})

    removed, failed = nuke_leftovers(forecast_ctx, found, policy=_poll_policy(poll_interval, max_attempts))

    if has_trail:
        emit_event(run_id, EventTypes.GC_CLEANED, {'removed': removed, 'failed': failed})

    if output_json:
        _json_output({'run_id': run_id, 'removed': removed, 'failed': failed})
    else:
        click.echo(f"🗑️  Removed {removed}, failed {failed}")

    if failed:
        sys.exit(1)


if __name__ == '__main__':
    main()

"""
Read predictions for a single item from an ACTIVE forecast.
"""

import logging
from typing import Any, Dict, List, Optional

from .context import ForecastContext

logger = logging.getLogger(__name__)


def query_forecast(ctx: ForecastContext, forecast_arn: str, item_id: str,
                   start_date: Optional[str] = None, end_date: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
    """
    Fetch the forecast for one item_id.

    Args:
        ctx: Forecast context with a forecastquery client
        forecast_arn: ARN of an ACTIVE forecast
        item_id: Value of the item_id dimension to filter on
        start_date: Optional ISO 8601 start (yyyy-MM-ddTHH:mm:ss)
        end_date: Optional ISO 8601 end

    Returns:
        Mapping of quantile ("p10", "p50", "p90") to a list of
        {"Timestamp": ..., "Value": ...} points
    """
    if ctx.query is None:
        raise ValueError("ForecastContext has no forecastquery client")

    params: Dict[str, Any] = {"ForecastArn": forecast_arn, "Filters": {"item_id": item_id}}
    if start_date:
        params["StartDate"] = start_date
    if end_date:
        params["EndDate"] = end_date

    resp = ctx.query.query_forecast(**params)
    predictions = resp.get("Forecast", {}).get("Predictions", {})
    logger.debug(f"Got {len(predictions)} quantiles for {item_id}")
    return predictions

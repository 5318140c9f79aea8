"""
forecast-pipeline - Provision, run and tear down Amazon Forecast pipelines.

This package creates a dataset, imports data from S3, trains a predictor,
generates and exports a forecast, then deletes every resource again. Each
asynchronous resource is polled until it settles.
"""

__version__ = "0.1.0"

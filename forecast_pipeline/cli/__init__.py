"""Command line interface for forecast-pipeline."""

from .main import main

__all__ = ["main"]

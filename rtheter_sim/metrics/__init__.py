"""Metrics exports."""

from .aggregator import ResultAggregator
from .base import IMetric
from .stats import linear_quantile, summarize

__all__ = ["IMetric", "ResultAggregator", "linear_quantile", "summarize"]

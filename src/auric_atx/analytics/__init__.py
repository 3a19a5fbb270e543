"""Trend analytics over bucketed ATX observations."""

from .trend import TrendBuilder

__all__ = ["TrendBuilder"]

"""
Core module for the Service Readiness Engine.
Contains data models, geometry helpers, scoring and aggregation.

The viewport pass orchestration (core.analytics) depends on the loaders and
is imported from its module directly.
"""

from core.models import Feature, FeatureCollection, BoundingBox, ReadinessResult, AggregateResult
from core.settings import AnalysisSettings
from core.candidates import filter_near
from core.readiness import score, analyze_area, analyze_areas, ReadinessReport
from core.aggregator import aggregate_length, aggregate_count, top_bins
from core.scheduler import DebouncedScheduler, SchedulerState

__all__ = [
    # Models
    "Feature",
    "FeatureCollection",
    "BoundingBox",
    "ReadinessResult",
    "AggregateResult",
    "AnalysisSettings",
    # Readiness
    "filter_near",
    "score",
    "analyze_area",
    "analyze_areas",
    "ReadinessReport",
    # Viewport
    "aggregate_length",
    "aggregate_count",
    "top_bins",
    "DebouncedScheduler",
    "SchedulerState",
]

"""Metric families and the samples they hold, as produced by exposition parsing."""

import enum
from dataclasses import dataclass, field
from typing import List, Optional


class FamilyType(enum.Enum):
    """The type of a metric family, numbered as in the exposition protocol."""

    COUNTER = 0
    GAUGE = 1
    SUMMARY = 2
    UNTYPED = 3
    HISTOGRAM = 4
    GAUGE_HISTOGRAM = 5


@dataclass(frozen=True)
class Label:
    """A label name paired with its value; either may be unset (None)."""

    name: Optional[str] = None
    value: Optional[str] = None


@dataclass
class Counter:
    """The value of a counter sample."""

    value: Optional[float] = None


@dataclass
class Gauge:
    """The value of a gauge sample."""

    value: Optional[float] = None


@dataclass
class Untyped:
    """The value of an untyped sample."""

    value: Optional[float] = None


@dataclass
class Quantile:
    """One quantile of a summary and its observed value."""

    quantile: Optional[float] = None
    value: Optional[float] = None


@dataclass
class Summary:
    """Count, sum and quantiles of a summary sample."""

    sample_count: Optional[int] = None
    sample_sum: Optional[float] = None
    quantiles: List[Quantile] = field(default_factory=list)


@dataclass
class Bucket:
    """One cumulative bucket of a histogram."""

    upper_bound: Optional[float] = None
    cumulative_count: Optional[int] = None


@dataclass
class Histogram:
    """Count, sum and buckets of a histogram sample."""

    sample_count: Optional[int] = None
    sample_sum: Optional[float] = None
    buckets: List[Bucket] = field(default_factory=list)


@dataclass
class Sample:
    """One sample of a metric family: its labels, its value and a timestamp."""

    labels: List[Label] = field(default_factory=list)
    gauge: Optional[Gauge] = None
    counter: Optional[Counter] = None
    summary: Optional[Summary] = None
    untyped: Optional[Untyped] = None
    histogram: Optional[Histogram] = None
    timestamp_ms: Optional[int] = None


@dataclass
class MetricFamily:
    """A named group of samples sharing a type, help text and unit."""

    name: Optional[str] = None
    help: Optional[str] = None
    type: Optional[FamilyType] = None
    metrics: List[Sample] = field(default_factory=list)
    unit: Optional[str] = None
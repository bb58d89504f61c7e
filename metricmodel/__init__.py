"""Metric data model, label fingerprinting, name escaping, alerts, text format parsing and content negotiation."""

__version__ = "0.1.0"

__all__ = [
    "alert",
    "autoneg",
    "families",
    "fingerprinting",
    "fnv",
    "labels",
    "labelset",
    "metric",
    "signature",
    "textparse",
]
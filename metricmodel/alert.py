"""Alerts and collections of alerts."""

import enum
from dataclasses import dataclass, field
from datetime import datetime

from .labels import ALERT_NAME_LABEL
from .labelset import LabelSet


class AlertStatus(str, enum.Enum):
    """Whether an alert is firing or resolved."""

    FIRING = "firing"
    RESOLVED = "resolved"

    def __str__(self):
        return self.value


def _now_like(ts):
    return datetime.now(ts.tzinfo)


@dataclass
class Alert:
    """An alert: identifying labels, annotations and an activity interval.

    ``starts_at`` and ``ends_at`` are optional; None means unset.
    """

    labels: LabelSet = field(default_factory=LabelSet)
    annotations: LabelSet = field(default_factory=LabelSet)
    starts_at: datetime = None
    ends_at: datetime = None
    generator_url: str = ""

    def __post_init__(self):
        self.labels = LabelSet(self.labels or {})
        self.annotations = LabelSet(self.annotations or {})

    def name(self):
        """Return the value of the alert-name label, or an empty string."""
        return self.labels.get(ALERT_NAME_LABEL, "")

    def fingerprint(self):
        """Return the fingerprint of the alert's label set."""
        return self.labels.fingerprint()

    def __str__(self):
        text = f"{self.name()}[{str(self.fingerprint())[:7]}]"
        return text + ("[resolved]" if self.resolved() else "[active]")

    def resolved(self):
        """Tell whether the activity interval ended in the past."""
        if self.ends_at is None:
            return False
        return self.resolved_at(_now_like(self.ends_at))

    def resolved_at(self, ts):
        """Tell whether the activity interval ended at or before ``ts``."""
        if self.ends_at is None:
            return False
        return not self.ends_at > ts

    def status(self):
        """Return the alert's status now."""
        return AlertStatus.RESOLVED if self.resolved() else AlertStatus.FIRING

    def status_at(self, ts):
        """Return the alert's status at ``ts``."""
        return AlertStatus.RESOLVED if self.resolved_at(ts) else AlertStatus.FIRING

    def validate(self):
        """Raise ValueError if the alert data is inconsistent."""
        if self.starts_at is None:
            raise ValueError("start time missing")
        if self.ends_at is not None and self.ends_at < self.starts_at:
            raise ValueError("start time must be before end time")
        try:
            self.labels.validate()
        except ValueError as err:
            raise ValueError(f"invalid label set: {err}") from err
        if not self.labels:
            raise ValueError("at least one label pair required")
        try:
            self.annotations.validate()
        except ValueError as err:
            raise ValueError(f"invalid annotations: {err}") from err


class Alerts(list):
    """A list of alerts."""

    def has_firing(self):
        """Tell whether any alert is not resolved now."""
        return any(not alert.resolved() for alert in self)

    def has_firing_at(self, ts):
        """Tell whether any alert is not resolved at ``ts``."""
        return any(not alert.resolved_at(ts) for alert in self)

    def status(self):
        """Return FIRING if at least one alert is firing now."""
        return AlertStatus.FIRING if self.has_firing() else AlertStatus.RESOLVED

    def status_at(self, ts):
        """Return FIRING if at least one alert is firing at ``ts``."""
        return AlertStatus.FIRING if self.has_firing_at(ts) else AlertStatus.RESOLVED


def _both_set_and_before(a, b):
    return a is not None and b is not None and a < b


def _alert_less(a, b):
    if _both_set_and_before(a.starts_at, b.starts_at) or (a.starts_at is None and b.starts_at is not None):
        return True
    if _both_set_and_before(a.ends_at, b.ends_at) or (a.ends_at is None and b.ends_at is not None):
        return True
    return a.fingerprint() < b.fingerprint()


def sort_alerts(alerts):
    """Return a new Alerts list in chronological order.

    Alerts are ordered by start time, then end time, then fingerprint, placed
    one at a time by insertion.
    """
    result = Alerts()
    for alert in alerts:
        pos = len(result)
        while pos > 0 and _alert_less(alert, result[pos - 1]):
            pos -= 1
        result.insert(pos, alert)
    return result
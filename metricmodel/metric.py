"""Metrics, metric name validation and name escaping schemes."""

import dataclasses
import enum
import re

from .families import Label, MetricFamily, Sample
from .labels import (
    METRIC_NAME_LABEL,
    ValidationScheme,
    _is_valid_utf8,
    _quote,
    _to_text,
    get_name_validation_scheme,
)
from .labelset import LabelSet


class MetricType(str, enum.Enum):
    """Metric type values as used in metadata."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"
    GAUGE_HISTOGRAM = "gaugehistogram"
    SUMMARY = "summary"
    INFO = "info"
    STATESET = "stateset"
    UNKNOWN = "unknown"

    def __str__(self):
        return self.value


ESCAPING_KEY = "escaping"
ALLOW_UTF8 = "allow-utf-8"
ESCAPE_UNDERSCORES = "underscores"
ESCAPE_DOTS = "dots"
ESCAPE_VALUES = "values"


class EscapingScheme(enum.Enum):
    """How names that are not legacy-valid are presented to legacy systems."""

    NO_ESCAPING = 0
    UNDERSCORE_ESCAPING = 1
    DOTS_ESCAPING = 2
    VALUE_ENCODING_ESCAPING = 3

    def __str__(self):
        return _SCHEME_NAMES[self]


_SCHEME_NAMES = {
    EscapingScheme.NO_ESCAPING: ALLOW_UTF8,
    EscapingScheme.UNDERSCORE_ESCAPING: ESCAPE_UNDERSCORES,
    EscapingScheme.DOTS_ESCAPING: ESCAPE_DOTS,
    EscapingScheme.VALUE_ENCODING_ESCAPING: ESCAPE_VALUES,
}
_SCHEMES_BY_NAME = {name: scheme for scheme, name in _SCHEME_NAMES.items()}

NAME_ESCAPING_SCHEME = EscapingScheme.VALUE_ENCODING_ESCAPING
"""The default escaping used when none is requested."""

METRIC_NAME_RE = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*\Z")
"""Matches valid legacy metric names (use with ``match``)."""


class Metric(LabelSet):
    """A label set identifying exactly one stream of samples."""

    def clone(self):
        """Return a copy of the metric."""
        return Metric(self)

    def __str__(self):
        name = self.get(METRIC_NAME_LABEL)
        pairs = sorted(
            f"{label}={_quote(value)}" for label, value in self.items() if label != METRIC_NAME_LABEL
        )
        if not pairs:
            return name if name is not None else "{}"
        return f"{name or ''}{{{', '.join(pairs)}}}"


def _is_legacy_rune(ch, index):
    return (
        ("a" <= ch <= "z")
        or ("A" <= ch <= "Z")
        or ch == "_"
        or ch == ":"
        or ("0" <= ch <= "9" and index > 0)
    )


def is_valid_legacy_metric_name(name):
    """Tell whether ``name`` is a valid metric name under the legacy rules."""
    text = _to_text(name)
    if not text:
        return False
    return all(_is_legacy_rune(ch, i) for i, ch in enumerate(text))


def is_valid_metric_name(name):
    """Tell whether ``name`` is a valid metric name under the current scheme."""
    if get_name_validation_scheme() is ValidationScheme.LEGACY:
        return is_valid_legacy_metric_name(name)
    text = _to_text(name)
    if not text:
        return False
    return _is_valid_utf8(text)


def _sample_needs_escaping(sample):
    for label in sample.labels:
        name = label.name or ""
        if name == METRIC_NAME_LABEL and not is_valid_legacy_metric_name(label.value or ""):
            return True
        if not is_valid_legacy_metric_name(name):
            return True
    return False


def _escape_label(label, scheme):
    if label.name == METRIC_NAME_LABEL:
        if label.value is None or is_valid_legacy_metric_name(label.value):
            return label
        return Label(name=METRIC_NAME_LABEL, value=escape_name(label.value, scheme))
    if label.name is None or is_valid_legacy_metric_name(label.name):
        return label
    return Label(name=escape_name(label.name, scheme), value=label.value)


def escape_metric_family(family, scheme):
    """Return ``family`` with its names escaped, leaving the input untouched.

    Samples that need no escaping are shared with the input.
    """
    if family is None:
        return None
    scheme = EscapingScheme(scheme)
    if scheme is EscapingScheme.NO_ESCAPING:
        return family

    if family.name is None or is_valid_legacy_metric_name(family.name):
        name = family.name
    else:
        name = escape_name(family.name, scheme)
    out = MetricFamily(name=name, help=family.help, type=family.type, unit=family.unit)

    for sample in family.metrics:
        if not _sample_needs_escaping(sample):
            out.metrics.append(sample)
            continue
        out.metrics.append(
            dataclasses.replace(sample, labels=[_escape_label(label, scheme) for label in sample.labels])
        )
    return out


def _value_encode_char(ch, index):
    if _is_legacy_rune(ch, index):
        return ch
    code = ord(ch)
    if 0xDC80 <= code <= 0xDCFF:
        # A byte that was not valid UTF-8 reads as the replacement character.
        return "_fffd_"
    if 0xD800 <= code <= 0xDFFF:
        return "_FFFD_"
    if code < 0x100:
        return f"_{code:02x}_"
    if code < 0x10000:
        return f"_{code:04x}_"
    return ""


def _dots_encode_char(ch, index):
    if ch == "_":
        return "__"
    if ch == ".":
        return "_dot_"
    return ch if _is_legacy_rune(ch, index) else "_"


def escape_name(name, scheme):
    """Escape ``name`` according to ``scheme``; the name is not validated."""
    scheme = EscapingScheme(scheme)
    if not name or scheme is EscapingScheme.NO_ESCAPING:
        return name
    if scheme is EscapingScheme.UNDERSCORE_ESCAPING:
        if is_valid_legacy_metric_name(name):
            return name
        return "".join(ch if _is_legacy_rune(ch, i) else "_" for i, ch in enumerate(name))
    if scheme is EscapingScheme.DOTS_ESCAPING:
        return "".join(_dots_encode_char(ch, i) for i, ch in enumerate(name))
    if is_valid_legacy_metric_name(name):
        return name
    return "U__" + "".join(_value_encode_char(ch, i) for i, ch in enumerate(name))


def _hex_digit(ch):
    code = ord(ch) | 0x20
    if 0x30 <= code <= 0x39:
        return code - 0x30
    if 0x61 <= code <= 0x66:
        return code - 0x61 + 10
    return None


def _is_valid_rune(value):
    return 0 <= value <= 0x10FFFF and not 0xD800 <= value <= 0xDFFF


def _value_decode(name):
    body = name[3:]
    length = len(body)
    out = []
    i = 0
    while i < length:
        if body[i] != "_":
            out.append(body[i])
            i += 1
            continue
        i += 1
        if i >= length:
            return name
        if body[i] == "_":
            out.append("_")
            i += 1
            continue
        value = 0
        digits = 0
        while True:
            if i >= length or digits > 4:
                return name
            if body[i] == "_":
                if not _is_valid_rune(value):
                    return name
                out.append(chr(value))
                i += 1
                break
            digit = _hex_digit(body[i])
            if digit is None:
                return name
            value = value * 16 + digit
            digits += 1
            i += 1
    return "".join(out)


def unescape_name(name, scheme):
    """Undo ``escape_name`` where possible; on malformed input return it unchanged."""
    scheme = EscapingScheme(scheme)
    if not name:
        return name
    if scheme in (EscapingScheme.NO_ESCAPING, EscapingScheme.UNDERSCORE_ESCAPING):
        return name
    if scheme is EscapingScheme.DOTS_ESCAPING:
        return name.replace("_dot_", ".").replace("__", "_")
    if not name.startswith("U__"):
        return name
    return _value_decode(name)


def to_escaping_scheme(s):
    """Return the EscapingScheme named by ``s``, raising ValueError if unknown."""
    if s == "":
        raise ValueError("got empty string instead of escaping scheme")
    try:
        return _SCHEMES_BY_NAME[s]
    except KeyError:
        raise ValueError(f"unknown format scheme {s}") from None
"""Parser for the flat, line-based text exposition format."""

import io
import math
import re

from .families import (
    Bucket,
    Counter,
    FamilyType,
    Gauge,
    Histogram,
    Label,
    MetricFamily,
    Quantile,
    Sample,
    Summary,
    Untyped,
)
from .labels import BUCKET_LABEL, METRIC_NAME_LABEL, QUANTILE_LABEL, _quote, is_valid_label_value
from .signature import labels_to_signature

_NEWLINE = ord("\n")
_HASH = ord("#")
_OPEN_BRACE = ord("{")
_CLOSE_BRACE = ord("}")
_EQUALS = ord("=")
_QUOTE = ord('"')
_BACKSLASH = ord("\\")
_COMMA = ord(",")
_LETTER_N = ord("n")
_BLANKS = frozenset(b" \t")

_CHUNK_SIZE = 8192
_MASK64 = (1 << 64) - 1
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1

_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_SPECIAL_FLOAT_RE = re.compile(r"[+-]?(?:inf|infinity)|nan", re.IGNORECASE)
_INT_RE = re.compile(r"[+-]?[0-9]+")

_RUNE_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    "\\": "\\\\",
    "'": "\\'",
}


class ParseError(ValueError):
    """A syntax error in the text exposition format, with its line number."""

    def __init__(self, line, msg):
        super().__init__(line, msg)
        self.line = line
        self.msg = msg

    def __str__(self):
        return f"text format parsing error in line {self.line}: {self.msg}"


class _EndOfInput(Exception):
    """The input ran out."""


def _iter_bytes(stream):
    while True:
        chunk = stream.read(_CHUNK_SIZE)
        if not chunk:
            return
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8", "surrogateescape")
        yield from chunk


def _quote_byte(b):
    ch = chr(b)
    if ch in _RUNE_ESCAPES:
        inner = _RUNE_ESCAPES[ch]
    elif ch.isprintable():
        inner = ch
    elif b < 0x80:
        inner = f"\\x{b:02x}"
    else:
        inner = f"\\u{b:04x}"
    return f"'{inner}'"


def _is_label_name_start(b):
    return ord("a") <= b <= ord("z") or ord("A") <= b <= ord("Z") or b == ord("_")


def _is_label_name_continuation(b):
    return _is_label_name_start(b) or ord("0") <= b <= ord("9")


def _is_metric_name_start(b):
    return _is_label_name_start(b) or b == ord(":")


def _is_metric_name_continuation(b):
    return _is_label_name_continuation(b) or b == ord(":")


def _is_count(name):
    return len(name) > 6 and name.endswith("_count")


def _is_sum(name):
    return len(name) > 4 and name.endswith("_sum")


def _is_bucket(name):
    return len(name) > 7 and name.endswith("_bucket")


def _summary_metric_name(name):
    if _is_count(name):
        return name[:-6]
    if _is_sum(name):
        return name[:-4]
    return name


def _histogram_metric_name(name):
    if _is_bucket(name):
        return name[:-7]
    return _summary_metric_name(name)


def _parse_float(text):
    if any(ch in text for ch in "pP_"):
        raise ValueError("unsupported character in float")
    if _SPECIAL_FLOAT_RE.fullmatch(text):
        return float(text)
    if not _FLOAT_RE.fullmatch(text):
        raise ValueError(f"invalid float syntax: {text!r}")
    value = float(text)
    if math.isinf(value):
        raise ValueError(f"float out of range: {text!r}")
    return value


def _parse_int64(text):
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"invalid integer syntax: {text!r}")
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _to_uint64(value):
    if math.isfinite(value) and -(1 << 63) < value < (1 << 64):
        return int(value) & _MASK64
    return 1 << 63


class TextParser:
    """Parses the text exposition format into metric families.

    One parser may be reused for several inputs, but not concurrently.
    """

    def __init__(self):
        self._reset(iter(()))

    def _reset(self, byte_source):
        self._bytes = byte_source
        self._families = {}
        self._line_count = 0
        self._byte = 0
        self._token = bytearray()
        self._mf = None
        self._metric = None
        self._label_name = None
        self._label_kept = False
        self._current_labels = {}
        self._summaries = {}
        self._histograms = {}
        self._current_quantile = math.nan
        self._current_bucket = math.nan
        self._is_summary_count = False
        self._is_summary_sum = False
        self._is_histogram_count = False
        self._is_histogram_sum = False

    def text_to_metric_families(self, stream):
        """Read ``stream`` and return its metric families keyed by name.

        ``stream`` is any object with a ``read`` method returning text or
        bytes. Families without samples are left out. Duplicate samples and
        labels are kept as they are; nothing is sorted.
        """
        self._reset(_iter_bytes(stream))
        state = self._start_of_line
        try:
            while state is not None:
                state = state()
        except _EndOfInput:
            raise ParseError(self._line_count, "unexpected end of input stream") from None
        return {name: family for name, family in self._families.items() if family.metrics}

    # Helpers for reading bytes and tokens.

    def _error(self, msg):
        return ParseError(self._line_count, msg)

    def _read_byte(self):
        try:
            self._byte = next(self._bytes)
        except StopIteration:
            raise _EndOfInput from None

    def _token_text(self):
        return bytes(self._token).decode("utf-8", "surrogateescape")

    def _skip_blank_tab(self):
        self._read_byte()
        while self._byte in _BLANKS:
            self._read_byte()

    def _skip_blank_tab_if_current_blank_tab(self):
        if self._byte in _BLANKS:
            self._skip_blank_tab()

    def _read_token_until_whitespace(self):
        self._token.clear()
        while self._byte not in _BLANKS and self._byte != _NEWLINE:
            self._token.append(self._byte)
            self._read_byte()

    def _read_token_until_newline(self, recognize_escapes):
        self._token.clear()
        escaped = False
        while True:
            if recognize_escapes and escaped:
                if self._byte == _BACKSLASH:
                    self._token.append(self._byte)
                elif self._byte == _LETTER_N:
                    self._token.append(_NEWLINE)
                else:
                    raise self._error(f"invalid escape sequence '\\{chr(self._byte)}'")
                escaped = False
            elif self._byte == _NEWLINE:
                return
            elif self._byte == _BACKSLASH:
                escaped = True
            else:
                self._token.append(self._byte)
            self._read_byte()

    def _read_token_while(self, is_start, is_continuation):
        self._token.clear()
        if not is_start(self._byte):
            return
        while True:
            self._token.append(self._byte)
            self._read_byte()
            if not is_continuation(self._byte):
                return

    def _read_token_as_metric_name(self):
        self._read_token_while(_is_metric_name_start, _is_metric_name_continuation)

    def _read_token_as_label_name(self):
        self._read_token_while(_is_label_name_start, _is_label_name_continuation)

    def _read_token_as_label_value(self):
        self._token.clear()
        escaped = False
        while True:
            self._read_byte()
            if escaped:
                if self._byte in (_QUOTE, _BACKSLASH):
                    self._token.append(self._byte)
                elif self._byte == _LETTER_N:
                    self._token.append(_NEWLINE)
                else:
                    raise self._error(f"invalid escape sequence '\\{chr(self._byte)}'")
                escaped = False
                continue
            if self._byte == _QUOTE:
                return
            if self._byte == _NEWLINE:
                raise self._error(
                    f"label value {_quote(self._token_text())} contains unescaped new-line"
                )
            if self._byte == _BACKSLASH:
                escaped = True
            else:
                self._token.append(self._byte)

    def _set_or_create_current_mf(self):
        self._is_summary_count = self._is_summary_sum = False
        self._is_histogram_count = self._is_histogram_sum = False
        name = self._token_text()
        family = self._families.get(name)
        if family is not None:
            self._mf = family
            return
        family = self._families.get(_summary_metric_name(name))
        if family is not None and family.type is FamilyType.SUMMARY:
            self._is_summary_count = _is_count(name)
            self._is_summary_sum = _is_sum(name)
            self._mf = family
            return
        family = self._families.get(_histogram_metric_name(name))
        if family is not None and family.type is FamilyType.HISTOGRAM:
            self._is_histogram_count = _is_count(name)
            self._is_histogram_sum = _is_sum(name)
            self._mf = family
            return
        self._mf = MetricFamily(name=name)
        self._families[name] = self._mf

    def _is_summary(self):
        return self._mf.type is FamilyType.SUMMARY

    def _is_histogram(self):
        return self._mf.type is FamilyType.HISTOGRAM

    # States.

    def _start_of_line(self):
        self._line_count += 1
        try:
            self._skip_blank_tab()
        except _EndOfInput:
            return None
        if self._byte == _HASH:
            return self._start_comment
        if self._byte == _NEWLINE:
            return self._start_of_line
        return self._reading_metric_name

    def _start_comment(self):
        self._skip_blank_tab()
        if self._byte == _NEWLINE:
            return self._start_of_line
        self._read_token_until_whitespace()
        if self._byte == _NEWLINE:
            return self._start_of_line
        keyword = self._token_text()
        if keyword not in ("HELP", "TYPE"):
            while self._byte != _NEWLINE:
                self._read_byte()
            return self._start_of_line
        self._skip_blank_tab()
        self._read_token_as_metric_name()
        if self._byte == _NEWLINE:
            return self._start_of_line
        if self._byte not in _BLANKS:
            raise self._error("invalid metric name in comment")
        self._set_or_create_current_mf()
        self._skip_blank_tab()
        if self._byte == _NEWLINE:
            return self._start_of_line
        return self._reading_help if keyword == "HELP" else self._reading_type

    def _reading_metric_name(self):
        self._read_token_as_metric_name()
        if not self._token:
            raise self._error("invalid metric name")
        self._set_or_create_current_mf()
        if self._mf.type is None:
            self._mf.type = FamilyType.UNTYPED
        # The sample is attached to its family only once its labels are known.
        self._metric = Sample()
        self._skip_blank_tab_if_current_blank_tab()
        return self._reading_labels

    def _reading_labels(self):
        if self._is_summary() or self._is_histogram():
            self._current_labels = {METRIC_NAME_LABEL: self._mf.name}
            self._current_quantile = math.nan
            self._current_bucket = math.nan
        if self._byte != _OPEN_BRACE:
            return self._reading_value
        return self._start_label_name

    def _start_label_name(self):
        self._skip_blank_tab()
        if self._byte == _CLOSE_BRACE:
            self._skip_blank_tab()
            return self._reading_value
        self._read_token_as_label_name()
        if not self._token:
            raise self._error(f"invalid label name for metric {_quote(self._mf.name)}")
        name = self._token_text()
        if name == METRIC_NAME_LABEL:
            raise self._error(f"label name {_quote(METRIC_NAME_LABEL)} is reserved")
        self._label_name = name
        self._label_kept = not (self._is_summary() and name == QUANTILE_LABEL) and not (
            self._is_histogram() and name == BUCKET_LABEL
        )
        self._skip_blank_tab_if_current_blank_tab()
        if self._byte != _EQUALS:
            raise self._error(f"expected '=' after label name, found {_quote_byte(self._byte)}")
        if self._label_kept and any(label.name == name for label in self._metric.labels):
            raise self._error(f"duplicate label names for metric {_quote(self._mf.name)}")
        return self._start_label_value

    def _start_label_value(self):
        self._skip_blank_tab()
        if self._byte != _QUOTE:
            raise self._error(
                f"expected '\"' at start of label value, found {_quote_byte(self._byte)}"
            )
        self._read_token_as_label_value()
        value = self._token_text()
        if not is_valid_label_value(value):
            raise self._error(f"invalid label value {_quote(value)}")
        name = self._label_name
        if self._label_kept:
            self._metric.labels.append(Label(name=name, value=value))
        if self._is_summary():
            if name == QUANTILE_LABEL:
                try:
                    self._current_quantile = _parse_float(value)
                except ValueError:
                    raise self._error(
                        f"expected float as value for 'quantile' label, got {_quote(value)}"
                    ) from None
            else:
                self._current_labels[name] = value
        if self._is_histogram():
            if name == BUCKET_LABEL:
                try:
                    self._current_bucket = _parse_float(value)
                except ValueError:
                    raise self._error(
                        f"expected float as value for 'le' label, got {_quote(value)}"
                    ) from None
            else:
                self._current_labels[name] = value
        self._skip_blank_tab()
        if self._byte == _COMMA:
            return self._start_label_name
        if self._byte == _CLOSE_BRACE:
            self._skip_blank_tab()
            return self._reading_value
        raise self._error(f"unexpected end of label value {_quote(value)}")

    def _attach_current_metric(self):
        if self._is_summary():
            known = self._summaries
        elif self._is_histogram():
            known = self._histograms
        else:
            self._mf.metrics.append(self._metric)
            return
        signature = labels_to_signature(self._current_labels)
        existing = known.get(signature)
        if existing is not None:
            self._metric = existing
        else:
            known[signature] = self._metric
            self._mf.metrics.append(self._metric)

    def _reading_value(self):
        self._attach_current_metric()
        self._read_token_until_whitespace()
        text = self._token_text()
        try:
            value = _parse_float(text)
        except ValueError:
            raise self._error(f"expected float as value, got {_quote(text)}") from None
        metric = self._metric
        family_type = self._mf.type
        if family_type is FamilyType.COUNTER:
            metric.counter = Counter(value=value)
        elif family_type is FamilyType.GAUGE:
            metric.gauge = Gauge(value=value)
        elif family_type is FamilyType.UNTYPED:
            metric.untyped = Untyped(value=value)
        elif family_type is FamilyType.SUMMARY:
            if metric.summary is None:
                metric.summary = Summary()
            if self._is_summary_count:
                metric.summary.sample_count = _to_uint64(value)
            elif self._is_summary_sum:
                metric.summary.sample_sum = value
            elif not math.isnan(self._current_quantile):
                metric.summary.quantiles.append(
                    Quantile(quantile=self._current_quantile, value=value)
                )
        elif family_type is FamilyType.HISTOGRAM:
            if metric.histogram is None:
                metric.histogram = Histogram()
            if self._is_histogram_count:
                metric.histogram.sample_count = _to_uint64(value)
            elif self._is_histogram_sum:
                metric.histogram.sample_sum = value
            elif not math.isnan(self._current_bucket):
                metric.histogram.buckets.append(
                    Bucket(upper_bound=self._current_bucket, cumulative_count=_to_uint64(value))
                )
        else:
            raise ValueError(f"unexpected type for metric name {_quote(self._mf.name)}")
        if self._byte == _NEWLINE:
            return self._start_of_line
        return self._start_timestamp

    def _start_timestamp(self):
        self._skip_blank_tab()
        self._read_token_until_whitespace()
        text = self._token_text()
        try:
            timestamp = _parse_int64(text)
        except ValueError:
            raise self._error(f"expected integer as timestamp, got {_quote(text)}") from None
        self._metric.timestamp_ms = timestamp
        self._read_token_until_newline(False)
        if self._token:
            raise self._error(f"spurious string after timestamp: {_quote(self._token_text())}")
        return self._start_of_line

    def _reading_help(self):
        if self._mf.help is not None:
            raise self._error(f"second HELP line for metric name {_quote(self._mf.name)}")
        self._read_token_until_newline(True)
        self._mf.help = self._token_text()
        return self._start_of_line

    def _reading_type(self):
        if self._mf.type is not None:
            raise self._error(
                f"second TYPE line for metric name {_quote(self._mf.name)}, "
                "or TYPE reported after samples"
            )
        self._read_token_until_newline(False)
        text = self._token_text()
        family_type = FamilyType.__members__.get(text.upper())
        if family_type is None:
            raise self._error(f"unknown metric type {_quote(text)}")
        self._mf.type = family_type
        return self._start_of_line


def text_to_metric_families(stream):
    """Parse the text format read from ``stream`` into families keyed by name."""
    return TextParser().text_to_metric_families(stream)


def parse_text(text):
    """Parse a string or bytes in the text format into families keyed by name."""
    if isinstance(text, (bytes, bytearray, memoryview)):
        return text_to_metric_families(io.BytesIO(bytes(text)))
    return text_to_metric_families(io.StringIO(text))
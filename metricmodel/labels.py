"""Label names, values and the name validation scheme."""

import enum
import re
from dataclasses import dataclass

ALERT_NAME_LABEL = "alertname"
EXPORTED_LABEL_PREFIX = "exported_"
METRIC_NAME_LABEL = "__name__"
SCHEME_LABEL = "__scheme__"
ADDRESS_LABEL = "__address__"
METRICS_PATH_LABEL = "__metrics_path__"
SCRAPE_INTERVAL_LABEL = "__scrape_interval__"
SCRAPE_TIMEOUT_LABEL = "__scrape_timeout__"
RESERVED_LABEL_PREFIX = "__"
META_LABEL_PREFIX = "__meta_"
TMP_LABEL_PREFIX = "__tmp_"
PARAM_LABEL_PREFIX = "__param_"
JOB_LABEL = "job"
INSTANCE_LABEL = "instance"
BUCKET_LABEL = "le"
QUANTILE_LABEL = "quantile"

LABEL_NAME_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*\Z")
"""Matches valid legacy label names (use with ``match``)."""


class ValidationScheme(enum.Enum):
    """How metric and label names are validated."""

    LEGACY = 0
    UTF8 = 1


_name_validation_scheme = ValidationScheme.LEGACY


def get_name_validation_scheme():
    """Return the process-wide name validation scheme."""
    return _name_validation_scheme


def set_name_validation_scheme(scheme):
    """Set the process-wide name validation scheme."""
    global _name_validation_scheme
    _name_validation_scheme = ValidationScheme(scheme)


def _to_text(value):
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", "surrogateescape")
    return value


def _is_valid_utf8(text):
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _is_legacy_label_char(ch, index):
    return ("a" <= ch <= "z") or ("A" <= ch <= "Z") or ch == "_" or ("0" <= ch <= "9" and index > 0)


def is_valid_label_name(name):
    """Tell whether ``name`` is a valid label name under the current scheme."""
    text = _to_text(name)
    if not text:
        return False
    if _name_validation_scheme is ValidationScheme.LEGACY:
        return all(_is_legacy_label_char(ch, i) for i, ch in enumerate(text))
    return _is_valid_utf8(text)


def is_valid_label_value(value):
    """Tell whether ``value`` is valid UTF-8."""
    return _is_valid_utf8(_to_text(value))


_QUOTE_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    "\\": "\\\\",
    '"': '\\"',
}


def _quote(value):
    """Return ``value`` as a double-quoted, escaped string literal."""
    parts = ['"']
    for ch in _to_text(value):
        code = ord(ch)
        if ch in _QUOTE_ESCAPES:
            parts.append(_QUOTE_ESCAPES[ch])
        elif 0xDC80 <= code <= 0xDCFF:
            parts.append(f"\\x{code - 0xDC00:02x}")
        elif ch.isprintable():
            parts.append(ch)
        elif code < 0x80:
            parts.append(f"\\x{code:02x}")
        elif code < 0x10000:
            parts.append(f"\\u{code:04x}")
        else:
            parts.append(f"\\U{code:08x}")
    parts.append('"')
    return "".join(parts)


def validate_label_name(name):
    """Return ``name`` as text, raising ValueError if it is not a valid label name."""
    text = _to_text(name)
    if not is_valid_label_name(text):
        raise ValueError(f"{_quote(text)} is not a valid label name")
    return text


def format_label_names(names):
    """Join label names with a comma and a space."""
    return ", ".join(str(name) for name in names)


@dataclass(frozen=True, order=True)
class LabelPair:
    """A label name paired with its value; orders by name, then value."""

    name: str
    value: str
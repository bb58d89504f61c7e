"""HTTP Accept header parsing and content-type negotiation."""

import math
import struct
from dataclasses import dataclass, field


@dataclass
class Accept:
    """One clause of an HTTP Accept header."""

    type: str
    sub_type: str = ""
    q: float = 1.0
    params: dict = field(default_factory=dict)


def _parse_q(text):
    if not text or text != text.strip() or "_" in text:
        return 0.0
    try:
        value = float(text)
    except ValueError:
        return 0.0
    if math.isnan(value) or math.isinf(value):
        return value
    try:
        return struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _accept_less(a, b):
    if a.q > b.q:
        return True
    if a.type != "*" and b.type == "*":
        return True
    return a.sub_type != "*" and b.sub_type == "*"


def _parse_clause(part):
    part = part.strip(" ")
    media_range, *params = part.split(";")
    pieces = media_range.split("/")
    clause = Accept(type=pieces[0].strip(" "))
    if len(pieces) == 1 and clause.type == "*":
        clause.sub_type = "*"
    elif len(pieces) == 2:
        clause.sub_type = pieces[1].strip(" ")
    else:
        return None
    for param in params:
        key, sep, value = param.partition("=")
        if not sep:
            continue
        key = key.strip(" ")
        if key == "q":
            clause.q = _parse_q(value)
        else:
            clause.params[key] = value.strip(" ")
    return clause


def parse_accept(header):
    """Parse an Accept header into clauses, most preferred first."""
    result = []
    for part in header.split(","):
        clause = _parse_clause(part)
        if clause is None:
            continue
        pos = len(result)
        while pos > 0 and _accept_less(clause, result[pos - 1]):
            pos -= 1
        result.insert(pos, clause)
    return result


def negotiate(header, alternatives):
    """Pick the alternative content type best matching the Accept header.

    Returns an empty string when nothing matches.
    """
    split = []
    for ctype in alternatives:
        main, sep, sub = ctype.partition("/")
        if not sep:
            raise ValueError(f"content type without subtype: {ctype!r}")
        split.append((ctype, main, sub))
    for clause in parse_accept(header):
        for ctype, main, sub in split:
            if clause.type == main and clause.sub_type in (sub, "*"):
                return ctype
            if clause.type == "*" and clause.sub_type == "*":
                return ctype
    return ""
"""Fingerprints: 64-bit hashes identifying label sets."""

import re

_MAX_UINT64 = (1 << 64) - 1
_HEX_RE = re.compile(r"[0-9a-fA-F]+\Z")


class Fingerprint(int):
    """An unsigned 64-bit hash of a metric's label set."""

    __slots__ = ()

    def __new__(cls, value=0):
        fingerprint = int.__new__(cls, value)
        if not 0 <= fingerprint <= _MAX_UINT64:
            raise ValueError(f"fingerprint out of range: {int(fingerprint)}")
        return fingerprint

    def __str__(self):
        return format(int(self), "016x")

    def __repr__(self):
        return f"Fingerprint(0x{int(self):016x})"


def _parse_hex(s):
    if not _HEX_RE.match(s):
        raise ValueError(f"invalid fingerprint syntax: {s!r}")
    value = int(s, 16)
    if value > _MAX_UINT64:
        raise ValueError(f"fingerprint out of range: {s!r}")
    return Fingerprint(value)


def fingerprint_from_string(s):
    """Turn a hexadecimal string representation into a Fingerprint."""
    return _parse_hex(s)


def parse_fingerprint(s):
    """Parse a hexadecimal string into a Fingerprint."""
    return _parse_hex(s)
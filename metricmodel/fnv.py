"""Inline 64-bit FNV-1a hashing over strings and single bytes."""

OFFSET64 = 14695981039346656037
PRIME64 = 1099511628211

_MASK64 = (1 << 64) - 1


def _as_bytes(s):
    if isinstance(s, (bytes, bytearray, memoryview)):
        return bytes(s)
    return s.encode("utf-8", "surrogateescape")


def hash_new():
    """Return the initial FNV-1a 64-bit hash value."""
    return OFFSET64


def hash_add(h, s):
    """Feed the UTF-8 bytes of ``s`` (or raw bytes) into hash ``h``."""
    for byte in _as_bytes(s):
        h = ((h ^ byte) * PRIME64) & _MASK64
    return h


def hash_add_byte(h, b):
    """Feed a single byte value into hash ``h``."""
    if not 0 <= b <= 0xFF:
        raise ValueError(f"byte value out of range: {b}")
    return ((h ^ b) * PRIME64) & _MASK64
"""Signatures and fingerprints computed over label maps."""

from .fingerprinting import Fingerprint
from .fnv import hash_add, hash_add_byte, hash_new

SEPARATOR_BYTE = 255
"""A byte that cannot occur in valid UTF-8, used to separate hashed strings."""

EMPTY_LABEL_SIGNATURE = hash_new()


def _sorted_signature(labels, names):
    total = hash_new()
    for name in sorted(names):
        total = hash_add(total, name)
        total = hash_add_byte(total, SEPARATOR_BYTE)
        total = hash_add(total, labels.get(name, ""))
        total = hash_add_byte(total, SEPARATOR_BYTE)
    return total


def labels_to_signature(labels):
    """Return a quasi-unique 64-bit signature for a label map."""
    if not labels:
        return EMPTY_LABEL_SIGNATURE
    return _sorted_signature(labels, labels.keys())


def label_set_to_fingerprint(labels):
    """Return the Fingerprint of a label set."""
    if not labels:
        return Fingerprint(EMPTY_LABEL_SIGNATURE)
    return Fingerprint(_sorted_signature(labels, labels.keys()))


def label_set_to_fast_fingerprint(labels):
    """Return an order-independent, collision-prone Fingerprint of a label set."""
    if not labels:
        return Fingerprint(EMPTY_LABEL_SIGNATURE)
    result = 0
    for name, value in labels.items():
        pair_hash = hash_add(hash_new(), name)
        pair_hash = hash_add_byte(pair_hash, SEPARATOR_BYTE)
        pair_hash = hash_add(pair_hash, value)
        result ^= pair_hash
    return Fingerprint(result)


def signature_for_labels(metric, *args):
    """Return the signature of ``metric`` restricted to the given label names."""
    if not args:
        return EMPTY_LABEL_SIGNATURE
    return _sorted_signature(metric, args)


def signature_without_labels(metric, labels):
    """Return the signature of ``metric`` ignoring the given label names."""
    if not metric:
        return EMPTY_LABEL_SIGNATURE
    excluded = labels or ()
    names = [name for name in metric if name not in excluded]
    if not names:
        return EMPTY_LABEL_SIGNATURE
    return _sorted_signature(metric, names)
"""Label sets: mappings of label names to label values."""

import json

from .labels import _quote, is_valid_label_name, is_valid_label_value, validate_label_name
from .signature import label_set_to_fast_fingerprint, label_set_to_fingerprint


class LabelSet(dict):
    """A mapping of label names to label values."""

    def validate(self):
        """Raise ValueError if any name or value in the set is invalid."""
        for name, value in self.items():
            if not is_valid_label_name(name):
                raise ValueError(f"invalid name {_quote(name)}")
            if not is_valid_label_value(value):
                raise ValueError(f"invalid value {_quote(value)}")

    def equal(self, other):
        """Tell whether both sets hold exactly the same pairs."""
        if len(self) != len(other):
            return False
        return all(name in other and other[name] == value for name, value in self.items())

    def before(self, other):
        """Tell whether this set sorts before ``other``.

        Fewer labels sort first. With equal counts, the first differing pair
        in the sorted union of names decides: a missing name sorts first,
        otherwise the values are compared.
        """
        if len(self) < len(other):
            return True
        if len(self) > len(other):
            return False
        for name in sorted([*self, *other]):
            if name not in self:
                return True
            if name not in other:
                return False
            mine, theirs = self[name], other[name]
            if mine < theirs:
                return True
            if mine > theirs:
                return False
        return False

    def clone(self):
        """Return a copy of the label set."""
        return LabelSet(self)

    def merge(self, other):
        """Return a new set with the pairs of ``other`` laid over this one."""
        merged = LabelSet(self)
        merged.update(other)
        return merged

    def fingerprint(self):
        """Return the set's Fingerprint."""
        return label_set_to_fingerprint(self)

    def fast_fingerprint(self):
        """Return the set's Fingerprint from the faster, collision-prone hash."""
        return label_set_to_fast_fingerprint(self)

    def __str__(self):
        pairs = ", ".join(f"{name}={_quote(self[name])}" for name in sorted(self))
        return f"{{{pairs}}}"


def label_set_from_json(text):
    """Decode a JSON object into a LabelSet, checking every label name."""
    data = json.loads(text)
    if data is None:
        return LabelSet()
    if not isinstance(data, dict):
        raise ValueError("label set must be a JSON object")
    result = LabelSet()
    for name, value in data.items():
        if value is None:
            value = ""
        elif not isinstance(value, str):
            raise ValueError(f"label value for {_quote(name)} must be a string")
        result[name] = value
    for name in result:
        validate_label_name(name)
    return result
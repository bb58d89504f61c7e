# metricmodel

Building blocks for working with monitoring metrics in Python, using only
the standard library:

- **Labels and label sets** (`metricmodel.labels`, `metricmodel.labelset`):
  validation of label names and values under a legacy or UTF-8 scheme,
  ordering, cloning, merging, string rendering and a JSON loader.
- **Fingerprints and signatures** (`metricmodel.fnv`,
  `metricmodel.fingerprinting`, `metricmodel.signature`): FNV-1a 64-bit
  hashes of label sets, including signatures that include or exclude
  chosen labels.
- **Metrics** (`metricmodel.metric`): string rendering, metric name
  validation, and name escaping and unescaping (underscores, dots, value
  encoding), also applied to whole metric families.
- **Alerts** (`metricmodel.alert`): status (firing or resolved) at a point
  in time, validation and chronological sorting.
- **Text exposition format parsing** (`metricmodel.textparse`): turns the
  plain-text metrics format into the dataclasses of `metricmodel.families`
  (`MetricFamily`, `Sample`, `Counter`, `Gauge`, `Untyped`, `Summary`,
  `Histogram`, ...).
- **Content negotiation** (`metricmodel.autoneg`): parse HTTP `Accept`
  headers and pick the best match from a list of content types.

## Installation

```
pip install metricmodel
```

To run the test suite:

```
pip install "metricmodel[test]"
pytest
```

## Parsing the text format

```python
from metricmodel.textparse import parse_text, ParseError

text = """\
# HELP http_requests_total Requests served.
# TYPE http_requests_total counter
http_requests_total{method="get",code="200"} 1027 1395066363000
"""

families = parse_text(text)
family = families["http_requests_total"]
print(family.type)                        # FamilyType.COUNTER
print(family.metrics[0].counter.value)    # 1027.0
print(family.metrics[0].timestamp_ms)     # 1395066363000
```

`parse_text` accepts a string or bytes. `text_to_metric_families(stream)`
does the same for any object with a `read` method returning text or bytes,
and a `TextParser` instance can be reused across inputs (not concurrently).
Families without samples are left out of the result; samples and labels are
kept in input order and duplicates are not removed. Summaries and
histograms are assembled from their `_sum`, `_count`, `_bucket` and
quantile lines when the family's `TYPE` line comes first.

Malformed input raises `ParseError` (a `ValueError`) with `line` and `msg`
attributes:

```python
try:
    parse_text("bla 3.14\nblubber 42")
except ParseError as err:
    print(err)  # text format parsing error in line 2: unexpected end of input stream
```

## Labels, fingerprints and signatures

```python
from metricmodel.labelset import LabelSet, label_set_from_json
from metricmodel.signature import labels_to_signature, signature_for_labels
from metricmodel.fingerprinting import parse_fingerprint
from metricmodel.metric import Metric

labels = LabelSet({"job": "api", "instance": "host-1:9100"})
print(labels)                 # {instance="host-1:9100", job="api"}
fp = labels.fingerprint()
print(fp)                     # 16 hex digits
assert parse_fingerprint(str(fp)) == fp

print(labels_to_signature({"job": "api"}))

metric = Metric({"__name__": "up", "job": "api"})
print(metric)                 # up{job="api"}
print(signature_for_labels(metric, "job"))

loaded = label_set_from_json('{"foo": "bar"}')   # raises ValueError on invalid names
```

`LabelSet` is a `dict` with `validate`, `equal`, `before`, `clone`,
`merge`, `fingerprint` and `fast_fingerprint`.

## Name validation and escaping

The validation scheme is process-wide and starts as `ValidationScheme.LEGACY`.

```python
from metricmodel.labels import ValidationScheme, set_name_validation_scheme, is_valid_label_name
from metricmodel.metric import EscapingScheme, escape_name, unescape_name, to_escaping_scheme

print(is_valid_label_name("with.dots"))          # False
set_name_validation_scheme(ValidationScheme.UTF8)
print(is_valid_label_name("with.dots"))          # True

escaped = escape_name("http.status:sum", EscapingScheme.VALUE_ENCODING_ESCAPING)
print(escaped)                                    # U__http_2e_status:sum
print(unescape_name(escaped, EscapingScheme.VALUE_ENCODING_ESCAPING))  # http.status:sum
print(to_escaping_scheme("dots"))                 # dots
```

`escape_metric_family(family, scheme)` returns an escaped copy of a
`MetricFamily` without changing the input.

## Alerts

```python
from datetime import datetime, timedelta, timezone
from metricmodel.alert import Alert, Alerts, sort_alerts

now = datetime.now(timezone.utc)
alert = Alert(
    labels={"alertname": "DiskFull", "dev": "sda1"},
    starts_at=now - timedelta(minutes=5),
    ends_at=now - timedelta(minutes=1),
)
alert.validate()                  # raises ValueError if inconsistent
print(alert.status())             # resolved
print(Alerts([alert]).has_firing())   # False
ordered = sort_alerts([alert])
```

## Content negotiation

```python
from metricmodel.autoneg import negotiate, parse_accept

accept = "application/xml,text/html;q=0.9,text/plain;q=0.8,*/*;q=0.5"
print(negotiate(accept, ["text/plain", "text/html"]))  # text/html
print(parse_accept(accept)[0].type)                    # application
```

`negotiate` returns an empty string when nothing matches.

## What this package does not do

It reads the text exposition format but does not write it, and it does not
read or write the protobuf exposition format. It has no command-line tool
and no HTTP server or client; it is a library only.
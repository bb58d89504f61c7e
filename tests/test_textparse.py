import dataclasses
import io
import math

import pytest

from metricmodel.families import (
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
from metricmodel.textparse import ParseError, TextParser, parse_text, text_to_metric_families

NAN = float("nan")
INF = float("inf")


def _text(*lines):
    return "\n".join(lines) + "\n"


def _normalize(obj):
    if dataclasses.is_dataclass(obj):
        obj = dataclasses.asdict(obj)
    if isinstance(obj, dict):
        return {key: _normalize(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_normalize(item) for item in obj]
    if isinstance(obj, float) and math.isnan(obj):
        return "NaN"
    return obj


def _assert_families(got, expected):
    assert len(got) == len(expected)
    for family in expected:
        assert family.name in got
        assert _normalize(got[family.name]) == _normalize(family)


SCENARIO_EMPTY = ("\n\n", [])

SCENARIO_MINIMAL = (
    _text(
        "",
        "minimal_metric 1.234",
        "another_metric -3e3 103948",
        "# Even that:",
        "no_labels{} 3",
        "# HELP line for non-existing metric will be ignored.",
    ),
    [
        MetricFamily(
            name="minimal_metric",
            type=FamilyType.UNTYPED,
            metrics=[Sample(untyped=Untyped(1.234))],
        ),
        MetricFamily(
            name="another_metric",
            type=FamilyType.UNTYPED,
            metrics=[Sample(untyped=Untyped(-3e3), timestamp_ms=103948)],
        ),
        MetricFamily(
            name="no_labels",
            type=FamilyType.UNTYPED,
            metrics=[Sample(untyped=Untyped(3.0))],
        ),
    ],
)

SCENARIO_COUNTERS_GAUGES = (
    _text(
        "",
        "# A normal comment.",
        "#",
        "# TYPE name counter",
        'name{labelname="val1",basename="basevalue"} NaN',
        r'name {labelname="val2",basename="base\"v\\al\nue"} 0.23 1234567890',
        r"# HELP name two-line\n doc  str\\ing",
        "",
        ' # HELP  name2  \tdoc str"ing 2',
        "  #    TYPE    name2 gauge",
        'name2{labelname="val2"\t,basename   =   "basevalue2"\t\t} +Inf 54321',
        'name2{ labelname = "val1" , }-Inf',
    ),
    [
        MetricFamily(
            name="name",
            help="two-line\n doc  str\\ing",
            type=FamilyType.COUNTER,
            metrics=[
                Sample(
                    labels=[Label("labelname", "val1"), Label("basename", "basevalue")],
                    counter=Counter(NAN),
                ),
                Sample(
                    labels=[Label("labelname", "val2"), Label("basename", 'base"v\\al\nue')],
                    counter=Counter(0.23),
                    timestamp_ms=1234567890,
                ),
            ],
        ),
        MetricFamily(
            name="name2",
            help='doc str"ing 2',
            type=FamilyType.GAUGE,
            metrics=[
                Sample(
                    labels=[Label("labelname", "val2"), Label("basename", "basevalue2")],
                    gauge=Gauge(INF),
                    timestamp_ms=54321,
                ),
                Sample(labels=[Label("labelname", "val1")], gauge=Gauge(-INF)),
            ],
        ),
    ],
)

SCENARIO_SUMMARY = (
    _text(
        "",
        "# TYPE my_summary summary",
        'my_summary{n1="val1",quantile="0.5"} 110',
        "decoy -1 -2",
        'my_summary{n1="val1",quantile="0.9"} 140 1',
        'my_summary_count{n1="val1"} 42',
        "# Latest timestamp wins in case of a summary.",
        'my_summary_sum{n1="val1"} 4711 2',
        'fake_sum{n1="val1"} 2001',
        "# TYPE another_summary summary",
        'another_summary_count{n2="val2",n1="val1"} 20',
        'my_summary_count{n2="val2",n1="val1"} 5 5',
        'another_summary{n1="val1",n2="val2",quantile=".3"} -1.2',
        'my_summary_sum{n1="val2"} 08 15',
        'my_summary{n1="val3", quantile="0.2"} 4711',
        '  my_summary{n1="val1",n2="val2",quantile="-12.34",} NaN',
        "# some",
        "# funny comments",
        "# HELP ",
        "# HELP",
        "# HELP my_summary",
        "# HELP my_summary ",
    ),
    [
        MetricFamily(
            name="fake_sum",
            type=FamilyType.UNTYPED,
            metrics=[Sample(labels=[Label("n1", "val1")], untyped=Untyped(2001.0))],
        ),
        MetricFamily(
            name="decoy",
            type=FamilyType.UNTYPED,
            metrics=[Sample(untyped=Untyped(-1.0), timestamp_ms=-2)],
        ),
        MetricFamily(
            name="my_summary",
            type=FamilyType.SUMMARY,
            metrics=[
                Sample(
                    labels=[Label("n1", "val1")],
                    summary=Summary(
                        sample_count=42,
                        sample_sum=4711.0,
                        quantiles=[Quantile(0.5, 110.0), Quantile(0.9, 140.0)],
                    ),
                    timestamp_ms=2,
                ),
                Sample(
                    labels=[Label("n2", "val2"), Label("n1", "val1")],
                    summary=Summary(sample_count=5, quantiles=[Quantile(-12.34, NAN)]),
                    timestamp_ms=5,
                ),
                Sample(
                    labels=[Label("n1", "val2")],
                    summary=Summary(sample_sum=8.0),
                    timestamp_ms=15,
                ),
                Sample(
                    labels=[Label("n1", "val3")],
                    summary=Summary(quantiles=[Quantile(0.2, 4711.0)]),
                ),
            ],
        ),
        MetricFamily(
            name="another_summary",
            type=FamilyType.SUMMARY,
            metrics=[
                Sample(
                    labels=[Label("n2", "val2"), Label("n1", "val1")],
                    summary=Summary(sample_count=20, quantiles=[Quantile(0.3, -1.2)]),
                ),
            ],
        ),
    ],
)

SCENARIO_HISTOGRAM = (
    _text(
        "",
        "# HELP request_duration_microseconds The response latency.",
        "# TYPE request_duration_microseconds histogram",
        'request_duration_microseconds_bucket{le="100"} 123',
        'request_duration_microseconds_bucket{le="120"} 412',
        'request_duration_microseconds_bucket{le="144"} 592',
        'request_duration_microseconds_bucket{le="172.8"} 1524',
        'request_duration_microseconds_bucket{le="+Inf"} 2693',
        "request_duration_microseconds_sum 1.7560473e+06",
        "request_duration_microseconds_count 2693",
    ),
    [
        MetricFamily(
            name="request_duration_microseconds",
            help="The response latency.",
            type=FamilyType.HISTOGRAM,
            metrics=[
                Sample(
                    histogram=Histogram(
                        sample_count=2693,
                        sample_sum=1756047.3,
                        buckets=[
                            Bucket(100.0, 123),
                            Bucket(120.0, 412),
                            Bucket(144.0, 592),
                            Bucket(172.8, 1524),
                            Bucket(INF, 2693),
                        ],
                    )
                )
            ],
        )
    ],
)


@pytest.mark.parametrize(
    "text, expected",
    [SCENARIO_EMPTY, SCENARIO_MINIMAL, SCENARIO_COUNTERS_GAUGES, SCENARIO_SUMMARY, SCENARIO_HISTOGRAM],
)
def test_parse_scenarios(text, expected):
    _assert_families(parse_text(text), expected)


def test_parse_from_binary_stream():
    text, expected = SCENARIO_HISTOGRAM
    got = text_to_metric_families(io.BytesIO(text.encode("utf-8")))
    _assert_families(got, expected)


def test_parser_can_be_reused():
    parser = TextParser()
    first = parser.text_to_metric_families(io.StringIO(SCENARIO_SUMMARY[0]))
    second = parser.text_to_metric_families(io.StringIO(SCENARIO_SUMMARY[0]))
    _assert_families(first, SCENARIO_SUMMARY[1])
    _assert_families(second, SCENARIO_SUMMARY[1])


_TYPE_TWICE = (
    'text format parsing error in line 3: second TYPE line for metric name "metric", '
    "or TYPE reported after samples"
)

ERROR_SCENARIOS = [
    ("\nbla 3.14\nblubber 42", "text format parsing error in line 3: unexpected end of input stream"),
    ('metric{label="\\t"} 3.14', "text format parsing error in line 1: invalid escape sequence"),
    (
        '\nmetric{label="new\nline"} 3.14\n',
        'text format parsing error in line 2: label value "new" contains unescaped new-line',
    ),
    ('metric{@="bla"} 3.14', "text format parsing error in line 1: invalid label name for metric"),
    ('metric{__name__="bla"} 3.14', 'text format parsing error in line 1: label name "__name__" is reserved'),
    ('metric{label+="bla"} 3.14', "text format parsing error in line 1: expected '=' after label name"),
    ("metric{label=bla} 3.14", "text format parsing error in line 1: expected '\"' at start of label value"),
    (
        '\n# TYPE metric summary\nmetric{quantile="bla"} 3.14\n',
        "text format parsing error in line 3: expected float as value for 'quantile' label",
    ),
    ('metric{label="bla"+} 3.14', "text format parsing error in line 1: unexpected end of label value"),
    ('metric{label="bla"} 3.14 2.72\n', "text format parsing error in line 1: expected integer as timestamp"),
    ('metric{label="bla"} 3.14 2 3\n', "text format parsing error in line 1: spurious string after timestamp"),
    ('metric{label="bla"} blubb\n', "text format parsing error in line 1: expected float as value"),
    (
        "\n# HELP metric one\n# HELP metric two\n",
        "text format parsing error in line 3: second HELP line for metric name",
    ),
    ("\n# TYPE metric counter\n# TYPE metric untyped\n", _TYPE_TWICE),
    ("\nmetric 4.12\n# TYPE metric counter\n", _TYPE_TWICE),
    ("\n# TYPE metric bla\n", "text format parsing error in line 2: unknown metric type"),
    ("\n# TYPE met-ric\n", "text format parsing error in line 2: invalid metric name in comment"),
    ('@invalidmetric{label="bla"} 3.14 2', "text format parsing error in line 1: invalid metric name"),
    ('{label="bla"} 3.14 2', "text format parsing error in line 1: invalid metric name"),
    (
        '\n# TYPE metric histogram\nmetric_bucket{le="bla"} 3.14\n',
        "text format parsing error in line 3: expected float as value for 'le' label",
    ),
    (b'metric{l="\xbd"} 3.14\n', 'text format parsing error in line 1: invalid label value "\\xbd"'),
    ("foo 1_2\n", "text format parsing error in line 1: expected float as value"),
    ("foo 0x1p-3\n", "text format parsing error in line 1: expected float as value"),
    ("foo 0x1P-3\n", "text format parsing error in line 1: expected float as value"),
    ("foo 0B1\n", "text format parsing error in line 1: expected float as value"),
    ("foo 0O1\n", "text format parsing error in line 1: expected float as value"),
    ("foo 0X1\n", "text format parsing error in line 1: expected float as value"),
    ("foo 0x1\n", "text format parsing error in line 1: expected float as value"),
    ("foo 0b1\n", "text format parsing error in line 1: expected float as value"),
    ("foo 0o1\n", "text format parsing error in line 1: expected float as value"),
    (
        '\n# TYPE metric histogram\nmetric_bucket{le="0x1p-3"} 3.14\n',
        "text format parsing error in line 3: expected float as value for 'le' label",
    ),
    (
        '\n# TYPE metric summary\nmetric{quantile="0x1p-3"} 3.14\n',
        "text format parsing error in line 3: expected float as value for 'quantile' label",
    ),
    ('metric{label="bla",label="bla"} 3.14', "text format parsing error in line 1: duplicate label names for metric"),
]


@pytest.mark.parametrize("text, message", ERROR_SCENARIOS)
def test_parse_errors(text, message):
    with pytest.raises(ParseError) as info:
        parse_text(text)
    assert str(info.value).startswith(message)


def test_parse_error_attributes():
    with pytest.raises(ParseError) as info:
        parse_text("\n\nmetric{label=bla} 1\n")
    assert info.value.line == 3
    assert info.value.msg == "expected '\"' at start of label value, found 'b'"


def test_empty_input_gives_no_families():
    assert text_to_metric_families(io.StringIO("")) == {}


class _FailingReader:
    def read(self, size=-1):
        raise OSError("unexpected error")


def test_reader_error_propagates():
    with pytest.raises(OSError, match="unexpected error"):
        text_to_metric_families(_FailingReader())


def test_gauge_histogram_samples_are_rejected():
    with pytest.raises(ValueError, match="unexpected type for metric name"):
        parse_text("# TYPE m gauge_histogram\nm 1\n")


def test_type_is_case_insensitive():
    got = parse_text("# TYPE m GaUgE\nm 2\n")
    assert got["m"].type is FamilyType.GAUGE
    assert got["m"].metrics[0].gauge == Gauge(2.0)


def test_float_overflow_is_rejected():
    with pytest.raises(ParseError, match="expected float as value"):
        parse_text("m 1e400\n")
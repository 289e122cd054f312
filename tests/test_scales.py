"""Tests for tick math, scales, layouts and the scale builder."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from charting.scales import (
    BAND, LINEAR, TEMPORAL, Layout, Margins, Scale, ScaleBuilder,
    linear_ticks, nice, tick_increment, time_ticks,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


MARGIN = Margins(t=40, r=40, b=60, l=80)


# ── Tick math ────────────────────────────────────────────────────────────────

def test_linear_ticks_round_values():
    assert linear_ticks(0, 10, 5) == [0, 2, 4, 6, 8, 10]
    assert linear_ticks(0, 1, 5) == [0.0, 0.2, 0.4, 0.6, 0.8, 1.0]
    assert linear_ticks(-1.3, 2.9, 4) == [-1.0, 0.0, 1.0, 2.0]


def test_linear_ticks_exact_decimals():
    """Fractional steps are built by division so 0.3 prints as 0.3."""
    ticks = linear_ticks(0, 0.5, 5)
    assert ticks[3] == 0.3


def test_linear_ticks_edge_cases():
    assert linear_ticks(3, 3, 5) == [3]
    assert linear_ticks(0, 10, 0) == []
    assert linear_ticks(10, 0, 5) == [10, 8, 6, 4, 2, 0]


def test_tick_increment_sign_convention():
    assert tick_increment(0, 100, 10) == 10
    assert tick_increment(0, 1, 10) == -10


@pytest.mark.parametrize('start,stop,expected', [
    (0.9, 10.1, (0.0, 11.0)),
    (-3.2, 7.4, (-4.0, 8.0)),
    (97.5, 131.2, (95.0, 135.0)),
    (5, 5, (5, 5)),
])
def test_nice_extends_to_round_bounds(start, stop, expected):
    assert nice(start, stop, 10) == pytest.approx(expected)


def test_time_ticks_calendar_aligned():
    ticks = time_ticks(utc(2015, 3, 10), utc(2024, 6, 1), 7)
    assert ticks
    assert all(t.month == 1 and t.day == 1 for t in ticks)
    assert ticks[0] >= utc(2015, 3, 10) and ticks[-1] <= utc(2024, 6, 1)


def test_time_ticks_months_for_short_spans():
    ticks = time_ticks(utc(2020, 1, 1), utc(2020, 12, 31), 6)
    assert all(t.day == 1 for t in ticks)
    assert len({t.month for t in ticks}) == len(ticks)


# ── Scale ────────────────────────────────────────────────────────────────────

def test_linear_scale_maps_and_inverts():
    scale = Scale(kind=LINEAR, domain=(0.0, 10.0), range=(500.0, 100.0))
    assert scale(0) == 500.0
    assert scale(10) == 100.0
    assert scale(2.5) == 400.0
    assert scale.invert(300.0) == pytest.approx(5.0)


def test_temporal_scale_inverts_to_datetime():
    scale = Scale(kind=TEMPORAL, domain=(utc(2020, 1, 1), utc(2020, 1, 11)), range=(0.0, 100.0))
    assert scale(utc(2020, 1, 6)) == pytest.approx(50.0)
    assert scale.invert(50.0) == utc(2020, 1, 6)


def test_zero_span_domain_maps_to_middle():
    scale = Scale(kind=LINEAR, domain=(3.0, 3.0), range=(0.0, 100.0))
    assert scale(3.0) == 50.0


def test_band_scale_geometry():
    scale = Scale(kind=BAND, domain=('a', 'b', 'c'), range=(0.0, 340.0),
                  padding_inner=0.4, padding_outer=0.4)
    # step = 340 / (3 - 0.4 + 0.8)
    assert scale.step == pytest.approx(100.0)
    assert scale.bandwidth == pytest.approx(60.0)
    assert scale('a') == pytest.approx(40.0)
    assert scale('c') == pytest.approx(240.0)
    assert scale.center('b') == pytest.approx(170.0)
    assert math.isnan(scale('zzz'))
    with pytest.raises(TypeError):
        scale.invert(10.0)


def test_with_range_keeps_domain():
    scale = Scale(kind=LINEAR, domain=(0.0, 1.0), range=(0.0, 10.0))
    wider = scale.with_range((0, 20))
    assert wider.domain == scale.domain
    assert wider(1.0) == 20.0
    assert scale(1.0) == 10.0


# ── Layout ───────────────────────────────────────────────────────────────────

def test_layout_plot_box():
    layout = Layout.for_width(1400, 700, MARGIN)
    assert not layout.compact
    assert layout.x_range == (80, 1360)
    assert layout.y_range == (640, 40)
    assert layout.contains(700, 300)
    assert not layout.contains(20, 300)


def test_layout_compact_below_breakpoint():
    """Every axis switches together: fewer ticks, tighter margins, smaller text."""
    wide = Layout.for_width(800, 400, MARGIN, x_ticks=8, y_ticks=8, breakpoint=520)
    narrow = Layout.for_width(400, 400, MARGIN, x_ticks=8, y_ticks=8, breakpoint=520)
    assert narrow.compact and not wide.compact
    assert narrow.x_ticks < wide.x_ticks
    assert narrow.y_ticks < wide.y_ticks
    assert narrow.margin.l < wide.margin.l
    assert narrow.font_size < wide.font_size
    assert narrow.tick_font_size < wide.tick_font_size


def test_layout_compact_override():
    layout = Layout.for_width(300, 200, MARGIN, compact=False)
    assert not layout.compact


# ── ScaleBuilder ─────────────────────────────────────────────────────────────

def test_linear_builder_pads_and_nices():
    scale = ScaleBuilder().linear([2.0, 4.0, math.nan, 12.0], (500, 100))
    lo, hi = scale.domain
    # [2, 12] padded by 1 each side -> [1, 13], already on whole-number ticks
    assert (lo, hi) == (1, 13)


def test_linear_builder_nices_ragged_bounds():
    scale = ScaleBuilder().linear([97.9, 130.3], (500, 100))
    lo, hi = scale.domain
    assert lo <= 97.9 - 3.24 and hi >= 130.3 + 3.24
    assert (lo, hi) == (90, 135)


def test_linear_builder_flat_values_pad_by_one():
    scale = ScaleBuilder().linear([5.0, 5.0], (100, 0))
    lo, hi = scale.domain
    assert lo <= 4 and hi >= 6


def test_linear_builder_without_values():
    scale = ScaleBuilder().linear([math.nan], (100, 0))
    assert scale.domain == (0.0, 1.0)


def test_linear_money_bounds():
    scale = ScaleBuilder().linear_money([31000, 49200], (0, 800))
    lo, hi = scale.domain
    assert lo <= math.floor(31000 * 0.95)
    assert hi >= math.ceil(49200 * 1.05)


def test_temporal_builder_extends_for_annotations():
    builder = ScaleBuilder(annotation_pad=timedelta(days=240))
    stamps = [utc(2020, 1, 1), utc(2022, 1, 1)]
    events = [
        {'date': '2019-06-01', 'label': 'before data'},
        {'date': '2023-01-01', 'label': 'future'},
    ]
    scale = builder.temporal(stamps, (0, 100), annotations=events)
    assert scale.domain[0] == utc(2020, 1, 1)
    assert scale.domain[1] == utc(2023, 1, 1) + timedelta(days=240)


def test_temporal_builder_pads_even_without_future_events():
    builder = ScaleBuilder(annotation_pad=timedelta(days=240))
    stamps = [utc(2020, 1, 1), utc(2022, 1, 1)]
    scale = builder.temporal(stamps, (0, 100), annotations=[{'date': '2021-01-01', 'label': 'x'}])
    assert scale.domain[1] == utc(2022, 1, 1) + timedelta(days=240)
    plain = builder.temporal(stamps, (0, 100))
    assert plain.domain == (utc(2020, 1, 1), utc(2022, 1, 1))


def test_temporal_builder_requires_timestamps():
    with pytest.raises(ValueError):
        ScaleBuilder().temporal([], (0, 100))


def test_rebuild_after_resize_round_trip_is_identical():
    """W -> W' -> W reproduces the same domains and ranges."""
    builder = ScaleBuilder()
    stamps = [utc(2020, m, 1) for m in range(1, 13)]
    values = [float(m * 1.7) for m in range(12)]

    def build(width):
        layout = Layout.for_width(width, 500, MARGIN)
        return (builder.temporal(stamps, layout.x_range),
                builder.linear(values, layout.y_range))

    first = build(900)
    build(430)
    again = build(900)
    assert first == again

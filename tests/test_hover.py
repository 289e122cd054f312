"""
Tests for hover resolution: nearest row, series disambiguation, the
Idle/Active state machine and the dumbbell and region hit tests.
"""

import math
import random
from datetime import datetime, timedelta, timezone

import pytest

from charting.hover import (
    DISAMBIGUATING, IDLE, SYNCHRONIZED, DumbbellHover, HoverQueryEngine, HoverState,
    RegionHover, TooltipLine, _PointerMachine, nearest_index,
)
from charting.scales import Layout, Margins, ScaleBuilder
from processing.records import MISSING, JoinedRow, SalaryComparison
from processing.temporal import to_epoch


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


LAYOUT = Layout.for_width(600, 400, Margins(t=20, r=20, b=20, l=20))


def make_engine(rows, keys, mode=SYNCHRONIZED, **kwargs):
    builder = ScaleBuilder()
    x = builder.temporal([r.timestamp for r in rows], LAYOUT.x_range)
    y = builder.linear([r.get(k) for r in rows for k in keys], LAYOUT.y_range)
    return HoverQueryEngine(rows, keys, x, y, LAYOUT, mode=mode, **kwargs)


# ── nearest_index ────────────────────────────────────────────────────────────

def test_nearest_row_scenario():
    """Pointer at ~2020-01-20 resolves to the 2020-02 row, the closer of the two."""
    rows = [
        JoinedRow(utc(2020, 1, 1), {'a': 5.0}),
        JoinedRow(utc(2020, 2, 1), {'a': 7.0}),
    ]
    engine = make_engine(rows, ['a'])
    assert engine.resolve_time(utc(2020, 1, 20)) == 1
    assert engine.resolve(engine.x_scale(utc(2020, 1, 20))) == 1
    assert engine.resolve_time(utc(2020, 1, 10)) == 0


def test_nearest_index_tie_goes_to_later_row():
    epochs = [0.0, 10.0, 20.0]
    assert nearest_index(epochs, 5.0) == 1
    assert nearest_index(epochs, 15.0) == 2


def test_nearest_index_clamps_to_ends():
    epochs = [0.0, 10.0, 20.0]
    assert nearest_index(epochs, -100.0) == 0
    assert nearest_index(epochs, 1e9) == 2
    assert nearest_index([42.0], 0.0) == 0
    with pytest.raises(ValueError):
        nearest_index([], 1.0)


def test_nearest_index_matches_linear_scan():
    rng = random.Random(3)
    epochs = sorted(rng.uniform(0, 1e6) for _ in range(300))
    for _ in range(200):
        target = rng.uniform(-1e4, 1.01e6)
        best = min(range(len(epochs)), key=lambda i: (abs(epochs[i] - target), -i))
        assert nearest_index(epochs, target) == best


# ── Synchronized mode ────────────────────────────────────────────────────────

def test_synchronized_reports_every_series():
    rows = [
        JoinedRow(utc(2020, 1, 1), {'rent': 1.0, 'house': 2.0, 'inflation': 0.5}),
        JoinedRow(utc(2020, 2, 1), {'rent': 1.2, 'house': MISSING, 'inflation': 0.7}),
    ]
    engine = make_engine(rows, ['rent', 'house', 'inflation'],
                         labels={'rent': 'Private rents'}, colors={'rent': '#73605b'})
    px = engine.x_scale(utc(2020, 2, 1))
    state = engine.move(px, 200)

    assert state.active and state.index == 1
    assert state.guide_x == pytest.approx(px)
    # Missing values get no marker but still appear in the tooltip
    assert [m.key for m in state.markers] == ['rent', 'inflation']
    assert engine.tooltip.visible
    assert engine.tooltip.title == 'Feb 2020'
    assert [line.label for line in engine.tooltip.lines] == ['Private rents', 'house', 'inflation']
    assert engine.tooltip.lines[1].value == '—'
    assert engine.tooltip.lines[0].color == '#73605b'


# ── Disambiguating mode ──────────────────────────────────────────────────────

def test_disambiguating_picks_minimal_screen_distance():
    """The chosen series minimises |renderedY - pointerY| among finite values."""
    rng = random.Random(11)
    keys = [f"region_{i}" for i in range(8)]
    rows = []
    for m in range(24):
        fields = {k: (MISSING if rng.random() < 0.15 else rng.uniform(80, 140)) for k in keys}
        rows.append(JoinedRow(utc(2020, 1, 1) + timedelta(days=30 * m), fields))
    engine = make_engine(rows, keys, mode=DISAMBIGUATING)

    for _ in range(100):
        px = rng.uniform(LAYOUT.plot_left, LAYOUT.plot_right)
        py = rng.uniform(LAYOUT.plot_top, LAYOUT.plot_bottom)
        state = engine.move(px, py)
        row = rows[state.index]
        finite = [k for k in keys if not math.isnan(row.get(k))]
        if not finite:
            assert state.emphasized is None
            continue
        best = min(abs(engine.y_scale(row.get(k)) - py) for k in finite)
        assert state.emphasized in finite
        assert abs(engine.y_scale(row.get(state.emphasized)) - py) == best
        assert len(state.markers) == 1
        assert len(engine.tooltip.lines) == 1


def test_disambiguating_screen_distance_not_value_distance():
    rows = [JoinedRow(utc(2020, 1, 1), {'low': 10.0, 'high': 100.0}),
            JoinedRow(utc(2020, 2, 1), {'low': 12.0, 'high': 90.0})]
    engine = make_engine(rows, ['low', 'high'], mode=DISAMBIGUATING)
    px = engine.x_scale(utc(2020, 1, 1))
    assert engine.move(px, engine.y_scale(95.0)).emphasized == 'high'
    assert engine.move(px, engine.y_scale(20.0)).emphasized == 'low'


def test_disambiguating_tie_prefers_first_key():
    rows = [JoinedRow(utc(2020, 1, 1), {'a': 10.0, 'b': 10.0, 'c': 30.0}),
            JoinedRow(utc(2020, 2, 1), {'a': 12.0, 'b': 12.0, 'c': 30.0})]
    engine = make_engine(rows, ['a', 'b', 'c'], mode=DISAMBIGUATING)
    assert engine.pick_series(0, engine.y_scale(11.0)) == 'a'
    assert engine.pick_series(0, engine.y_scale(29.0)) == 'c'


def test_disambiguating_no_finite_values_shows_date_only():
    rows = [JoinedRow(utc(2020, 1, 1), {'a': MISSING, 'b': MISSING}),
            JoinedRow(utc(2020, 6, 1), {'a': 1.0, 'b': 2.0})]
    engine = make_engine(rows, ['a', 'b'], mode=DISAMBIGUATING)
    state = engine.move(engine.x_scale(utc(2020, 1, 1)), 200)
    assert state.active and state.index == 0
    assert state.markers == ()
    assert engine.tooltip.visible and engine.tooltip.lines == []


def test_unknown_mode_rejected():
    rows = [JoinedRow(utc(2020, 1, 1), {'a': 1.0})]
    with pytest.raises(ValueError):
        make_engine(rows, ['a'], mode='nearest')


# ── State machine ────────────────────────────────────────────────────────────

def test_enter_move_leave_cycle():
    rows = [JoinedRow(utc(2020, m, 1), {'a': float(m)}) for m in range(1, 7)]
    engine = make_engine(rows, ['a'])
    assert engine.state == IDLE

    assert engine.enter(300, 200).active
    first = engine.state.index
    engine.move(LAYOUT.plot_right - 1, 200)
    assert engine.state.index != first
    assert engine.tooltip.visible

    assert engine.leave() == IDLE
    assert not engine.tooltip.visible


def test_pointer_outside_plot_is_leave():
    rows = [JoinedRow(utc(2020, m, 1), {'a': float(m)}) for m in range(1, 7)]
    engine = make_engine(rows, ['a'])
    engine.move(300, 200)
    assert engine.move(5, 200) == IDLE
    assert not engine.tooltip.visible


def test_reset_returns_to_idle():
    rows = [JoinedRow(utc(2020, m, 1), {'a': float(m)}) for m in range(1, 7)]
    engine = make_engine(rows, ['a'])
    engine.move(300, 200)
    engine.reset(rows=rows[:3])
    assert engine.state == IDLE
    assert engine.resolve_time(utc(2021, 1, 1)) == 2


def test_each_engine_owns_its_tooltip():
    rows = [JoinedRow(utc(2020, m, 1), {'a': float(m)}) for m in range(1, 7)]
    one, two = make_engine(rows, ['a']), make_engine(rows, ['a'])
    assert one.tooltip is not two.tooltip
    one.move(300, 200)
    assert one.tooltip.visible and not two.tooltip.visible


def test_move_cost_is_logarithmic():
    """Resolving a row inspects O(log n) timestamps, not every row."""
    start = utc(1990, 1, 1)
    rows = [JoinedRow(start + timedelta(days=i), {'a': float(i % 17)}) for i in range(20000)]
    engine = make_engine(rows, ['a'])

    class CountingList(list):
        reads = 0

        def __getitem__(self, i):
            CountingList.reads += 1
            return list.__getitem__(self, i)

    engine._epochs = CountingList(to_epoch(r.timestamp) for r in rows)
    engine.move(333, 200)
    assert CountingList.reads < 64


# ── Dumbbell ─────────────────────────────────────────────────────────────────

def make_dumbbell():
    rows = [
        SalaryComparison('Westminster', 46000.0, 49200.0),
        SalaryComparison('Camden', 40100.0, 43250.0),
        SalaryComparison('Newham', 31000.0, 30500.0),
    ]
    builder = ScaleBuilder()
    x = builder.linear_money([v for r in rows for v in (r.start, r.end)], (260, 900))
    y = builder.band([r.name for r in rows], (40, 200))
    return DumbbellHover(rows, x, y, 2022, 2024), rows


def test_dumbbell_hits_connector_and_dots():
    hover, rows = make_dumbbell()
    camden = rows[1]
    cy = hover.y_scale.center('Camden')
    mid = (hover.x_scale(camden.start) + hover.x_scale(camden.end)) / 2

    state = hover.move(mid, cy + 3)
    assert state.active and state.index == 1
    assert state.emphasized == 'Camden'
    assert [line.value for line in hover.tooltip.lines] == ['£40,100', '£43,250', '+£3,150']

    # Just beside the end dot
    assert hover.move(hover.x_scale(camden.end) + 4, cy).index == 1


def test_dumbbell_negative_change_and_miss():
    hover, rows = make_dumbbell()
    newham = rows[2]
    cy = hover.y_scale.center('Newham')
    hover.move(hover.x_scale(newham.start), cy)
    assert hover.tooltip.lines[2].value == '-£500'

    assert hover.move(100, cy) == IDLE
    assert not hover.tooltip.visible


# ── Region ───────────────────────────────────────────────────────────────────

def test_region_hover_uses_locate_and_describe():
    describe_calls = []

    def describe(index):
        describe_calls.append(index)
        return f"Region {index}", [TooltipLine('Ratio', '12')], 'note'

    hover = RegionHover(lambda x, y: 3 if x > 50 else None, describe)
    state = hover.move(60, 10)
    assert state.index == 3
    assert hover.tooltip.title == 'Region 3' and hover.tooltip.note == 'note'
    assert hover.move(10, 10) == IDLE
    assert describe_calls == [3]


# ── Pointer machine interface ────────────────────────────────────────────────

def test_pointer_machine_requires_inside_and_query():
    with pytest.raises(TypeError):
        _PointerMachine()

    class OnlyInside(_PointerMachine):
        def _inside(self, x, y):
            return True

    with pytest.raises(TypeError):
        OnlyInside()

    class Everywhere(OnlyInside):
        def _query(self, x, y):
            self.tooltip.show(x, y, 'here', [])
            return HoverState(True, 0, (x, y))

    machine = Everywhere()
    assert machine.enter(1, 2).active
    assert machine.leave() == IDLE
    assert not machine.tooltip.visible

"""
Hover Queries - Pointer position -> data row, series and tooltip.

Each engine owns exactly one Tooltip and is the only thing that mutates it,
so two charts on one page never fight over a tooltip.

State machine:
    Idle --enter--> Active --move--> Active(updated) --leave--> Idle
A pointer outside the plot area counts as a leave. Any data or size
change resets to Idle.
"""

import bisect
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from processing.formatter import (
    format_money, format_month, format_signed_money, format_value,
)
from processing.records import JoinedRow, SalaryComparison, is_missing
from processing.temporal import to_epoch
from .scales import Layout, Scale

logger = logging.getLogger(__name__)

SYNCHRONIZED = 'synchronized'
DISAMBIGUATING = 'disambiguating'

# Dumbbell hit areas (px)
HIT_STROKE = 22
DOT_RADIUS = 5
DOT_RADIUS_HOVER = 6.5


def nearest_index(epochs: Sequence[float], target: float) -> int:
    """
    Index of the row closest to target, by binary search.

    epochs must be sorted ascending. When target is exactly halfway
    between two rows the later row wins.
    """
    n = len(epochs)
    if n == 0:
        raise ValueError("no rows to search")
    i = bisect.bisect_left(epochs, target, 0, n - 1)
    if i > 0 and target - epochs[i - 1] < epochs[i] - target:
        return i - 1
    return i


# =============================================================================
# TOOLTIP
# =============================================================================

@dataclass
class TooltipLine:
    label: str
    value: str
    color: Optional[str] = None
    bold: bool = True


@dataclass
class Tooltip:
    """The single tooltip of one chart instance."""

    visible: bool = False
    x: float = 0.0
    y: float = 0.0
    title: str = ''
    lines: List[TooltipLine] = field(default_factory=list)
    note: str = ''

    def show(self, x: float, y: float, title: str, lines: List[TooltipLine], note: str = '') -> None:
        self.visible = True
        self.x, self.y = x, y
        self.title = title
        self.lines = list(lines)
        self.note = note

    def hide(self) -> None:
        self.visible = False
        self.title = ''
        self.lines = []
        self.note = ''


# =============================================================================
# STATE
# =============================================================================

@dataclass(frozen=True)
class FocusMarker:
    key: str
    x: float
    y: float
    color: Optional[str] = None


@dataclass(frozen=True)
class HoverState:
    """Snapshot of the hover interaction; Idle when active is False."""

    active: bool = False
    index: Optional[int] = None
    pointer: Tuple[float, float] = (0.0, 0.0)
    guide_x: Optional[float] = None
    markers: Tuple[FocusMarker, ...] = ()
    emphasized: Optional[str] = None


IDLE = HoverState()


class _PointerMachine(ABC):
    """Shared enter/move/leave handling."""

    def __init__(self):
        self.tooltip = Tooltip()
        self.state: HoverState = IDLE

    @abstractmethod
    def _inside(self, x: float, y: float) -> bool:
        """Whether the pointer is over the interactive area."""
        pass

    @abstractmethod
    def _query(self, x: float, y: float) -> HoverState:
        """Resolve a pointer position to a new state (tooltip included)."""
        pass

    def enter(self, x: float, y: float) -> HoverState:
        return self.move(x, y)

    def move(self, x: float, y: float) -> HoverState:
        if not self._inside(x, y):
            return self.leave()
        self.state = self._query(x, y)
        if not self.state.active:
            self.tooltip.hide()
        return self.state

    def leave(self) -> HoverState:
        self.state = IDLE
        self.tooltip.hide()
        return self.state

    @property
    def active(self) -> bool:
        return self.state.active


# =============================================================================
# TIME-SERIES HOVER
# =============================================================================

class HoverQueryEngine(_PointerMachine):
    """
    Resolves pointer positions over a time-series plot.

    Args:
        rows: Joined rows, sorted ascending by timestamp
        keys: Series keys, in drawing/legend order
        x_scale: Temporal scale
        y_scale: Linear scale
        layout: Plot box (pointer outside it is a leave)
        mode: SYNCHRONIZED or DISAMBIGUATING
        labels: Display label per key
        colors: Marker/tooltip color per key
        value_format: Number -> text for tooltip values
    """

    def __init__(
        self,
        rows: Sequence[JoinedRow],
        keys: Sequence[str],
        x_scale: Scale,
        y_scale: Scale,
        layout: Layout,
        mode: str = SYNCHRONIZED,
        labels: Optional[Dict[str, str]] = None,
        colors: Optional[Dict[str, str]] = None,
        value_format: Callable[[float], str] = format_value,
    ):
        super().__init__()
        if mode not in (SYNCHRONIZED, DISAMBIGUATING):
            raise ValueError(f"unknown hover mode: {mode}")
        self.mode = mode
        self.labels = dict(labels or {})
        self.colors = dict(colors or {})
        self.value_format = value_format
        self.keys: List[str] = []
        self.rows: Sequence[JoinedRow] = ()
        self._epochs: List[float] = []
        self.reset(rows, keys, x_scale, y_scale, layout)

    def reset(
        self,
        rows: Optional[Sequence[JoinedRow]] = None,
        keys: Optional[Sequence[str]] = None,
        x_scale: Optional[Scale] = None,
        y_scale: Optional[Scale] = None,
        layout: Optional[Layout] = None,
    ) -> None:
        """Swap in new data/scales; always returns the machine to Idle."""
        if rows is not None:
            self.rows = rows
            self._epochs = [to_epoch(r.timestamp) for r in rows]
        if keys is not None:
            self.keys = list(keys)
        if x_scale is not None:
            self.x_scale = x_scale
        if y_scale is not None:
            self.y_scale = y_scale
        if layout is not None:
            self.layout = layout
        self.leave()

    def _inside(self, x: float, y: float) -> bool:
        return bool(self.rows) and self.layout.contains(x, y)

    def resolve(self, px: float) -> int:
        """Pointer X -> index of the nearest row (O(log n))."""
        t = self.x_scale.invert(px)
        return nearest_index(self._epochs, to_epoch(t))

    def resolve_time(self, t: datetime) -> int:
        return nearest_index(self._epochs, to_epoch(t))

    def pick_series(self, index: int, py: float) -> Optional[str]:
        """
        The series whose rendered Y at this row is closest to the pointer.

        Only finite values compete; on equal distance the earlier key wins.
        """
        row = self.rows[index]
        best_key, best_dy = None, math.inf
        for key in self.keys:
            v = row.get(key)
            if is_missing(v):
                continue
            dy = abs(self.y_scale(v) - py)
            if dy < best_dy:
                best_key, best_dy = key, dy
        return best_key

    def _label(self, key: str) -> str:
        return self.labels.get(key, key)

    def _query(self, x: float, y: float) -> HoverState:
        index = self.resolve(x)
        row = self.rows[index]
        gx = self.x_scale(row.timestamp)
        title = format_month(row.timestamp)

        if self.mode == SYNCHRONIZED:
            markers = tuple(
                FocusMarker(key, gx, self.y_scale(row.get(key)), self.colors.get(key))
                for key in self.keys if not is_missing(row.get(key))
            )
            lines = [
                TooltipLine(self._label(key), self.value_format(row.get(key)), self.colors.get(key))
                for key in self.keys
            ]
            self.tooltip.show(x, y, title, lines)
            return HoverState(True, index, (x, y), gx, markers, None)

        chosen = self.pick_series(index, y)
        if chosen is None:
            # Nothing plotted at this date: guide only
            self.tooltip.show(x, y, title, [])
            return HoverState(True, index, (x, y), gx, (), None)

        value = row.get(chosen)
        marker = FocusMarker(chosen, gx, self.y_scale(value), self.colors.get(chosen))
        self.tooltip.show(x, y, title, [TooltipLine(self._label(chosen), self.value_format(value))])
        return HoverState(True, index, (x, y), gx, (marker,), chosen)


# =============================================================================
# DUMBBELL HOVER
# =============================================================================

class DumbbellHover(_PointerMachine):
    """Hit-tests the pointer against dumbbell rows (connector + two dots)."""

    def __init__(
        self,
        rows: Sequence[SalaryComparison],
        x_scale: Scale,
        y_scale: Scale,
        from_year: int,
        to_year: int,
    ):
        super().__init__()
        self.from_year = from_year
        self.to_year = to_year
        self.reset(rows, x_scale, y_scale)

    def reset(self, rows: Sequence[SalaryComparison], x_scale: Scale, y_scale: Scale) -> None:
        self.rows = rows
        self.x_scale = x_scale
        self.y_scale = y_scale
        self.leave()

    def _inside(self, x: float, y: float) -> bool:
        return bool(self.rows)

    def _row_hit(self, i: int, x: float, y: float) -> Optional[float]:
        """Vertical distance to row i if the pointer hits it, else None."""
        row = self.rows[i]
        cy = self.y_scale.center(row.name)
        xa, xb = self.x_scale(row.start), self.x_scale(row.end)
        dy = abs(y - cy)
        if min(xa, xb) <= x <= max(xa, xb) and dy <= HIT_STROKE / 2:
            return dy
        for cx in (xa, xb):
            if math.hypot(x - cx, y - cy) <= DOT_RADIUS:
                return dy
        return None

    def hit(self, x: float, y: float) -> Optional[int]:
        """Index of the row under the pointer (closest centre wins)."""
        if not self.rows or self.y_scale.step <= 0:
            return None
        first = self.y_scale(self.rows[0].name)
        guess = int(math.floor((y - first) / self.y_scale.step))
        best, best_dy = None, math.inf
        for i in (guess - 1, guess, guess + 1):
            if 0 <= i < len(self.rows):
                dy = self._row_hit(i, x, y)
                if dy is not None and dy < best_dy:
                    best, best_dy = i, dy
        return best

    def _query(self, x: float, y: float) -> HoverState:
        index = self.hit(x, y)
        if index is None:
            return IDLE
        row = self.rows[index]
        self.tooltip.show(x, y, row.name, [
            TooltipLine(str(self.from_year), format_money(row.start)),
            TooltipLine(str(self.to_year), format_money(row.end)),
            TooltipLine('Change', format_signed_money(row.diff)),
        ])
        return HoverState(True, index, (x, y), None, (), row.name)


# =============================================================================
# REGION HOVER
# =============================================================================

class RegionHover(_PointerMachine):
    """
    Pointer -> map region, via a locate function (point-in-polygon).

    describe(index) returns (title, lines, note) for the tooltip.
    """

    def __init__(
        self,
        locate: Callable[[float, float], Optional[int]],
        describe: Callable[[int], Tuple[str, List[TooltipLine], str]],
    ):
        super().__init__()
        self.locate = locate
        self.describe = describe

    def _inside(self, x: float, y: float) -> bool:
        return True

    def _query(self, x: float, y: float) -> HoverState:
        index = self.locate(x, y)
        if index is None:
            return IDLE
        title, lines, note = self.describe(index)
        self.tooltip.show(x, y, title, lines, note)
        return HoverState(True, index, (x, y), None, (), None)

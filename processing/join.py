"""
Dataset Join - Time-align two series by nearest timestamp.

Monthly releases rarely share exact dates (index on the 1st, CPI on the
15th), so each primary row takes the secondary observation closest to it,
but only if it is within a tolerance window. Otherwise the secondary
fields are MISSING and the primary row is kept.

Tie-breaks:
- duplicate secondary timestamps: the first one encountered wins
- equally distant earlier/later candidates: the earlier one wins
"""

from datetime import timedelta
from typing import List, Optional, Sequence

from .records import MISSING, JoinedRow, TypedPoint


def _check_sorted(points: Sequence[TypedPoint], name: str) -> None:
    for prev, cur in zip(points, points[1:]):
        if cur.timestamp < prev.timestamp:
            raise ValueError(f"{name} points must be sorted ascending by timestamp")


def _field_keys(points: Sequence[TypedPoint]) -> List[str]:
    keys: List[str] = []
    for point in points:
        for key in point.fields:
            if key not in keys:
                keys.append(key)
    return keys


class DatasetJoiner:
    """Two-pointer nearest-timestamp join, O(n + m) over pre-sorted inputs."""

    def __init__(self, tolerance: timedelta = timedelta(days=40)):
        self.tolerance = tolerance

    def join(
        self,
        primary: Sequence[TypedPoint],
        secondary: Sequence[TypedPoint],
        tolerance: Optional[timedelta] = None,
    ) -> List[JoinedRow]:
        """
        Join secondary fields onto every primary row.

        Args:
            primary: Points that drive the output (order and count preserved)
            secondary: Points to align onto the primary timestamps
            tolerance: Max |primary - secondary| gap; defaults to the joiner's

        Returns:
            One JoinedRow per primary point
        """
        tolerance = self.tolerance if tolerance is None else tolerance
        _check_sorted(primary, 'primary')
        _check_sorted(secondary, 'secondary')

        secondary_keys = _field_keys(secondary)
        m = len(secondary)

        # First index of each run of equal timestamps
        group_start = [0] * m
        for i in range(1, m):
            same = secondary[i].timestamp == secondary[i - 1].timestamp
            group_start[i] = group_start[i - 1] if same else i

        rows: List[JoinedRow] = []
        hi = 0  # first secondary index with timestamp >= current primary timestamp
        for point in primary:
            t = point.timestamp
            while hi < m and secondary[hi].timestamp < t:
                hi += 1

            match = None
            best_gap = None
            if hi > 0:
                before = group_start[hi - 1]
                match, best_gap = before, t - secondary[before].timestamp
            if hi < m:
                gap = secondary[hi].timestamp - t
                if best_gap is None or gap < best_gap:
                    match, best_gap = hi, gap

            fields = dict(point.fields)
            if match is not None and best_gap <= tolerance:
                for key in secondary_keys:
                    fields[key] = secondary[match].get(key)
            else:
                for key in secondary_keys:
                    fields[key] = MISSING
            rows.append(JoinedRow(timestamp=t, fields=fields))

        return rows


def rows_from_points(points: Sequence[TypedPoint]) -> List[JoinedRow]:
    """Wrap a single dataset as joined rows (no secondary series)."""
    return [JoinedRow(timestamp=p.timestamp, fields=dict(p.fields)) for p in points]

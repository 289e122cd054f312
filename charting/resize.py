"""
Resize Controller - Container width changes -> debounced rebuilds.

Width reports can arrive many times per frame while a container is being
dragged. Each report replaces the pending one and re-arms a one-frame
timer on the running event loop; only the last width in a frame reaches
the rebuild callback. Outside an event loop (tests, scripts) the pending
width waits for an explicit flush().
"""

import asyncio
import logging
from typing import Callable, Optional

from config import config

logger = logging.getLogger(__name__)

FRAME_INTERVAL = 1 / 60


class ResizeController:
    """
    Debounces container width reports.

    Args:
        on_resize: Called with the new width when it actually changes
        width: Initial width (defaults to the configured fallback)
        fallback: Width used when the container reports 0 or nothing
    """

    def __init__(
        self,
        on_resize: Callable[[float], None],
        width: Optional[float] = None,
        fallback: Optional[float] = None,
        frame_interval: float = FRAME_INTERVAL,
    ):
        self.on_resize = on_resize
        self.fallback = float(config.default_width if fallback is None else fallback)
        self.width = float(width) if width else self.fallback
        self.frame_interval = frame_interval
        self._pending: Optional[float] = None
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> Optional[float]:
        return self._pending

    def observe(self, width: Optional[float]) -> None:
        """Record a container width; the rebuild happens on the next frame."""
        self._pending = float(width) if width else self.fallback
        self._cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._handle = loop.call_later(self.frame_interval, self.flush)

    def flush(self) -> bool:
        """Apply the pending width now. True if it changed and triggered a rebuild."""
        self._cancel()
        if self._pending is None:
            return False
        width, self._pending = self._pending, None
        if width == self.width:
            return False
        logger.debug(f"Container resized {self.width:.0f}px -> {width:.0f}px")
        self.width = width
        self.on_resize(width)
        return True

    def close(self) -> None:
        self._cancel()
        self._pending = None

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


def chart_height(
    rows: int,
    per_row: float,
    minimum: float,
    maximum: float,
    padding: float = 0.0,
) -> float:
    """Content-derived height: rows * per_row + padding, clamped to [minimum, maximum]."""
    return min(maximum, max(minimum, rows * per_row + padding))

"""
Chart View Base - Load -> snapshot -> scales -> drawing, for one chart.

A view owns everything one chart on the page needs: its data snapshot,
container width, selection, hover engine(s) and tooltip. Views never share
state, so one chart failing to load leaves its siblings untouched.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from processing.ingest import DataIngestor, ParseError
from registry import registry
from sources import DataSourceManager, FetchResult
from charting.hover import IDLE, HoverState
from charting.renderer import ChartRenderer
from charting.resize import ResizeController, chart_height
from charting.scales import Layout, Margins, ScaleBuilder
from charting.svg import SvgElement

logger = logging.getLogger(__name__)

LOADING = 'loading'
ERROR = 'error'
READY = 'ready'


class ChartView(ABC):
    """
    Base class for all chart views.

    Subclasses implement:
        _load()      -> fetch + parse, returning an immutable snapshot
        _apply(snap) -> install a snapshot
        _rebuild()   -> layout, scales and hover engines for the current width
        _draw(r)     -> the ready-state drawing
    """

    name = 'chart'

    # Reference chart box; height follows width at this aspect ratio
    WIDTH = 820
    HEIGHT = 600
    MIN_HEIGHT = 320
    MARGIN = Margins(t=40, r=40, b=40, l=40)
    X_TICKS = 7
    Y_TICKS = 7

    def __init__(self, manager: Optional[DataSourceManager] = None, width: Optional[float] = None):
        self.manager = manager or DataSourceManager()
        self.builder = ScaleBuilder()
        self.resizer = ResizeController(self._on_resize, width)
        self.status = LOADING
        self.error: Optional[str] = None
        self.layout: Optional[Layout] = None
        self._load_seq = 0

    # =========================================================================
    # Loading
    # =========================================================================

    async def load(self) -> bool:
        """
        Fetch and parse this chart's data.

        The last load started wins: if another load began while this one was
        in flight, this result (success or failure) is discarded.

        Returns:
            True if this load's result was applied
        """
        self._load_seq += 1
        seq = self._load_seq
        self.status = LOADING
        self.error = None

        try:
            snapshot = await self._load()
            if seq != self._load_seq:
                logger.debug(f"{self.name}: discarding superseded load #{seq}")
                return False
            # Geometry or scales that cannot be built are a load failure too
            self._apply(snapshot)
            self._rebuild()
        except (ParseError, ValueError) as e:
            if seq != self._load_seq:
                logger.debug(f"{self.name}: discarding superseded failed load #{seq}")
                return False
            logger.warning(f"{self.name}: load failed: {e}")
            self.status = ERROR
            self.error = str(e)
            return False

        self.status = READY
        logger.info(f"{self.name}: ready")
        return True

    async def fetch(self, *dataset_ids: str) -> List[FetchResult]:
        """
        Fetch datasets concurrently.

        Raises:
            ParseError: if any file could not be fetched or decoded
        """
        file_names = [registry.get_dataset(d).file_name for d in dataset_ids]
        results = await self.manager.fetch_many(file_names)
        for result in results:
            if result.error:
                raise ParseError(result.error)
        return results

    @staticmethod
    def ingestor(dataset_id: str) -> DataIngestor:
        """Ingestor with the dataset's header aliases."""
        return DataIngestor(registry.get_dataset(dataset_id).aliases)

    # =========================================================================
    # Layout & interaction
    # =========================================================================

    @property
    def width(self) -> float:
        return self.resizer.width

    @property
    def ready(self) -> bool:
        return self.status == READY

    def height_for(self, width: float) -> float:
        """Height at the reference aspect ratio, clamped to [MIN_HEIGHT, HEIGHT]."""
        return chart_height(1, width * self.HEIGHT / self.WIDTH, self.MIN_HEIGHT, self.HEIGHT)

    def make_layout(self, width: Optional[float] = None, height: Optional[float] = None) -> Layout:
        width = self.width if width is None else width
        height = self.height_for(width) if height is None else height
        return Layout.for_width(width, height, self.MARGIN, self.X_TICKS, self.Y_TICKS)

    def resize(self, width: Optional[float]) -> None:
        """Container reported a width; applied on the next frame."""
        self.resizer.observe(width)

    def flush_resize(self) -> bool:
        return self.resizer.flush()

    def _on_resize(self, width: float) -> None:
        if self.ready:
            self._rebuild()

    def pointer_move(self, x: float, y: float) -> HoverState:
        if not self.ready:
            return IDLE
        return self._pointer_move(x, y)

    def pointer_leave(self) -> HoverState:
        if not self.ready:
            return IDLE
        return self._pointer_leave()

    # =========================================================================
    # Drawing
    # =========================================================================

    def render(self) -> SvgElement:
        """A fresh drawing of the current state (loading, error or chart)."""
        layout = self.layout or self.make_layout()
        renderer = ChartRenderer(layout)
        if self.status == LOADING:
            return renderer.loading()
        if self.status == ERROR:
            return renderer.error(self.error or 'unknown error')
        return self._draw(renderer)

    def to_svg(self, indent: int = 0) -> str:
        return self.render().to_string(indent)

    # =========================================================================
    # Subclass hooks
    # =========================================================================

    @abstractmethod
    async def _load(self) -> Any:
        pass

    @abstractmethod
    def _apply(self, snapshot: Any) -> None:
        pass

    @abstractmethod
    def _rebuild(self) -> None:
        pass

    @abstractmethod
    def _draw(self, renderer: ChartRenderer) -> SvgElement:
        pass

    @abstractmethod
    def _pointer_move(self, x: float, y: float) -> HoverState:
        pass

    @abstractmethod
    def _pointer_leave(self) -> HoverState:
        pass

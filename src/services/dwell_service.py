"""Dwell-time recorder for dashboard tabs."""

import time
from typing import Callable, Optional

import structlog

from src.models.action_item import DwellSample

logger = structlog.get_logger(__name__)

DwellSink = Callable[[DwellSample], None]


class DwellTimeRecorder:
    """Tracks how long the visitor stays on each dashboard tab.

    One recorder belongs to one dashboard session. A tab change flushes
    the previous tab and restarts the timer; losing visibility flushes the
    current tab but keeps the timer running, so time keeps accumulating if
    the page becomes visible again.
    """

    def __init__(
        self,
        partnership_id: str,
        user_id: str,
        sink: DwellSink,
        initial_tab: str = "overview",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.partnership_id = partnership_id
        self.user_id = user_id
        self._sink = sink
        self._clock = clock
        self.current_tab = initial_tab
        self.tab_started_at = clock()

    def start(self, tab: str) -> None:
        """Begin timing ``tab`` from now."""
        self.current_tab = tab
        self.tab_started_at = self._clock()

    def reset(self, tab: Optional[str] = None) -> None:
        """Restart timing after a full reload, without emitting anything."""
        self.start(tab or self.current_tab)

    def elapsed_seconds(self) -> int:
        return max(0, round(self._clock() - self.tab_started_at))

    def _emit(self) -> DwellSample:
        sample = DwellSample(
            partnership_id=self.partnership_id,
            user_id=self.user_id,
            tab_name=self.current_tab,
            duration_seconds=self.elapsed_seconds(),
        )
        logger.debug(
            "dwell_sample_emitted",
            tab_name=sample.tab_name,
            duration_seconds=sample.duration_seconds,
        )
        self._sink(sample)
        return sample

    def change_tab(self, new_tab: str) -> DwellSample:
        """Flush the previous tab's dwell time and start timing ``new_tab``."""
        sample = self._emit()
        self.start(new_tab)
        return sample

    def visibility_hidden(self) -> DwellSample:
        """Flush the current tab's dwell time without restarting the timer."""
        return self._emit()

"""
rollup.py — Coalescing queue for the overall snapshot.

Section recomputes arrive in bursts (loading a gradebook, resetting every
edit). The overall snapshot depends on all of them, so section ids are
collected and the rollup runs at most once per event-loop tick.
"""

import asyncio
import logging
from typing import Callable, Set


logger = logging.getLogger(__name__)


class OverallRollupQueue:
    def __init__(self, rollup: Callable[[Set[str]], None]):
        self._rollup = rollup
        self._pending: Set[str] = set()
        self._scheduled = False
        self.flush_count = 0

    @property
    def pending(self) -> Set[str]:
        return set(self._pending)

    def schedule(self, section_id: str) -> None:
        """
        Mark a section as needing rollup.

        Inside a running event loop the flush is queued with ``call_soon``;
        without one it waits for the next explicit ``flush()``.
        """
        self._pending.add(str(section_id))
        if self._scheduled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._scheduled = True
        loop.call_soon(self.flush)

    def flush(self) -> bool:
        """Run the rollup once for everything pending. Returns whether it ran."""
        self._scheduled = False
        if not self._pending:
            return False
        sections, self._pending = self._pending, set()
        self.flush_count += 1
        logger.debug("Overall rollup for %d section(s)", len(sections))
        self._rollup(sections)
        return True

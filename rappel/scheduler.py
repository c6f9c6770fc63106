from __future__ import annotations
import logging
from typing import List, Optional, Set

from PySide6.QtCore import QObject, QTimer, Signal

from .clock import SystemClock
from .db import StorageError
from .engine import is_due
from .repository import Repository

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 1000
DEFAULT_TITLE = "Rappel"


class Scheduler(QObject):
    """
    Polls the repository on a fixed period and notifies due tasks once.

    Runs on the Qt event loop, the same thread as every other mutation,
    so a scan never sees a task half-edited.
    """

    tasks_changed = Signal()

    def __init__(
        self,
        repo: Repository,
        notifier,
        clock=None,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        title: str = DEFAULT_TITLE,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.repo = repo
        self.notifier = notifier
        self.clock = clock or SystemClock()
        self.title = title
        self.timer = QTimer(self)
        self.timer.setInterval(interval_ms)
        self.timer.timeout.connect(self.tick)
        self._running = False
        # ids whose last delivery failed, warned about once
        self._failing: Set[str] = set()

    def start(self) -> None:
        self.stop()
        self._running = True
        self.timer.start()
        # also check right after launch
        QTimer.singleShot(0, self.tick)
        logger.info("Scheduler started (every %d ms)", self.timer.interval())

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self.timer.stop()
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        return self._running

    def tick(self) -> None:
        if not self._running:
            return
        try:
            self.scan()
        except StorageError:
            logger.error("Scan aborted: notified flags could not be saved")

    def scan(self, now: Optional[int] = None) -> int:
        """
        Notify every due task and persist the notified flags in one write.
        Returns the number of tasks marked notified.
        """
        if now is None:
            now = self.clock.now()

        delivered: List[str] = []
        for t in self.repo.list_tasks():
            if not is_due(t, now):
                continue
            if self.notifier.deliver(self.title, t.content):
                delivered.append(t.id)
                self._failing.discard(t.id)
            elif t.id not in self._failing:
                self._failing.add(t.id)
                logger.warning("Delivery failed for task id=%s, will retry", t.id)
            else:
                logger.debug("Delivery still failing for task id=%s", t.id)

        if not delivered:
            return 0

        changed = self.repo.mark_notified(delivered)
        logger.info("Notified %d task(s)", changed)
        if changed:
            self.tasks_changed.emit()
        return changed

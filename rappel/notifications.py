from __future__ import annotations
import logging

from PySide6.QtWidgets import QSystemTrayIcon

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(self, tray: QSystemTrayIcon, duration_ms: int = 10_000):
        self.tray = tray
        self.duration_ms = duration_ms
        self.supported = QSystemTrayIcon.supportsMessages()
        if not self.supported:
            logger.warning("System tray messages unsupported, reminders will not be shown")

    def deliver(self, title: str, body: str) -> bool:
        """Show a tray balloon/toast. Never raises; False means nothing was shown."""
        if not self.supported:
            return False
        try:
            self.tray.showMessage(title, body, QSystemTrayIcon.MessageIcon.Information, self.duration_ms)
        except Exception:
            logger.exception("Failed to show notification")
            return False
        logger.info("Notification shown: %s", body)
        return True

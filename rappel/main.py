from __future__ import annotations
import logging
import signal
import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication, QSystemTrayIcon, QMenu, QStyle
from PySide6.QtGui import QIcon, QAction
from PySide6.QtCore import QTimer

from .actions import run_task_action
from .config import load_settings
from .db import FileBackend, config_path, data_dir, tasks_path
from .engine import describe
from .logging_setup import setup_logging
from .notifications import Notifier
from .repository import Repository
from .scheduler import Scheduler
from .ui.task_editor import TaskEditor

logger = logging.getLogger(__name__)

MENU_ITEM_MAX_CHARS = 48


def tray_icon() -> QIcon:
    # Works in dev and in PyInstaller
    if getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS"):
        base = Path(sys._MEIPASS)  # type: ignore[attr-defined]
    else:
        base = Path(__file__).resolve().parent
    p = base / "assets" / "tray.png"
    if p.exists():
        return QIcon(str(p))
    return QApplication.style().standardIcon(QStyle.StandardPixmap.SP_MessageBoxInformation)


def main() -> int:
    setup_logging(data_dir())
    settings = load_settings(config_path())

    app = QApplication(sys.argv)
    app.setWindowIcon(tray_icon())
    app.setQuitOnLastWindowClosed(False)

    # Qt's event loop eats SIGINT unless we pump it. This makes Ctrl-C behave.
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    _sig_timer = QTimer()
    _sig_timer.start(250)
    _sig_timer.timeout.connect(lambda: None)

    repo = Repository(FileBackend(tasks_path()), settings=settings)

    tray = QSystemTrayIcon()
    tray.setIcon(tray_icon())
    tray.setToolTip("Rappel")

    notifier = Notifier(tray)
    scheduler = Scheduler(
        repo,
        notifier,
        interval_ms=settings.poll_interval_ms,
        title=settings.notification_title,
    )

    menu = QMenu()

    act_add = QAction("Nouveau rappel…")
    act_add.triggered.connect(lambda: _open_editor(repo, None))
    menu.addAction(act_add)

    pending_menu = menu.addMenu("En attente")
    pending_menu.aboutToShow.connect(lambda: _fill_pending(pending_menu, repo, refresh_tooltip))

    menu.addSeparator()

    def quit_cleanly():
        scheduler.stop()
        # Ensure tray icon disappears immediately; avoids some Qt shutdown warnings.
        tray.hide()
        app.quit()

    act_quit = QAction("Quitter")
    act_quit.triggered.connect(quit_cleanly)
    menu.addAction(act_quit)

    tray.setContextMenu(menu)

    def refresh_tooltip():
        tray.setToolTip(f"Rappel ({len(repo.list_pending())} en attente)")

    scheduler.tasks_changed.connect(refresh_tooltip)
    menu.aboutToShow.connect(refresh_tooltip)
    refresh_tooltip()
    app.aboutToQuit.connect(scheduler.stop)

    scheduler.start()
    tray.show()
    logger.info("Rappel running, %d task(s) loaded", len(repo.list_tasks()))
    return app.exec()


def _fill_pending(menu: QMenu, repo: Repository, on_change=None) -> None:
    menu.clear()
    now = repo.clock.now()
    pending = repo.list_pending()
    if not pending:
        menu.addAction("(aucun)").setEnabled(False)
        return
    for task in pending:
        view = describe(task, now, repo.tz)
        label = view.content
        if len(label) > MENU_ITEM_MAX_CHARS:
            label = label[: MENU_ITEM_MAX_CHARS - 1] + "…"
        if view.due_text:
            label = f"{label}  ({'en retard, ' if view.overdue else ''}{view.due_text})"
        sub = menu.addMenu(label)
        sub.addAction("Modifier…").triggered.connect(lambda _=False, tid=task.id: _open_editor(repo, tid))
        sub.addAction("Terminer").triggered.connect(
            lambda _=False, tid=task.id: run_task_action(repo.complete_task, tid, on_change)
        )
        sub.addAction("Supprimer").triggered.connect(
            lambda _=False, tid=task.id: run_task_action(repo.delete_task, tid, on_change)
        )


def _open_editor(repo: Repository, task_id) -> None:
    dlg = TaskEditor(repo, task_id=task_id)
    dlg.exec()

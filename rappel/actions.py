from __future__ import annotations
import logging
from typing import Callable, Optional

from .db import StorageError

logger = logging.getLogger(__name__)


def run_task_action(
    action: Callable[[str], object],
    task_id: str,
    on_done: Optional[Callable[[], None]] = None,
) -> bool:
    """
    Run a menu action such as `repo.complete_task` on one task.

    A storage failure is logged instead of escaping into the Qt slot.
    `on_done` runs either way so the tray reflects what is stored.
    """
    try:
        action(task_id)
        ok = True
    except StorageError:
        logger.exception("Action on task id=%s could not be saved", task_id)
        ok = False
    if on_done is not None:
        on_done()
    return ok

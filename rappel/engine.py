from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import timedelta, tzinfo
from typing import Optional, Tuple, Union

from .clock import to_local
from .models import ParsedTime, Task, TimeEdit
from .parser import parse
from .resolver import OUT_OF_RANGE

logger = logging.getLogger(__name__)

DAY_ABBR = ["lun.", "mar.", "mer.", "jeu.", "ven.", "sam.", "dim."]  # Mon=0
MONTH_ABBR = [
    "janv.", "févr.", "mars", "avr.", "mai", "juin",
    "juil.", "août", "sept.", "oct.", "nov.", "déc.",
]


@dataclass(frozen=True)
class TaskView:
    task_id: str
    content: str
    completed: bool
    overdue: bool

    # UI display
    due_text: Optional[str]
    highlight: Optional[Tuple[int, int]]  # [start, end) of the time expression in content


def is_due(task: Task, now: int) -> bool:
    """Should the scheduler notify this task now?"""
    return (
        task.timestamp is not None
        and not task.completed
        and not task.notified
        and task.timestamp <= now
    )


def is_overdue(task: Task, now: int) -> bool:
    return task.timestamp is not None and not task.completed and task.timestamp <= now


def format_due(timestamp: int, now: int, tz: Optional[tzinfo] = None) -> Optional[str]:
    """French due text, or None when `timestamp` is past what the calendar can show."""
    try:
        due = to_local(timestamp, tz)
    except OUT_OF_RANGE:
        logger.warning("Due time %s is out of range", timestamp)
        return None
    today = to_local(now, tz).date()
    hhmm = due.strftime("%H:%M")
    if due.date() == today:
        return f"Aujourd'hui {hhmm}"
    if due.date() == today + timedelta(days=1):
        return f"Demain {hhmm}"
    return f"{DAY_ABBR[due.weekday()]} {due.day} {MONTH_ABBR[due.month - 1]} {hhmm}"


def highlight_span(content: str, match: Optional[str]) -> Optional[Tuple[int, int]]:
    if not match:
        return None
    start = content.lower().find(match.lower())
    if start < 0:
        return None
    return start, start + len(match)


def describe(task: Task, now: int, tz: Optional[tzinfo] = None) -> TaskView:
    """
    Single source of truth for how a task is shown:
    - due date text (French, relative to today)
    - overdue flag
    - where the time expression sits in the text
    """
    return TaskView(
        task_id=task.id,
        content=task.content,
        completed=task.completed,
        overdue=is_overdue(task, now),
        due_text=format_due(task.timestamp, now, tz) if task.timestamp is not None else None,
        highlight=highlight_span(task.content, task.time.match if task.time else None),
    )


def plan_time_edit(task: Task, new_content: str) -> Union[ParsedTime, TimeEdit]:
    """
    Decide what an edit does to the schedule, from the edited text.

    Same reference as before -> KEEP (the "+N" adjustment path).
    No time expression any more -> CLEAR.
    Otherwise the newly parsed time.
    """
    parsed = parse(new_content)
    if parsed is None:
        return TimeEdit.CLEAR
    if parsed.reference == task.reference:
        return TimeEdit.KEEP
    return parsed

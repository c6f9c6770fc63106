from __future__ import annotations
import json
import logging
import re
import uuid
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Union

from .clock import SystemClock, zone
from .db import FileBackend, StorageReadError, StorageWriteError
from .models import (
    AppSettings, ParsedTime, RefKind, RelativeDays, RelativeHours, RelativeMinutes,
    SpecificDay, Task, TimeEdit, TimeReference,
)
from .resolver import adjustment_unit, resolve, shift

logger = logging.getLogger(__name__)

# "+10", "-5" typed into an edited task
_ADJUST_RE = re.compile(r"(?<![\w+-])([+-]\d+)(?!\w)")


def _opt_int(v: Any) -> Optional[int]:
    return None if v is None else int(v)


# ---------- JSON codec ----------
def time_to_dict(t: ParsedTime) -> Dict[str, Any]:
    ref = t.reference
    return {
        "type": ref.kind.value,
        "match": t.match,
        "keyword": getattr(ref, "keyword", None),
        "hours": getattr(ref, "hours", None),
        "minutes": getattr(ref, "minutes", None),
        "seconds": getattr(ref, "seconds", None),
        "days": getattr(ref, "days", None),
    }


def time_from_dict(d: Optional[Dict[str, Any]]) -> Optional[ParsedTime]:
    if not d:
        return None
    try:
        kind = RefKind(d.get("type"))
        ref: TimeReference
        if kind == RefKind.RELATIVE_MINUTES:
            ref = RelativeMinutes(minutes=int(d["minutes"]), seconds=_opt_int(d.get("seconds")))
        elif kind == RefKind.RELATIVE_HOURS:
            ref = RelativeHours(hours=int(d["hours"]), minutes=_opt_int(d.get("minutes")))
        elif kind == RefKind.RELATIVE_DAYS:
            ref = RelativeDays(days=int(d["days"]))
        else:
            ref = SpecificDay(
                keyword=str(d["keyword"]),
                hours=_opt_int(d.get("hours")),
                minutes=_opt_int(d.get("minutes")),
            )
    except (KeyError, TypeError, ValueError):
        logger.warning("Dropping unreadable timeInfo %r", d)
        return None
    return ParsedTime(reference=ref, match=str(d.get("match") or ""))


def task_to_dict(t: Task) -> Dict[str, Any]:
    return {
        "id": t.id,
        "content": t.content,
        "timeInfo": time_to_dict(t.time) if t.time else None,
        "timestamp": t.timestamp,
        "createdAt": t.created_at,
        "completed": t.completed,
        "notified": t.notified,
    }


def task_from_dict(d: Dict[str, Any]) -> Task:
    return Task(
        id=str(d["id"]),
        content=str(d.get("content") or ""),
        time=time_from_dict(d.get("timeInfo")),
        timestamp=_opt_int(d.get("timestamp")),
        created_at=int(d.get("createdAt") or 0),
        completed=bool(d.get("completed", False)),
        notified=bool(d.get("notified", False)),
    )


def encode_tasks(tasks: Iterable[Task]) -> bytes:
    return json.dumps([task_to_dict(t) for t in tasks], indent=2, ensure_ascii=False).encode("utf-8")


def decode_tasks(raw: bytes) -> List[Task]:
    try:
        items = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise StorageReadError(f"tasks file is not valid JSON: {e}") from e
    if not isinstance(items, list):
        raise StorageReadError("tasks file must contain a JSON array")

    out: List[Task] = []
    for d in items:
        if not isinstance(d, dict) or not d.get("id"):
            logger.warning("Skipping task record without id: %r", d)
            continue
        try:
            out.append(task_from_dict(d))
        except (TypeError, ValueError):
            logger.warning("Skipping malformed task record %r", d.get("id"))
    return out


class Repository:
    """
    Owns the task collection.

    The list is read from the backend once, on first use, and kept in memory
    afterwards. Every mutation builds a new list, writes all of it and only
    then replaces the cached one, so a failed write leaves memory matching
    what is on disk. Tasks are frozen; callers change them through the
    methods below.
    """

    def __init__(self, backend: FileBackend, clock=None, settings: Optional[AppSettings] = None):
        self.backend = backend
        self.clock = clock or SystemClock()
        self.settings = settings or AppSettings()
        self.tz = zone(self.settings.timezone)
        self._cache: Optional[List[Task]] = None

    # ---------- Persistence ----------
    def _load(self) -> List[Task]:
        if self._cache is None:
            try:
                raw = self.backend.read_all()
                self._cache = decode_tasks(raw) if raw else []
            except StorageReadError:
                logger.exception("Error loading tasks; starting with an empty list")
                self._cache = []
            logger.debug("Loaded %d tasks", len(self._cache))
        return self._cache

    def _save(self, tasks: List[Task]) -> None:
        try:
            self.backend.write_all(encode_tasks(tasks))
        except StorageWriteError:
            logger.exception("Error saving tasks")
            raise
        self._cache = tasks

    def resolve_time(self, ref: Optional[TimeReference], now: int) -> Optional[int]:
        return resolve(ref, now, default_hour=self.settings.default_hour, tz=self.tz)

    @staticmethod
    def _index(tasks: List[Task], task_id: str) -> Optional[int]:
        for i, t in enumerate(tasks):
            if t.id == task_id:
                return i
        return None

    # ---------- Queries ----------
    def list_tasks(self) -> List[Task]:
        """All tasks, newest first."""
        return sorted(self._load(), key=lambda t: t.created_at, reverse=True)

    def list_pending(self) -> List[Task]:
        return [t for t in self.list_tasks() if not t.completed]

    def list_completed(self) -> List[Task]:
        return [t for t in self.list_tasks() if t.completed]

    def get_task(self, task_id: str) -> Optional[Task]:
        tasks = self._load()
        i = self._index(tasks, task_id)
        return tasks[i] if i is not None else None

    # ---------- Mutations ----------
    def create_task(self, content: str, time: Optional[ParsedTime] = None) -> Task:
        content = content.strip()
        if not content:
            raise ValueError("content is required")

        now = self.clock.now()
        timestamp = self.resolve_time(time.reference if time else None, now)
        task = Task(
            id=str(uuid.uuid4()),
            content=content,
            time=time if timestamp is not None else None,
            timestamp=timestamp,
            created_at=now,
        )
        self._save(self._load() + [task])
        logger.debug("Task created id=%s timestamp=%s", task.id, task.timestamp)
        return task

    def delete_task(self, task_id: str) -> None:
        tasks = self._load()
        if self._index(tasks, task_id) is None:
            return
        self._save([t for t in tasks if t.id != task_id])
        logger.debug("Task deleted id=%s", task_id)

    def complete_task(self, task_id: str) -> None:
        tasks = self._load()
        i = self._index(tasks, task_id)
        if i is None or tasks[i].completed:
            return
        updated = list(tasks)
        updated[i] = replace(tasks[i], completed=True)
        self._save(updated)
        logger.debug("Task completed id=%s", task_id)

    def edit_task(
        self,
        task_id: str,
        content: str,
        time: Union[ParsedTime, TimeEdit] = TimeEdit.KEEP,
    ) -> Optional[Task]:
        """
        Change a task's text and, depending on `time`, its schedule.

        - a ParsedTime with a different reference: re-resolve from now;
          `notified` is cleared only if the due time actually moved.
        - TimeEdit.CLEAR: drop the schedule.
        - TimeEdit.KEEP (or the same reference): apply a "+N"/"-N" token
          from the content, in the unit of the current reference.

        Returns the updated task, or None when the id is unknown.
        """
        tasks = self._load()
        i = self._index(tasks, task_id)
        if i is None:
            logger.warning("Edit of unknown task id=%s", task_id)
            return None

        task = tasks[i]
        now = self.clock.now()
        content = content.strip()

        if isinstance(time, ParsedTime) and time.reference != task.reference:
            timestamp = self.resolve_time(time.reference, now)
            updated = replace(
                task,
                content=content,
                time=time if timestamp is not None else None,
                timestamp=timestamp,
                notified=task.notified and timestamp == task.timestamp and timestamp is not None,
            )
        elif time is TimeEdit.CLEAR:
            updated = replace(task, content=content, time=None, timestamp=None, notified=False)
        else:
            if isinstance(time, ParsedTime):
                # same reference, possibly spelled differently
                task = replace(task, time=time)
            updated = self._adjust(replace(task, content=content), now)

        new_tasks = list(tasks)
        new_tasks[i] = updated
        self._save(new_tasks)
        logger.debug("Task edited id=%s timestamp=%s notified=%s", task_id, updated.timestamp, updated.notified)
        return updated

    def _adjust(self, task: Task, now: int) -> Task:
        m = _ADJUST_RE.search(task.content)
        if not m:
            return task
        amount = int(m.group(1))
        if amount == 0:
            return task

        unit = adjustment_unit(task.reference)
        if unit is None or task.timestamp is None:
            logger.info("Adjustment %s ignored for task id=%s (no relative schedule)", m.group(1), task.id)
            return task

        # An overdue task is re-armed relative to now.
        base = now if task.timestamp <= now else task.timestamp
        timestamp = shift(base, amount, unit, self.tz)
        if timestamp is None:
            logger.warning("Adjustment %s ignored for task id=%s (out of range)", m.group(1), task.id)
            return task
        content = (task.content[:m.start()].rstrip() + " " + task.content[m.end():].lstrip()).strip()
        return replace(task, content=content, timestamp=timestamp, notified=False)

    def mark_notified(self, task_ids: Iterable[str]) -> int:
        """Flag the given tasks as notified and persist once. Returns how many changed."""
        wanted = set(task_ids)
        changed = 0
        updated: List[Task] = []
        for t in self._load():
            if t.id in wanted and not t.notified and t.timestamp is not None:
                t = replace(t, notified=True)
                changed += 1
            updated.append(t)
        if changed:
            self._save(updated)
        return changed

    def reset(self) -> None:
        self._save([])
        logger.info("All tasks removed")

    def export_snapshot(self) -> str:
        return json.dumps([task_to_dict(t) for t in self._load()], indent=2, ensure_ascii=False)

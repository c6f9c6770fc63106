import json

import pytest
from conftest import CountingBackend, FakeClock, local_ms

from rappel.db import FileBackend, StorageWriteError
from rappel.engine import plan_time_edit
from rappel.models import AppSettings, RelativeMinutes, TimeEdit
from rappel.parser import parse
from rappel.repository import Repository


def _create(repo, text):
    return repo.create_task(text, parse(text))


class FailingBackend(FileBackend):
    fail = False

    def write_all(self, data: bytes) -> None:
        if self.fail:
            raise StorageWriteError("disk full")
        super().write_all(data)


def test_create_resolves_from_now(repo, fake_clock):
    t = _create(repo, "dans 10 minutes appeler Marc")

    assert t.reference == RelativeMinutes(10)
    assert t.timestamp == fake_clock.now() + 600_000
    assert t.created_at == fake_clock.now()
    assert t.notified is False and t.completed is False
    assert repo.get_task(t.id) == t


def test_create_without_time(repo):
    t = _create(repo, "acheter du pain")
    assert t.time is None and t.timestamp is None


def test_create_rejects_empty_content(repo):
    with pytest.raises(ValueError):
        repo.create_task("   ")


def test_on_disk_format(repo, backend):
    t = _create(repo, "demain à 14h réunion")
    data = json.loads(backend.path.read_text(encoding="utf-8"))

    assert data == [
        {
            "id": t.id,
            "content": "demain à 14h réunion",
            "timeInfo": {
                "type": "specific_day",
                "match": "demain à 14h",
                "keyword": "demain",
                "hours": 14,
                "minutes": None,
                "seconds": None,
                "days": None,
            },
            "timestamp": local_ms(2026, 2, 19, 14, 0),
            "createdAt": t.created_at,
            "completed": False,
            "notified": False,
        }
    ]


def test_list_newest_first(repo, fake_clock):
    a = _create(repo, "a")
    fake_clock.advance(1000)
    b = _create(repo, "b")
    fake_clock.advance(1000)
    c = _create(repo, "c")
    assert [t.id for t in repo.list_tasks()] == [c.id, b.id, a.id]


def test_delete(repo, backend):
    t = _create(repo, "a")
    repo.delete_task(t.id)
    assert repo.get_task(t.id) is None
    assert repo.list_tasks() == []


def test_delete_unknown_is_noop(repo, backend):
    _create(repo, "a")
    writes = backend.writes
    repo.delete_task("nope")
    assert backend.writes == writes
    assert len(repo.list_tasks()) == 1


def test_complete_once(repo, backend):
    t = _create(repo, "a")
    repo.complete_task(t.id)
    writes = backend.writes
    repo.complete_task(t.id)
    repo.complete_task("nope")

    assert backend.writes == writes
    assert repo.get_task(t.id).completed is True
    assert repo.list_pending() == []
    assert [x.id for x in repo.list_completed()] == [t.id]


def test_edit_unknown_returns_none(repo):
    assert repo.edit_task("nope", "x") is None


def test_edit_new_reference_rearms(repo, fake_clock):
    t = _create(repo, "dans 10 minutes thé")
    repo.mark_notified([t.id])
    fake_clock.advance(60_000)

    text = "dans 20 minutes thé"
    updated = repo.edit_task(t.id, text, plan_time_edit(repo.get_task(t.id), text))

    assert updated.timestamp == fake_clock.now() + 1_200_000
    assert updated.notified is False
    assert updated.time.match == "dans 20 minutes"


def test_edit_new_reference_same_instant_keeps_notified(repo):
    t = _create(repo, "demain à 9h")
    repo.mark_notified([t.id])

    updated = repo.edit_task(t.id, "dem à 9h", parse("dem à 9h"))

    assert updated.timestamp == t.timestamp
    assert updated.notified is True


def test_edit_clear(repo):
    t = _create(repo, "dans 10 minutes thé")
    repo.mark_notified([t.id])
    updated = repo.edit_task(t.id, "thé", TimeEdit.CLEAR)
    assert updated.time is None and updated.timestamp is None
    assert updated.notified is False


def test_edit_keep_does_not_move_timestamp(repo, fake_clock):
    t = _create(repo, "dans 10 minutes thé")
    fake_clock.advance(120_000)
    updated = repo.edit_task(t.id, "dans 10 minutes thé vert", TimeEdit.KEEP)
    assert updated.timestamp == t.timestamp
    assert updated.content == "dans 10 minutes thé vert"


def test_adjust_overdue_counts_from_now(repo, fake_clock):
    t = _create(repo, "dans 10 minutes appeler")
    fake_clock.advance(20 * 60_000)
    repo.mark_notified([t.id])

    text = "dans 10 minutes appeler +5"
    updated = repo.edit_task(t.id, text, plan_time_edit(repo.get_task(t.id), text))

    assert updated.timestamp == fake_clock.now() + 5 * 60_000
    assert updated.notified is False
    assert updated.content == "dans 10 minutes appeler"


def test_adjust_future_adds_to_timestamp(repo, fake_clock):
    t = _create(repo, "dans 2 heures train")
    updated = repo.edit_task(t.id, "dans 2 heures -1 train", TimeEdit.KEEP)
    assert updated.timestamp == t.timestamp - 3_600_000
    assert updated.content == "dans 2 heures train"


def test_adjust_days_uses_calendar(repo):
    t = _create(repo, "dans 1 jour loyer")
    updated = repo.edit_task(t.id, "dans 1 jour loyer +2", TimeEdit.KEEP)
    assert updated.timestamp == local_ms(2026, 2, 21, 9, 15)


def test_adjust_unsupported_for_specific_day(repo):
    t = _create(repo, "vendredi dentiste")
    updated = repo.edit_task(t.id, "vendredi dentiste +3", TimeEdit.KEEP)
    assert updated.timestamp == t.timestamp
    assert updated.content == "vendredi dentiste +3"


def test_adjust_zero_is_ignored(repo):
    t = _create(repo, "dans 5 minutes x")
    updated = repo.edit_task(t.id, "dans 5 minutes x +0", TimeEdit.KEEP)
    assert updated.timestamp == t.timestamp


def test_adjust_ignores_numbers_inside_words(repo):
    t = _create(repo, "dans 5 minutes appeler 06-12")
    updated = repo.edit_task(t.id, "dans 5 minutes appeler 06-12", TimeEdit.KEEP)
    assert updated.timestamp == t.timestamp


def test_notified_requires_timestamp(repo):
    t = _create(repo, "sans date")
    assert repo.mark_notified([t.id]) == 0
    assert repo.get_task(t.id).notified is False


def test_failed_write_leaves_cache_untouched(tmp_path, fake_clock):
    backend = FailingBackend(tmp_path / "tasks.json")
    repo = Repository(backend, clock=fake_clock)
    first = _create(repo, "premier")

    backend.fail = True
    with pytest.raises(StorageWriteError):
        _create(repo, "second")
    with pytest.raises(StorageWriteError):
        repo.complete_task(first.id)

    assert repo.list_tasks() == [first]


def test_unreadable_file_degrades_to_empty(tmp_path, fake_clock):
    path = tmp_path / "tasks.json"
    path.write_text("{not json", encoding="utf-8")
    repo = Repository(FileBackend(path), clock=fake_clock)
    assert repo.list_tasks() == []


def test_bad_records_are_skipped(tmp_path, fake_clock):
    path = tmp_path / "tasks.json"
    path.write_text(
        json.dumps([
            {"content": "no id"},
            {"id": "a", "content": "ok", "timeInfo": {"type": "weird"}, "timestamp": 5, "createdAt": 1},
        ]),
        encoding="utf-8",
    )
    tasks = Repository(FileBackend(path), clock=fake_clock).list_tasks()
    assert len(tasks) == 1
    assert tasks[0].time is None and tasks[0].timestamp == 5
    assert tasks[0].completed is False and tasks[0].notified is False


def test_cache_is_hydrated_once(repo, backend):
    _create(repo, "a")
    backend.path.write_text("[]", encoding="utf-8")
    assert len(repo.list_tasks()) == 1


def test_reset(repo, backend):
    _create(repo, "a")
    repo.reset()
    assert repo.list_tasks() == []
    assert json.loads(backend.path.read_text(encoding="utf-8")) == []


def test_export_snapshot_round_trip(repo, fake_clock, tmp_path):
    a = _create(repo, "dans 10 minutes appeler Marc")
    fake_clock.advance(1000)
    b = _create(repo, "vendredi à 9h 30 dentiste")
    fake_clock.advance(1000)
    _create(repo, "acheter du pain")
    repo.complete_task(a.id)
    repo.mark_notified([b.id])

    snapshot = repo.export_snapshot()
    copy = tmp_path / "backup.json"
    copy.write_text(snapshot, encoding="utf-8")
    reloaded = Repository(FileBackend(copy), clock=FakeClock(0))

    assert reloaded.list_tasks() == repo.list_tasks()
    assert reloaded.export_snapshot() == snapshot


def test_configured_timezone_and_hour(tmp_path, fake_clock):
    settings = AppSettings(default_hour=7, timezone="Europe/Paris")
    repo = Repository(CountingBackend(tmp_path / "t.json"), clock=fake_clock, settings=settings)
    t = _create(repo, "demain")
    assert t.timestamp == local_ms(2026, 2, 19, 7, 0)


def test_create_with_huge_count_is_stored_unscheduled(repo):
    t = _create(repo, "dans 3000000 jours rien")
    assert t.time is None and t.timestamp is None
    assert repo.get_task(t.id) == t


def test_adjust_out_of_range_leaves_task_unchanged(repo):
    t = _create(repo, "dans 1 jour loyer")
    updated = repo.edit_task(t.id, "dans 1 jour loyer +99999999", TimeEdit.KEEP)
    assert updated.timestamp == t.timestamp
    assert updated.content == "dans 1 jour loyer +99999999"

import sqlite3
from datetime import date, datetime, timedelta

import pytest

from mytime.models import Task
from mytime.repository import (
    NotFoundError,
    RepositoryError,
    SqliteRepository,
    TaskAlreadyClosedError,
)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "data" / "mytime.sqlite"


@pytest.fixture
def repo(db_path):
    repository = SqliteRepository(db_path)
    yield repository
    repository.close()


def add(repo, desc, start, end=None, **fields):
    return repo.update_task(Task(desc=desc, start=start, end=end, **fields))


def seconds(start, end):
    return int((end - start).total_seconds())


def test_creates_database_file(db_path):
    with SqliteRepository(db_path) as repository:
        task = add(repository, "a", datetime(2024, 1, 8, 9, 0))
        assert repository.get_task(task.id).desc == "a"
    assert db_path.exists()


def test_accepts_file_url(tmp_path):
    path = tmp_path / "url.sqlite"
    with SqliteRepository(f"file://{path}") as repository:
        add(repository, "a", datetime(2024, 1, 8, 9, 0))
    assert path.exists()


def test_update_task_inserts_and_round_trips(repo):
    start = datetime(2024, 1, 8, 10, 0, 0, 250000)
    end = datetime(2024, 1, 8, 11, 30)
    task = add(repo, "write", start, end, project="p", external_id="42")
    loaded = repo.get_task(task.id)
    assert loaded.desc == "write"
    assert loaded.start == start
    assert loaded.end == end
    assert loaded.project == "p"
    assert loaded.external_id == "42"
    assert loaded.reported is False


def test_update_task_modifies_existing(repo):
    task = add(repo, "old", datetime(2024, 1, 8, 10, 0))
    task.desc = "new"
    task.end = datetime(2024, 1, 8, 12, 0)
    repo.update_task(task)
    loaded = repo.get_task(task.id)
    assert loaded.desc == "new"
    assert loaded.end == datetime(2024, 1, 8, 12, 0)


def test_get_task_missing_raises(repo):
    with pytest.raises(NotFoundError):
        repo.get_task(999)


def test_not_found_is_repository_error(repo):
    with pytest.raises(RepositoryError):
        repo.delete_task(999)


def test_create_task_starts_now_and_is_open(repo):
    before = datetime.now()
    task = repo.create_task("new", "proj", None)
    after = datetime.now()
    loaded = repo.get_task(task.id)
    assert before - timedelta(seconds=1) <= loaded.start <= after + timedelta(seconds=1)
    assert loaded.is_open()
    assert loaded.project == "proj"
    assert loaded.external_id is None


def test_close_task_and_already_closed(repo):
    task = add(repo, "run", datetime(2024, 1, 8, 10, 0))
    repo.close_task(task.id)
    assert not repo.get_task(task.id).is_open()
    with pytest.raises(TaskAlreadyClosedError):
        repo.close_task(task.id)


def test_close_task_missing(repo):
    with pytest.raises(NotFoundError):
        repo.close_task(12)


def test_close_opened_tasks(repo):
    first = add(repo, "a", datetime(2024, 1, 8, 10, 0))
    second = add(repo, "b", datetime(2024, 1, 8, 11, 0))
    end = datetime(2024, 1, 8, 10, 30)
    closed = add(repo, "c", datetime(2024, 1, 8, 9, 0), end)
    repo.close_opened_tasks()
    assert not repo.get_task(first.id).is_open()
    assert not repo.get_task(second.id).is_open()
    assert repo.get_task(closed.id).end == end


def test_delete_task(repo):
    task = add(repo, "gone", datetime(2024, 1, 8, 10, 0))
    repo.delete_task(task.id)
    with pytest.raises(NotFoundError):
        repo.get_task(task.id)


def test_set_task_as_reported(repo):
    task = add(repo, "r", datetime(2024, 1, 8, 10, 0), datetime(2024, 1, 8, 11, 0))
    repo.set_task_as_reported(task.id)
    assert repo.get_task(task.id).reported is True
    with pytest.raises(NotFoundError):
        repo.set_task_as_reported(task.id + 100)


def test_tasks_by_date_ordering_and_duration(repo):
    early_start, early_end = datetime(2024, 1, 8, 9, 0), datetime(2024, 1, 8, 10, 15)
    late_start, late_end = datetime(2024, 1, 8, 14, 0), datetime(2024, 1, 8, 14, 45)
    early = add(repo, "early", early_start, early_end)
    late = add(repo, "late", late_start, late_end)
    add(repo, "other day", datetime(2024, 1, 9, 9, 0), datetime(2024, 1, 9, 10, 0))

    tasks = repo.get_tasks_by_date(date(2024, 1, 8))
    assert [t.id for t in tasks] == [late.id, early.id]
    assert tasks[0].duration == seconds(late_start, late_end)
    assert tasks[1].duration == seconds(early_start, early_end)


def test_tasks_by_date_accepts_datetime(repo):
    task = add(repo, "x", datetime(2024, 1, 8, 9, 0), datetime(2024, 1, 8, 9, 30))
    tasks = repo.get_tasks_by_date(datetime(2024, 1, 8, 23, 59))
    assert [t.id for t in tasks] == [task.id]


def test_open_task_duration_counts_until_now(repo):
    start = datetime.now() - timedelta(minutes=5)
    add(repo, "running", start)
    (task,) = repo.get_tasks_by_date(start.date())
    assert 4 * 60 <= task.duration <= 6 * 60


def test_worked_duration_for_date(repo):
    a = (datetime(2024, 1, 8, 9, 0), datetime(2024, 1, 8, 10, 0))
    b = (datetime(2024, 1, 8, 11, 0), datetime(2024, 1, 8, 11, 20))
    add(repo, "a", *a)
    add(repo, "b", *b)
    add(repo, "c", datetime(2024, 1, 9, 9, 0), datetime(2024, 1, 9, 12, 0))
    assert repo.get_worked_duration_for_date(date(2024, 1, 8)) == seconds(*a) + seconds(*b)


def test_worked_duration_empty_day_is_zero(repo):
    assert repo.get_worked_duration_for_date(date(2024, 1, 8)) == 0


def test_weekly_worked_duration(repo):
    monday = (datetime(2024, 1, 8, 9, 0), datetime(2024, 1, 8, 10, 0))
    sunday = (datetime(2024, 1, 14, 9, 0), datetime(2024, 1, 14, 9, 45))
    add(repo, "mon", *monday)
    add(repo, "sun", *sunday)
    add(repo, "next week", datetime(2024, 1, 15, 9, 0), datetime(2024, 1, 15, 12, 0))
    add(repo, "prev week", datetime(2024, 1, 7, 9, 0), datetime(2024, 1, 7, 12, 0))
    expected = seconds(*monday) + seconds(*sunday)
    assert repo.get_weekly_worked_duration_for_date(date(2024, 1, 10)) == expected
    assert repo.get_weekly_worked_duration_for_date(date(2024, 1, 14)) == expected


def test_tasks_to_sync_grouping_and_filters(repo):
    a = (datetime(2024, 1, 8, 9, 0), datetime(2024, 1, 8, 10, 0))
    b = (datetime(2024, 1, 8, 11, 0), datetime(2024, 1, 8, 11, 30))
    first = add(repo, "work", *a, external_id="42", project="p")
    second = add(repo, "work", *b, external_id="42", project="p")
    later = add(repo, "work", datetime(2024, 1, 9, 9, 0), datetime(2024, 1, 9, 9, 10),
                external_id="42", project="p")
    add(repo, "reported", *a, external_id="42", reported=True)
    add(repo, "open", datetime(2024, 1, 8, 12, 0), external_id="42")
    add(repo, "no id", *a)
    add(repo, "empty id", *a, external_id="")

    groups = repo.get_tasks_to_sync()
    assert [g.date for g in groups] == ["2024-01-09", "2024-01-08"]

    newest, grouped = groups
    assert newest.ids == [str(later.id)]
    assert newest.id == str(later.id)
    assert set(grouped.ids) == {str(first.id), str(second.id)}
    assert set(grouped.id.split("-")) == {str(first.id), str(second.id)}
    assert grouped.duration == seconds(*a) + seconds(*b)
    assert grouped.external_id == "42"
    assert grouped.desc == "work"
    assert grouped.project == "p"


def test_tasks_to_sync_missing_project_is_empty(repo):
    add(repo, "x", datetime(2024, 1, 8, 9, 0), datetime(2024, 1, 8, 9, 30), external_id="7")
    (group,) = repo.get_tasks_to_sync()
    assert group.project == ""


def test_get_settings_missing(repo):
    with pytest.raises(NotFoundError):
        repo.get_settings()


def test_get_settings_reads_first_row(db_path, repo):
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "INSERT INTO settings (work_hours, theme, view_type, dark_mode) "
            "VALUES (?, ?, ?, ?)",
            ("8,8,8,8,8,0,0", "blue", "list", 1),
        )
        conn.execute(
            "INSERT INTO settings (work_hours, theme, view_type, dark_mode) "
            "VALUES (?, ?, ?, ?)",
            ("1,1,1,1,1,1,1", "red", "grid", 0),
        )
    conn.close()
    settings = repo.get_settings()
    assert settings.work_hours == "8,8,8,8,8,0,0"
    assert settings.theme == "blue"
    assert settings.dark_mode is True
    assert settings.theme_secondary == "#ce93d8"
    assert settings.integration_config == "{}"


def test_migration_adds_missing_columns(tmp_path):
    path = tmp_path / "old.sqlite"
    with sqlite3.connect(path) as conn:
        conn.execute(
            'CREATE TABLE tasks (id INTEGER PRIMARY KEY AUTOINCREMENT, "desc" VARCHAR NOT NULL, '
            'start TIMESTAMP NOT NULL, "end" TIMESTAMP)'
        )
        conn.execute(
            'INSERT INTO tasks ("desc", start) VALUES (?, ?)', ("legacy", "2024-01-08 09:00:00")
        )
    conn.close()
    with SqliteRepository(path) as repository:
        task = repository.get_task(1)
        assert task.desc == "legacy"
        assert task.project is None
        assert task.favourite is False
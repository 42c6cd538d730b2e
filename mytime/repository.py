"""Persistent storage of tasks and settings in an SQLite database."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date as _date
from datetime import datetime, timedelta
from pathlib import Path
from typing import Protocol

from mytime.models import Settings, Task, TaskToSync, format_timestamp, parse_timestamp

_DURATION = (
    "COALESCE(STRFTIME('%s', \"end\"), STRFTIME('%s', DATETIME('now', 'localtime')))"
    " - STRFTIME('%s', start)"
)
_ORDER = "start DESC, id"

_TASK_COLUMNS = {
    "id": "INTEGER PRIMARY KEY AUTOINCREMENT",
    "desc": "VARCHAR NOT NULL",
    "start": "TIMESTAMP NOT NULL",
    "end": "TIMESTAMP DEFAULT NULL",
    "reported": "NUMERIC DEFAULT false",
    "external_id": "VARCHAR DEFAULT NULL",
    "project": "VARCHAR DEFAULT NULL",
    "favourite": "NUMERIC DEFAULT false",
}

_SETTINGS_COLUMNS = {
    "id": "INTEGER PRIMARY KEY AUTOINCREMENT",
    "integration": "VARCHAR",
    "work_hours": "VARCHAR NOT NULL",
    "theme": "VARCHAR NOT NULL",
    "view_type": "VARCHAR NOT NULL",
    "dark_mode": "BOOLEAN NOT NULL",
    "right_sidebar_open": "NUMERIC NOT NULL DEFAULT false",
    "theme_secondary": "VARCHAR NOT NULL DEFAULT '#ce93d8'",
    "integration_config": "TEXT NOT NULL DEFAULT '{}'",
}


class RepositoryError(Exception):
    """A storage operation failed."""


class NotFoundError(RepositoryError):
    """The requested record does not exist."""


class TaskAlreadyClosedError(RepositoryError):
    """The task to close has already been closed."""


class Repository(Protocol):
    """Storage operations the service layer relies on."""

    def get_tasks_by_date(self, date: _date) -> list[Task]:
        """Tasks started on ``date``, newest first."""

    def get_tasks_to_sync(self) -> list[TaskToSync]:
        """Closed, unreported tasks with an external id, grouped for reporting."""

    def get_worked_duration_for_date(self, date: _date) -> int:
        """Seconds worked on ``date``."""

    def get_weekly_worked_duration_for_date(self, date: _date) -> int:
        """Seconds worked in the ISO week of ``date``."""

    def get_settings(self) -> Settings:
        """The stored settings."""

    def create_task(
        self, description: str, project: str | None, external_id: str | None
    ) -> Task:
        """Start a new task now."""

    def close_opened_tasks(self) -> None:
        """Close every task that is still running."""

    def close_task(self, task_id: int) -> None:
        """Close one running task."""

    def get_task(self, task_id: int) -> Task:
        """One task by id."""

    def update_task(self, task: Task) -> Task:
        """Store every field of ``task``."""

    def delete_task(self, task_id: int) -> None:
        """Remove one task."""

    def set_task_as_reported(self, task_id: int) -> None:
        """Mark one task as reported."""


def _quote(name: str) -> str:
    return f'"{name}"'


def _addable(definition: str) -> str:
    """A column definition usable in ALTER TABLE ADD COLUMN."""
    if "NOT NULL" in definition and "DEFAULT" not in definition:
        return definition.replace("NOT NULL", "").strip()
    return definition


def _day(value: _date) -> str:
    return value.strftime("%Y-%m-%d")


def _as_date(value: _date) -> _date:
    return value.date() if isinstance(value, datetime) else value


def _row_to_task(row: sqlite3.Row) -> Task:
    keys = row.keys()
    return Task(
        id=row["id"],
        desc=row["desc"],
        start=parse_timestamp(row["start"]),
        end=parse_timestamp(row["end"]),
        reported=bool(row["reported"]),
        external_id=row["external_id"],
        project=row["project"],
        favourite=bool(row["favourite"]),
        duration=int(row["duration"] or 0) if "duration" in keys else 0,
    )


class SqliteRepository:
    """Tasks and settings kept in an SQLite file."""

    def __init__(self, path: str | Path) -> None:
        location = str(path)
        if location.startswith("file://"):
            location = location[len("file://"):]
        if location != ":memory:":
            Path(location).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(location, check_same_thread=False)
        except sqlite3.Error as exc:
            raise RepositoryError(str(exc)) from exc
        self._conn.row_factory = sqlite3.Row
        self._now = datetime.now
        self._migrate("tasks", _TASK_COLUMNS)
        self._migrate("settings", _SETTINGS_COLUMNS)

    def __enter__(self) -> SqliteRepository:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as exc:
                raise RepositoryError(str(exc)) from exc

    def _migrate(self, table: str, columns: dict[str, str]) -> None:
        with self._transaction() as conn:
            definitions = ", ".join(
                f"{_quote(name)} {definition}" for name, definition in columns.items()
            )
            conn.execute(f"CREATE TABLE IF NOT EXISTS {table} ({definitions})")
            existing = {row["name"] for row in conn.execute(f"PRAGMA table_info({table})")}
            for name, definition in columns.items():
                if name not in existing:
                    conn.execute(
                        f"ALTER TABLE {table} ADD COLUMN {_quote(name)} {_addable(definition)}"
                    )

    def _fetch_task(self, conn: sqlite3.Connection, task_id: int) -> Task:
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"task {task_id} not found")
        return _row_to_task(row)

    def get_tasks_by_date(self, date: _date) -> list[Task]:
        """Tasks started on ``date`` with their durations, newest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT *, {_DURATION} AS duration FROM tasks "
                f"WHERE DATE(start) = DATE(?) ORDER BY {_ORDER}",
                (_day(date),),
            ).fetchall()
        return [_row_to_task(row) for row in rows]

    def get_worked_duration_for_date(self, date: _date) -> int:
        """Seconds worked on ``date``, counting running tasks up to now."""
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT COALESCE(SUM({_DURATION}), 0) FROM tasks "
                "WHERE DATE(start) = DATE(?)",
                (_day(date),),
            ).fetchone()
        return int(row[0])

    def get_weekly_worked_duration_for_date(self, date: _date) -> int:
        """Seconds worked in the ISO week of ``date`` within the same calendar year."""
        day = _as_date(date)
        monday = day - timedelta(days=day.weekday())
        sunday = monday + timedelta(days=6)
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT COALESCE(SUM({_DURATION}), 0) FROM tasks "
                "WHERE DATE(start) BETWEEN ? AND ? AND STRFTIME('%Y', start) = ?",
                (_day(monday), _day(sunday), str(day.year)),
            ).fetchone()
        return int(row[0])

    def get_settings(self) -> Settings:
        """The first stored settings record."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM settings ORDER BY id LIMIT 1").fetchone()
        if row is None:
            raise NotFoundError("settings not found")
        return Settings(
            id=row["id"],
            integration=row["integration"],
            work_hours=row["work_hours"],
            theme=row["theme"],
            view_type=row["view_type"],
            dark_mode=bool(row["dark_mode"]),
            right_sidebar_open=bool(row["right_sidebar_open"]),
            theme_secondary=row["theme_secondary"],
            integration_config=row["integration_config"],
        )

    def create_task(
        self, description: str, project: str | None, external_id: str | None
    ) -> Task:
        """Start a new task at the current local time."""
        task = Task(
            desc=description,
            start=self._now(),
            project=project,
            external_id=external_id,
        )
        return self.update_task(task)

    def close_opened_tasks(self) -> None:
        """End every running task at the current local time."""
        with self._transaction() as conn:
            conn.execute(
                'UPDATE tasks SET "end" = ? WHERE "end" IS NULL',
                (format_timestamp(self._now()),),
            )

    def close_task(self, task_id: int) -> None:
        """End one running task now; raise if it is missing or already closed."""
        with self._transaction() as conn:
            task = self._fetch_task(conn, task_id)
            if task.end is not None:
                raise TaskAlreadyClosedError("task already closed")
            conn.execute(
                'UPDATE tasks SET "end" = ? WHERE id = ?',
                (format_timestamp(self._now()), task_id),
            )

    def get_task(self, task_id: int) -> Task:
        """One task by id; raise NotFoundError when missing."""
        with self._transaction() as conn:
            return self._fetch_task(conn, task_id)

    def update_task(self, task: Task) -> Task:
        """Store every field of ``task``, inserting it when it has no id yet."""
        values = (
            task.desc,
            format_timestamp(task.start),
            format_timestamp(task.end) if task.end is not None else None,
            int(task.reported),
            task.external_id,
            task.project,
            int(task.favourite),
        )
        with self._transaction() as conn:
            if task.id is None:
                cursor = conn.execute(
                    'INSERT INTO tasks ("desc", start, "end", reported, external_id, '
                    "project, favourite) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    values,
                )
                task.id = cursor.lastrowid
            else:
                conn.execute(
                    'INSERT OR REPLACE INTO tasks (id, "desc", start, "end", reported, '
                    "external_id, project, favourite) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (task.id, *values),
                )
        return task

    def delete_task(self, task_id: int) -> None:
        """Remove one task; raise NotFoundError when missing."""
        with self._transaction() as conn:
            self._fetch_task(conn, task_id)
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))

    def get_tasks_to_sync(self) -> list[TaskToSync]:
        """Closed, unreported tasks with an external id, grouped per issue and day."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT GROUP_CONCAT(id, '-') AS sync_id, external_id, "
                f'SUM({_DURATION}) AS duration, "desc", '
                "STRFTIME('%Y-%m-%d', start) AS date, project, "
                "GROUP_CONCAT(id) AS ids FROM tasks "
                'WHERE "end" IS NOT NULL AND reported = 0 '
                "AND external_id IS NOT NULL AND external_id != '' "
                "GROUP BY external_id, \"desc\", STRFTIME('%Y-%m-%d', start), project "
                "ORDER BY STRFTIME('%Y-%m-%d', start) DESC, sync_id"
            ).fetchall()
        return [
            TaskToSync(
                id=str(row["sync_id"]),
                external_id=row["external_id"],
                duration=int(row["duration"] or 0),
                desc=row["desc"],
                date=row["date"],
                project=row["project"] or "",
                ids=str(row["ids"]).split(",") if row["ids"] is not None else [],
            )
            for row in rows
        ]

    def set_task_as_reported(self, task_id: int) -> None:
        """Mark one task as reported; raise NotFoundError when missing."""
        with self._transaction() as conn:
            self._fetch_task(conn, task_id)
            conn.execute("UPDATE tasks SET reported = 1 WHERE id = ?", (task_id,))
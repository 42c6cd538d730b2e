"""Task operations on top of a repository."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date as _date

from mytime.models import Task, TaskToSync
from mytime.repository import Repository, RepositoryError
from mytime.util import humanize_duration


@dataclass(frozen=True)
class WorkedDuration:
    """Worked time, goals and overtime for a day and its week, formatted for display."""

    daily: str
    daily_goal: str
    daily_overtime: str
    weekly: str
    weekly_goal: str
    weekly_overtime: str


class Service:
    """The operations the user interface performs on tasks."""

    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def get_tasks_by_date(self, date: _date) -> list[Task]:
        """Tasks started on ``date``, newest first."""
        return self.repo.get_tasks_by_date(date)

    def get_worked_duration(self, date: _date) -> WorkedDuration:
        """Worked time on ``date`` and its week against the configured goals."""
        daily = self.repo.get_worked_duration_for_date(date)
        weekly = self.repo.get_weekly_worked_duration_for_date(date)
        settings = self.repo.get_settings()

        daily_goal = settings.goal_day_in_seconds(date)
        weekly_goal = settings.goal_week_in_seconds()

        return WorkedDuration(
            daily=humanize_duration(daily),
            daily_goal=humanize_duration(daily_goal),
            daily_overtime=humanize_duration(daily - daily_goal),
            weekly=humanize_duration(weekly),
            weekly_goal=humanize_duration(weekly_goal),
            weekly_overtime=humanize_duration(weekly - weekly_goal),
        )

    def create_task(
        self, description: str, project: str | None, external_id: str | None
    ) -> None:
        """Stop whatever is running and start a new task."""
        try:
            self.repo.close_opened_tasks()
        except RepositoryError:
            pass
        self.repo.create_task(description, project, external_id)

    def start_stop_task(self, task_id: int) -> None:
        """Stop the task if it is running, otherwise start a new one like it."""
        task = self.repo.get_task(task_id)
        if task.is_open():
            self.repo.close_task(task_id)
            return
        self.create_task(task.desc, task.project, task.external_id)

    def update_task(self, task: Task) -> None:
        """Store the changes made to ``task``."""
        self.repo.update_task(task)

    def delete_task(self, task_id: int) -> None:
        """Remove a task."""
        self.repo.delete_task(task_id)

    def get_tasks_to_sync(self) -> list[TaskToSync]:
        """Grouped tasks waiting to be reported; empty when they cannot be read."""
        try:
            return self.repo.get_tasks_to_sync()
        except RepositoryError:
            return []

    def set_task_as_reported(self, task_id: int) -> None:
        """Mark a task as reported."""
        self.repo.set_task_as_reported(task_id)
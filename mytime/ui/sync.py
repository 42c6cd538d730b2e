"""The synchronisation screen: report grouped tasks to Redmine."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

import urwid

from mytime.models import TaskToSync
from mytime.redmine import ProjectActivity, RedmineError
from mytime.repository import RepositoryError
from mytime.ui.actions import Action, ActionsManager, rune_key, special_key
from mytime.ui.components import Pages, Table, show_confirm_modal, show_form_modal
from mytime.util import humanize_duration

log = logging.getLogger(__name__)

HEADER = ["Description", "Date", "Duration", "Ext.ID", "Tasks Ids", "Activity", "Status"]
ACTIVITY_COLUMN = 5
STATUS_COLUMN = 6
CONFIRM_MODAL = "confirmSync"


@dataclass
class TaskActivities:
    """Activities available for one task to sync and the one chosen for it."""

    activities: list[ProjectActivity] | None = None
    default: ProjectActivity | None = None
    index: int = 0


def _start_thread(fn: Callable[[], None]) -> None:
    threading.Thread(target=fn, daemon=True).start()


class SyncView:
    """Tasks waiting to be reported, their Redmine activities and the sync action."""

    def __init__(
        self,
        service: Any,
        redmine: Any,
        pages: Pages,
        on_close: Callable[[], None],
    ) -> None:
        self.service = service
        self.redmine = redmine
        self.pages = pages
        self.on_close = on_close
        self.tasks: list[TaskToSync] = list(service.get_tasks_to_sync())
        self.activities = [TaskActivities(index=i) for i in range(len(self.tasks))]
        self.all_have_activity = False
        self.actions_lock = True
        self.dialog: Any = None
        self.dispatch: Callable[[Callable[[], None]], None] = lambda fn: fn()
        self.background: Callable[[Callable[[], None]], None] = _start_thread
        self._ui_lock = threading.RLock()
        self.actions_manager: ActionsManager | None = None

        self.footer = urwid.Text("")
        self.table = Table(HEADER, self._refresh_actions)
        self.table.set_title("Tasks Synchronization")
        self.actions_manager = ActionsManager(self._build_actions(), self.footer)
        self.table.set_input_capture(self.actions_manager.handle_key)

        self.widget = urwid.Pile(
            [self.table, (3, urwid.LineBox(urwid.Filler(self.footer)))], focus_item=0
        )
        self._render_table()

    def _ui(self, fn: Callable[[], None]) -> None:
        def run() -> None:
            with self._ui_lock:
                fn()

        self.dispatch(run)

    def _refresh_actions(self) -> None:
        if self.actions_manager is not None:
            self.actions_manager.refresh()

    def _render_table(self) -> None:
        self.table.set_rows(
            [
                [
                    task.desc,
                    task.date,
                    (humanize_duration(task.duration), "right"),
                    task.external_id,
                    (",".join(task.ids), "right"),
                    "[red]Loading...",
                    ("🔴", "center"),
                ]
                for task in self.tasks
            ]
        )

    def _build_actions(self) -> list[Action]:
        has_tasks = lambda: len(self.tasks) > 0  # noqa: E731
        nothing = lambda: None  # noqa: E731
        return [
            Action("Close", special_key("Esc", "esc"), lambda: not self.actions_lock, self.on_close),
            Action("Next Task", rune_key("j", "j"), has_tasks, nothing),
            Action("Prev Task", rune_key("k", "k"), has_tasks, nothing),
            Action(
                "Sync",
                rune_key("s", "s"),
                lambda: not self.actions_lock and self.all_have_activity,
                self._confirm_sync,
            ),
            Action(
                "Select Activity",
                rune_key("a", "a"),
                lambda: not self.actions_lock and self.table.get_row_selected() > -1,
                self._select_for_selected_row,
            ),
        ]

    def _set_cell(self, row: int, col: int, text: str) -> None:
        self._ui(lambda: self.table.set_cell_text(row, col, text))

    def _load_task_activity(self, index: int, task: TaskToSync) -> TaskActivities:
        row = index + 1
        log.info("Loading task activity for externalId: %s", task.external_id)
        try:
            activities, default = self.redmine.load_activities(task.external_id)
        except RedmineError as exc:
            log.error("Error loading task activity: %s", exc)
            self._set_cell(row, ACTIVITY_COLUMN, "[red]Connection Error!")
            return TaskActivities(index=index)

        if default is not None and default.name:
            text = "[green]" + default.name
        else:
            text = "[red]Select activity!"
        self._set_cell(row, ACTIVITY_COLUMN, text)
        return TaskActivities(activities=activities, default=default, index=index)

    def load_activities(self) -> None:
        """Fetch the activities of every task at once, then unlock the actions."""
        workers = max(1, len(self.tasks))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(
                pool.map(self._load_task_activity, range(len(self.tasks)), self.tasks)
            )

        def finish() -> None:
            for result in results:
                self.activities[result.index] = result
            self.all_tasks_have_activity()
            self.actions_lock = False
            self._refresh_actions()

        self._ui(finish)

    def all_tasks_have_activity(self) -> bool:
        """Whether every task has an activity chosen; the result is remembered."""
        ready = all(
            entry.default is not None and bool(entry.default.name)
            for entry in self.activities
        )
        self.all_have_activity = ready
        return ready

    def _sync_task(self, index: int, task: TaskToSync) -> None:
        row = index + 1
        default = self.activities[index].default
        if default is None:
            log.warning("Task %s has no activity, not synced", task.id)
            self._set_cell(row, STATUS_COLUMN, "⚠️")
            return

        log.info("Syncing task: %s with activityId: %s", task.id, default.id)
        self._set_cell(row, STATUS_COLUMN, "⏳")
        try:
            self.redmine.send_task(
                task.external_id, task.desc, task.date, task.duration, default.id
            )
        except RedmineError as exc:
            log.error("Error sending task %s: %s", task.id, exc)
            self._set_cell(row, STATUS_COLUMN, "⚠️")
            return

        self._set_cell(row, STATUS_COLUMN, "🟢")
        for id_text in task.ids:
            try:
                self.service.set_task_as_reported(int(id_text))
            except (ValueError, RepositoryError) as exc:
                log.error("Error marking task %s as reported: %s", id_text, exc)

    def sync_tasks(self) -> None:
        """Send every task to Redmine at once and mark the sent ones as reported."""
        log.info("Syncing tasks...")
        self.actions_lock = True
        self._ui(self._refresh_actions)
        workers = max(1, len(self.tasks))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            list(pool.map(self._sync_task, range(len(self.tasks)), self.tasks))

        def finish() -> None:
            self.actions_lock = False
            self._refresh_actions()

        self._ui(finish)

    def _confirm_sync(self) -> None:
        def done(button: str) -> None:
            if button != "Ok":
                return
            self.actions_lock = True
            self._refresh_actions()
            self.background(self.sync_tasks)

        self.dialog = show_confirm_modal(
            self.pages,
            CONFIRM_MODAL,
            "Do you want to sync all tasks?",
            ["Cancel", "Ok"],
            done,
        )

    def _select_for_selected_row(self) -> None:
        row = self.table.get_row_selected()
        if row == -1:
            return
        try:
            self.select_activity(row)
        except LookupError as exc:
            log.info("%s", exc)

    def select_activity(self, index: int) -> None:
        """Open the activity chooser for the task at ``index``.

        Raises IndexError for an unknown task and LookupError when its
        activities have not been loaded.
        """
        if not 0 <= index < len(self.tasks):
            raise IndexError(f"no task at index {index}")
        entry = self.activities[index]
        if entry.activities is None:
            raise LookupError("No activities loaded")
        task = self.tasks[index]

        group: list[urwid.RadioButton] = []
        buttons = [
            urwid.RadioButton(
                group,
                activity.name,
                state=entry.default is not None and activity.id == entry.default.id,
            )
            for activity in entry.activities
        ]

        def done() -> None:
            chosen = next((i for i, button in enumerate(buttons) if button.state), None)
            if chosen is None:
                return
            self.set_activity(index, chosen)

        fields = [urwid.Text(f"Task: {task.desc}"), urwid.Text("Activity:"), *buttons]
        height = max(9, len(buttons) + 7)
        self.dialog = show_form_modal(self.pages, "Select Activity", 80, height, fields, done)

    def set_activity(self, task_index: int, activity_index: int) -> None:
        """Choose the activity at ``activity_index`` for the task at ``task_index``."""
        entry = self.activities[task_index]
        if entry.activities is None:
            raise LookupError("No activities loaded")
        activity = entry.activities[activity_index]
        log.info("Option selected %s", activity)
        entry.default = activity
        self.table.set_cell_text(task_index + 1, ACTIVITY_COLUMN, "[green]" + activity.name)
        self.all_tasks_have_activity()
        self._refresh_actions()
        self.table.deselect()
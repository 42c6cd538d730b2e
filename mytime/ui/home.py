"""The home screen: the day's tasks, the time worked and the actions on them."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import urwid

from mytime.models import Task
from mytime.repository import RepositoryError
from mytime.service import Service
from mytime.ui.actions import Action, ActionsManager, _to_markup, rune_key, special_key
from mytime.ui.components import (
    CellSpec,
    Pages,
    Table,
    show_alert_modal,
    show_confirm_modal,
    show_form_modal,
)
from mytime.util import humanize_duration, update_time

log = logging.getLogger(__name__)

REFRESH_RATE = 10
HEADER = ["ID", "Project", "Description", "Ext.ID", "Started", "Ended", "Duration", "Reported"]
TIME_FORMAT = "%H:%M"
RUNNING_ICON = "🚗"
DELETE_MODAL = "deleteTaskModal"


def format_header_section(title: str, formatted: str, goal: str, overtime: str) -> str:
    """Markup for one summary: green when on track, red when short of the goal."""
    log.debug("formatHeaderSection %s %s %s %s", title, formatted, goal, overtime)
    color = "red" if overtime.startswith("-") else "green"
    return f"[{color}]{title}: {formatted} of {goal}[-] ({overtime})"


def task_row(task: Task) -> list[CellSpec]:
    """The table cells showing ``task``."""
    end = task.end.strftime(TIME_FORMAT) if task.end is not None else RUNNING_ICON
    return [
        str(task.id),
        task.project or "",
        task.desc,
        task.external_id or "",
        (task.start.strftime(TIME_FORMAT), "center"),
        (end, "center"),
        (humanize_duration(task.duration), "right"),
        (task.reported_icon(), "center"),
    ]


@dataclass
class _Dialog:
    modal: Any
    fields: dict[str, urwid.Edit] = field(default_factory=dict)


def _edit(caption: str, text: str = "") -> urwid.Edit:
    return urwid.Edit(caption, text)


def _field(edit: urwid.Edit) -> urwid.Widget:
    return urwid.AttrMap(edit, "field")


class HomeView:
    """Tasks of one day with worked-time summaries and keyboard actions."""

    def __init__(
        self,
        service: Service,
        pages: Pages,
        on_quit: Callable[[], None],
        on_sync: Callable[[], None],
    ) -> None:
        self.service = service
        self.pages = pages
        self.on_quit = on_quit
        self.on_sync = on_sync
        self.clock: Callable[[], datetime] = datetime.now
        self.date = self.clock()
        self.tasks: list[Task] = []
        self.dialog: _Dialog | None = None
        self.actions_manager: ActionsManager | None = None

        self._today_text = urwid.Text("")
        self._week_text = urwid.Text("")
        self._date_text = urwid.Text("", align="right")
        header = urwid.LineBox(
            urwid.Filler(urwid.Columns([self._today_text, self._week_text, self._date_text])),
            title="MyTime",
        )
        self.footer = urwid.Text("")

        self.table = Table(HEADER, self._refresh_actions)
        self.actions_manager = ActionsManager(self._build_actions(), self.footer)
        self.table.set_input_capture(self.actions_manager.handle_key)

        self.widget = urwid.Pile(
            [(3, header), self.table, (4, urwid.LineBox(urwid.Filler(self.footer)))],
            focus_item=1,
        )
        self.render()

    def _refresh_actions(self) -> None:
        if self.actions_manager is not None:
            self.actions_manager.refresh()

    def schedule_refresh(self, loop: urwid.MainLoop) -> None:
        """Redraw the view every few seconds while ``loop`` runs."""

        def tick(main_loop: urwid.MainLoop, _data: object) -> None:
            self.render()
            main_loop.set_alarm_in(REFRESH_RATE, tick)

        loop.set_alarm_in(REFRESH_RATE, tick)

    def render(self) -> None:
        """Reload the worked time and the tasks of the current date."""
        worked = self.service.get_worked_duration(self.date)
        self.tasks = self.service.get_tasks_by_date(self.date)

        self._today_text.set_text(
            _to_markup(
                format_header_section(
                    "Today", worked.daily, worked.daily_goal, worked.daily_overtime
                )
            )
        )
        self._week_text.set_text(
            _to_markup(
                format_header_section(
                    "Week", worked.weekly, worked.weekly_goal, worked.weekly_overtime
                )
            )
        )
        self._date_text.set_text(self.date.strftime("%A, %Y-%m-%d"))

        self.table.set_rows([task_row(task) for task in self.tasks])
        self._refresh_actions()

    def render_and_goto_today(self) -> None:
        """Switch to the current day and redraw."""
        self.date = self.clock()
        self.render()

    def selected_task(self) -> Task:
        """The task under the selection; raise LookupError when none is selected."""
        row = self.table.get_row_selected()
        if row == -1 or row >= len(self.tasks):
            raise LookupError("no task selected")
        return self.tasks[row]

    def _has_selection(self) -> bool:
        try:
            self.selected_task()
        except LookupError:
            return False
        return True

    def prev_day(self) -> None:
        """Show the previous day."""
        self.date = self.date - timedelta(days=1)
        self.render()

    def next_day(self) -> None:
        """Show the next day, unless it lies in the future."""
        following = self.date + timedelta(days=1)
        if following > self.clock():
            return
        self.date = following
        self.render()

    def today(self) -> None:
        """Show the current day."""
        self.render_and_goto_today()

    def _quit(self) -> None:
        log.info("Bye!")
        self.on_quit()

    def _sync_enabled(self) -> bool:
        return len(self.service.get_tasks_to_sync()) > 0

    def _start_stop(self) -> None:
        task = self.selected_task()
        try:
            self.service.start_stop_task(task.id)
        except RepositoryError as exc:
            log.error("Error starting/stopping task: %s", exc)
        self.render_and_goto_today()

    def _build_actions(self) -> list[Action]:
        always = lambda: True  # noqa: E731
        has_tasks = lambda: len(self.tasks) > 0  # noqa: E731
        nothing = lambda: None  # noqa: E731
        return [
            Action("Quit", rune_key("q", "q"), always, self._quit),
            Action("Prev Day", rune_key("h", "h"), always, self.prev_day),
            Action("Next Day", rune_key("l", "l"), always, self.next_day),
            Action("Today", rune_key("t", "t"), always, self.today),
            Action("Next Task", rune_key("j", "j"), has_tasks, nothing),
            Action("Prev Task", rune_key("k", "k"), has_tasks, nothing),
            Action("New", rune_key("n", "n"), always, self._show_new_task_modal),
            Action(
                "Start/Stop", special_key("Enter", "enter"), self._has_selection, self._start_stop
            ),
            Action(
                "Duplicate",
                rune_key("d", "d"),
                self._has_selection,
                self._show_duplicate_task_modal,
            ),
            Action(
                "Modify", rune_key("m", "m"), self._has_selection, self._show_modify_task_modal
            ),
            Action(
                "Delete", rune_key("x", "x"), self._has_selection, self._show_delete_task_modal
            ),
            Action("Sync", rune_key("s", "s"), self._sync_enabled, self.on_sync),
        ]

    def _alert(self, message: str) -> None:
        show_alert_modal(self.pages, message, None)

    def _show_new_task_modal(self) -> None:
        fields = {
            "Project": _edit("Project: "),
            "Description": _edit("Description: "),
            "External Id": _edit("External Id: "),
        }

        def done() -> None:
            description = fields["Description"].edit_text
            if not description:
                self._alert("Description cannot be empty")
                return
            try:
                self.service.create_task(
                    description,
                    fields["Project"].edit_text or None,
                    fields["External Id"].edit_text or None,
                )
            except RepositoryError as exc:
                self._alert(f"Error creating task: {exc}")
                return
            self.render_and_goto_today()

        modal = show_form_modal(
            self.pages, "New Task", 80, 11, [_field(edit) for edit in fields.values()], done
        )
        self.dialog = _Dialog(modal, fields)

    def _show_delete_task_modal(self) -> None:
        task = self.selected_task()

        def done(button: str) -> None:
            if button != "Ok":
                return
            log.info("Deleting task %s", task.id)
            try:
                self.service.delete_task(task.id)
            except RepositoryError as exc:
                self._alert(f"Error deleting task: {exc}")
                return
            self.render()

        modal = show_confirm_modal(
            self.pages,
            DELETE_MODAL,
            f"Are you sure you want to delete the task?\n\n{task.desc}",
            ["Cancel", "Ok"],
            done,
        )
        self.dialog = _Dialog(modal)

    def _show_modify_task_modal(self) -> None:
        task = dataclasses.replace(self.selected_task())
        initial = {
            "Project": task.project or "",
            "Description": task.desc,
            "External Id": task.external_id or "",
            "Started": task.start.strftime(TIME_FORMAT),
            "Ended": task.end.strftime(TIME_FORMAT) if task.end is not None else "",
        }
        fields = {name: _edit(f"{name}: ", value) for name, value in initial.items()}

        def done() -> None:
            changed = {
                name: edit.edit_text
                for name, edit in fields.items()
                if edit.edit_text != initial[name]
            }
            if "Project" in changed:
                task.project = changed["Project"]
            if "Description" in changed:
                task.desc = changed["Description"]
            if "External Id" in changed:
                task.external_id = changed["External Id"]
            if "Started" in changed:
                try:
                    task.start = update_time(task.start, changed["Started"])
                except ValueError:
                    pass
            if "Ended" in changed:
                try:
                    task.end = update_time(task.start, changed["Ended"])
                except ValueError:
                    pass

            if not task.desc:
                self._alert("Description cannot be empty")
                return
            if task.external_id == "":
                task.external_id = None
            try:
                self.service.update_task(task)
            except RepositoryError as exc:
                self._alert(f"Error updating task: {exc}")
                return
            self.render()

        modal = show_form_modal(
            self.pages, "Modify Task", 80, 15, [_field(edit) for edit in fields.values()], done
        )
        self.dialog = _Dialog(modal, fields)

    def _show_duplicate_task_modal(self) -> None:
        task = self.selected_task()
        fields = {"Description": _edit("Description: ")}
        widgets = [
            urwid.Text(f"Project: {task.project or ''}"),
            urwid.Text(f"External ID: {task.external_id or ''}"),
            _field(fields["Description"]),
        ]

        def done() -> None:
            description = fields["Description"].edit_text
            if not description:
                self._alert("Description cannot be empty")
                return
            try:
                self.service.create_task(description, task.project, task.external_id)
            except RepositoryError as exc:
                self._alert(f"Error creating task: {exc}")
                return
            self.render_and_goto_today()

        modal = show_form_modal(self.pages, "Duplicate Task", 80, 11, widgets, done)
        self.dialog = _Dialog(modal, fields)
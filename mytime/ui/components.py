"""Reusable screen components: stacked pages, modal dialogs and a task table."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Union

import urwid

from mytime.ui.actions import _to_markup

log = logging.getLogger(__name__)

DESELECT_TIMEOUT = 2.0
ALERT_PAGE = "alertModal"
FORM_PAGE = "formModal"
DIALOG_WIDTH = 50
DIALOG_HEIGHT = 7
ALIGNMENTS = ("left", "center", "right")

PALETTE = [
    ("white", "white", ""),
    ("blue", "light blue", ""),
    ("gray", "dark gray", ""),
    ("yellow", "yellow", ""),
    ("red", "light red", ""),
    ("green", "light green", ""),
    ("selected", "black", "light gray"),
    ("modal", "black", "light gray"),
    ("button", "black", "light blue"),
    ("button focus", "white", "dark blue"),
    ("field", "white", "dark gray"),
]

CellSpec = Union[str, tuple[str, str]]


class _Modal(urwid.WidgetWrap):
    """A boxed dialog with labelled buttons, drawn over the pages below it."""

    def __init__(
        self,
        body: urwid.Widget,
        width: int,
        height: int,
        actions: dict[str, Callable[[], None]],
        cancel: Callable[[], None] | None = None,
    ) -> None:
        self.width = width
        self.height = height
        self._actions = actions
        self._cancel = cancel
        super().__init__(urwid.AttrMap(body, "modal"))

    def press(self, label: str) -> None:
        """Activate the button with ``label``; raise KeyError when there is none."""
        self._actions[label]()

    def keypress(self, size, key):
        if key == "esc" and self._cancel is not None:
            self._cancel()
            return None
        return super().keypress(size, key)


def _buttons(labels: Sequence[str], modal_press: Callable[[str], None]) -> urwid.GridFlow:
    widgets = []
    for label in labels:
        button = urwid.Button(label, on_press=lambda _button, name=label: modal_press(name))
        widgets.append(urwid.AttrMap(button, "button", "button focus"))
    cell_width = max((len(label) for label in labels), default=2) + 4
    return urwid.GridFlow(widgets, cell_width, 2, 0, "center")


class Pages(urwid.WidgetWrap):
    """Named pages stacked in order; dialogs are shown over the pages beneath."""

    def __init__(self) -> None:
        self._pages: dict[str, urwid.Widget] = {}
        super().__init__(urwid.SolidFill(" "))

    def _rebuild(self) -> None:
        base: urwid.Widget = urwid.SolidFill(" ")
        for widget in self._pages.values():
            if isinstance(widget, _Modal):
                base = urwid.Overlay(
                    widget, base, "center", widget.width, "middle", widget.height
                )
            else:
                base = widget
        self._w = base

    def add_page(self, name: str, widget: urwid.Widget) -> Pages:
        """Put ``widget`` on top under ``name``, replacing a page of that name."""
        self._pages.pop(name, None)
        self._pages[name] = widget
        self._rebuild()
        return self

    def remove_page(self, name: str) -> Pages:
        """Remove the page called ``name``; nothing happens when there is none."""
        if self._pages.pop(name, None) is not None:
            self._rebuild()
        return self

    def has_page(self, name: str) -> bool:
        """Whether a page called ``name`` is present."""
        return name in self._pages


def show_alert_modal(
    pages: Pages, message: str, on_close: Callable[[], None] | None
) -> _Modal:
    """Show ``message`` with an OK button; ``on_close`` runs once it is dismissed."""

    def close() -> None:
        pages.remove_page(ALERT_PAGE)
        if on_close is not None:
            on_close()

    actions = {"OK": close}
    modal = _Modal(
        urwid.SolidFill(" "), DIALOG_WIDTH, DIALOG_HEIGHT, actions, cancel=None
    )
    body = urwid.Pile(
        [urwid.Text(message, align="center"), urwid.Divider(), _buttons(["OK"], modal.press)]
    )
    modal._w = urwid.AttrMap(urwid.LineBox(urwid.Filler(body)), "modal")
    pages.add_page(ALERT_PAGE, modal)
    return modal


def show_confirm_modal(
    pages: Pages,
    modal_id: str,
    message: str,
    buttons: Sequence[str],
    on_done: Callable[[str], None] | None,
) -> _Modal:
    """Ask ``message``; the dialog closes and ``on_done`` gets the chosen label."""

    def choose(label: str) -> None:
        pages.remove_page(modal_id)
        if on_done is not None:
            on_done(label)

    actions = {label: (lambda name=label: choose(name)) for label in buttons}
    modal = _Modal(urwid.SolidFill(" "), DIALOG_WIDTH, DIALOG_HEIGHT, actions)
    body = urwid.Pile(
        [
            urwid.Text(message, align="center"),
            urwid.Divider(),
            _buttons(list(buttons), modal.press),
        ]
    )
    modal._w = urwid.AttrMap(urwid.LineBox(urwid.Filler(body)), "modal")
    pages.add_page(modal_id, modal)
    return modal


def show_form_modal(
    pages: Pages,
    title: str,
    width: int,
    height: int,
    fields: Sequence[urwid.Widget],
    on_done: Callable[[], None],
) -> _Modal:
    """Show ``fields`` with OK and Cancel buttons; OK runs ``on_done`` then closes."""

    def cancel() -> None:
        pages.remove_page(FORM_PAGE)

    def accept() -> None:
        on_done()
        pages.remove_page(FORM_PAGE)

    actions = {"OK": accept, "Cancel": cancel}
    modal = _Modal(urwid.SolidFill(" "), width, height, actions, cancel=cancel)
    body = urwid.Pile(
        [*fields, urwid.Divider(), _buttons(["OK", "Cancel"], modal.press)]
    )
    modal._w = urwid.AttrMap(
        urwid.LineBox(urwid.Filler(body, valign="top"), title=title), "modal"
    )
    pages.add_page(FORM_PAGE, modal)
    return modal


@dataclass
class _Cell:
    text: str
    align: str = "left"


def _cell(spec: CellSpec) -> _Cell:
    if isinstance(spec, str):
        return _Cell(spec)
    text, align = spec
    if align not in ALIGNMENTS:
        raise ValueError(f"invalid alignment {align!r}")
    return _Cell(text, align)


def _markup(text: str):
    return _to_markup(text) or ""


def _text_width(markup) -> int:
    return urwid.Text(markup).pack()[0]


class Table(urwid.WidgetWrap):
    """A table with a fixed header whose row selection appears on j/k and fades out."""

    def __init__(self, header: Sequence[str], callback: Callable[[], None]) -> None:
        self.header = list(header)
        self.callback = callback
        self.deselect_timeout = DESELECT_TIMEOUT
        self.dispatch: Callable[[Callable[[], None]], None] = lambda fn: fn()
        self._title = ""
        self._rows: list[list[_Cell]] = []
        self._row = 0
        self._selectable = False
        self._capture: Callable[[str], object] | None = None
        self._timer: threading.Timer | None = None
        self._lock = threading.RLock()
        super().__init__(urwid.SolidFill(" "))
        self._rebuild()

    def selectable(self) -> bool:
        return True

    def set_title(self, title: str) -> None:
        """Show ``title`` in the table's border."""
        self._title = f" {title} "
        self._rebuild()

    def set_input_capture(self, fn: Callable[[str], object] | None) -> None:
        """Have ``fn`` see every key press before the table handles it."""
        self._capture = fn

    def get_row_selected(self) -> int:
        """Index of the selected data row, or -1 when none is selected."""
        with self._lock:
            if self._row == 0 or self._row > len(self._rows):
                return -1
            return self._row - 1

    def set_cell_text(self, row: int, col: int, text: str) -> None:
        """Replace the text of a cell; row 0 is the header, data starts at 1."""
        if row < 1 or row > len(self._rows) or not 0 <= col < len(self.header):
            raise IndexError(f"no cell at row {row}, column {col}")
        self._rows[row - 1][col].text = text
        self._rebuild()

    def set_rows(self, rows: Sequence[Sequence[CellSpec]]) -> None:
        """Replace all data rows; a cell is its text or a ``(text, align)`` pair."""
        new_rows = []
        for row in rows:
            if len(row) > len(self.header):
                raise ValueError(
                    f"row has {len(row)} cells but the table has {len(self.header)} columns"
                )
            cells = [_cell(spec) for spec in row]
            cells.extend(_Cell("") for _ in range(len(self.header) - len(cells)))
            new_rows.append(cells)
        self._rows = new_rows
        self._rebuild()

    def deselect(self) -> None:
        """Clear the selection and make rows unselectable until j or k is pressed."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._row = 0
            self._selectable = False
        self._rebuild()
        self.callback()

    def enable_selection(self) -> None:
        """Make rows selectable and restart the timer that clears the selection."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            changed = not self._selectable
            if changed:
                self._selectable = True
                self._row = 0
            self._timer = threading.Timer(self.deselect_timeout, self._expire)
            self._timer.daemon = True
            self._timer.start()
        if changed:
            self._rebuild()
            self.callback()

    def _expire(self) -> None:
        log.debug("Selection timed out")
        self.dispatch(self.deselect)

    def _move(self, delta: int) -> None:
        with self._lock:
            if not self._selectable or not self._rows:
                return
            self._row = min(max(self._row + delta, 1), len(self._rows))
        self._rebuild()

    def keypress(self, size, key):
        if self._capture is not None:
            self._capture(key)
        if key in ("j", "k"):
            self.enable_selection()
        if key in ("j", "down"):
            self._move(1)
            return None
        if key in ("k", "up"):
            self._move(-1)
            return None
        return None if self._capture is not None else key

    def _column_options(self, widths: list[int]):
        return [
            ("weight", 1) if name == "Description" else ("given", width)
            for name, width in zip(self.header, widths)
        ]

    def _rebuild(self) -> None:
        header_markup = [("yellow", name) for name in self.header]
        widths = [_text_width(markup) for markup in header_markup]
        for row in self._rows:
            for col, cell in enumerate(row):
                widths[col] = max(widths[col], _text_width(_markup(cell.text)))

        def columns(widgets: list[urwid.Widget]) -> urwid.Columns:
            items = []
            for widget, option in zip(widgets, self._column_options(widths)):
                if option[0] == "weight":
                    items.append(("weight", option[1], widget))
                else:
                    items.append((option[1], widget))
            return urwid.Columns(items, dividechars=1)

        header = columns([urwid.Text(markup, wrap="clip") for markup in header_markup])
        selected = self.get_row_selected()
        lines = []
        for index, row in enumerate(self._rows):
            line = columns(
                [urwid.Text(_markup(cell.text), align=cell.align, wrap="clip") for cell in row]
            )
            lines.append(urwid.AttrMap(line, "selected" if index == selected else None))
        walker = urwid.SimpleFocusListWalker(lines)
        if lines and selected >= 0:
            walker.set_focus(selected)
        body = urwid.Pile([("pack", header), urwid.ListBox(walker)])
        self._w = urwid.LineBox(body, title=self._title)
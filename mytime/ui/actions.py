"""Keyboard actions shown in a footer and triggered by key presses."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from mytime.util import colorize

log = logging.getLogger(__name__)

_TAG = re.compile(r"\[([A-Za-z]+|-)\]")


class _TextWidget(Protocol):
    def set_text(self, markup: Any) -> None: ...


@dataclass(frozen=True)
class ActionKey:
    """The key that triggers an action: a printable character or a named key."""

    name: str
    char: str | None = None
    key: str | None = None

    def matches(self, pressed: str) -> bool:
        """Whether the key press ``pressed`` triggers this key."""
        if self.char is not None and pressed == self.char:
            return True
        return self.key is not None and pressed == self.key


def rune_key(name: str, char: str) -> ActionKey:
    """A key bound to one printable character."""
    if len(char) != 1:
        raise ValueError(f"expected a single character, got {char!r}")
    return ActionKey(name=name, char=char)


def special_key(name: str, key: str) -> ActionKey:
    """A key bound to a named key such as ``enter`` or ``esc``."""
    return ActionKey(name=name, key=key)


@dataclass
class Action:
    """A labelled command, when it is available, and what it does."""

    label: str
    key: ActionKey
    enabled: Callable[[], bool]
    handler: Callable[[], None]


def _append(markup: list, attr: str | None, text: str) -> None:
    if text:
        markup.append(text if attr is None else (attr, text))


def _to_markup(text: str) -> list:
    """Turn ``[color]`` tags into text markup of ``(attribute, text)`` pairs."""
    markup: list = []
    attr: str | None = None
    position = 0
    for match in _TAG.finditer(text):
        _append(markup, attr, text[position:match.start()])
        tag = match.group(1)
        attr = None if tag == "-" else tag
        position = match.end()
    _append(markup, attr, text[position:])
    return markup


class ActionsManager:
    """Shows the available actions and dispatches key presses to them."""

    def __init__(self, actions: list[Action], text_widget: _TextWidget) -> None:
        self.actions = actions
        self.text_widget = text_widget
        self.text = ""
        self.refresh()

    def refresh(self) -> None:
        """Redraw the footer, greying out actions that are not available."""
        self.text = "".join(
            colorize(action.label, action.key.name, action.enabled())
            for action in self.actions
        )
        self.text_widget.set_text(_to_markup(self.text) or "")

    def handle_key(self, key: str) -> str:
        """Run the first available action bound to ``key``; the key is passed on."""
        for action in self.actions:
            if action.enabled() and action.key.matches(key):
                log.info("Action triggered: %s (%s)", action.label, action.key.name)
                action.handler()
                break
        self.refresh()
        return key
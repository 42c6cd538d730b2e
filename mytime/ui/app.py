"""Application wiring and the terminal main loop."""

from __future__ import annotations

import logging
import os
import queue
from collections.abc import Callable
from dataclasses import dataclass

import urwid

from mytime.config import Config, load
from mytime.redmine import Redmine
from mytime.repository import SqliteRepository
from mytime.service import Service
from mytime.ui.components import PALETTE, Pages
from mytime.ui.home import HomeView
from mytime.ui.sync import SyncView

log = logging.getLogger(__name__)


@dataclass
class Dependencies:
    """The services the screens work with."""

    service: Service
    redmine: Redmine
    repository: SqliteRepository


def init_deps(config: Config | None = None) -> Dependencies:
    """Open the database and build the service and the Redmine client."""
    cfg = config if config is not None else load()
    repository = SqliteRepository(cfg.db_path)
    try:
        service = Service(repository)
        settings = repository.get_settings()
        redmine = Redmine.from_integration_config(settings.integration_config)
    except Exception:
        repository.close()
        raise
    return Dependencies(service=service, redmine=redmine, repository=repository)


class _Dispatcher:
    """Runs callables from worker threads on the main loop."""

    def __init__(self, loop: urwid.MainLoop) -> None:
        self._queue: queue.SimpleQueue[Callable[[], None]] = queue.SimpleQueue()
        self._fd = loop.watch_pipe(self._drain)

    def __call__(self, fn: Callable[[], None]) -> None:
        self._queue.put(fn)
        os.write(self._fd, b"x")

    def _drain(self, _data: bytes) -> bool:
        while True:
            try:
                fn = self._queue.get_nowait()
            except queue.Empty:
                return True
            fn()


def start_app() -> None:
    """Run the interactive application until the user quits."""
    deps = init_deps()
    pages = Pages()
    loop = urwid.MainLoop(pages, palette=PALETTE)
    dispatch = _Dispatcher(loop)

    def quit_app() -> None:
        raise urwid.ExitMainLoop()

    def show_home() -> None:
        home = HomeView(deps.service, pages, quit_app, show_sync)
        home.table.dispatch = dispatch
        home.schedule_refresh(loop)
        pages.remove_page("sync").add_page("home", home.widget)

    def show_sync() -> None:
        view = SyncView(deps.service, deps.redmine, pages, show_home)
        view.dispatch = dispatch
        view.table.dispatch = dispatch
        pages.remove_page("home").add_page("sync", view.widget)
        view.background(view.load_activities)

    show_home()
    try:
        loop.run()
    finally:
        deps.repository.close()
    print("Bye!")
    log.info("----------- Bye! ----------")
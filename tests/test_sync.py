import threading

import pytest

from mytime.models import TaskToSync
from mytime.redmine import ProjectActivity, RedmineError
from mytime.ui.components import Pages
from mytime.ui.sync import SyncView


class FakeService:
    def __init__(self, tasks):
        self.tasks = tasks
        self.reported = []
        self._lock = threading.Lock()

    def get_tasks_to_sync(self):
        return list(self.tasks)

    def set_task_as_reported(self, task_id):
        with self._lock:
            self.reported.append(task_id)


class FakeRedmine:
    def __init__(self, default_id=10, fail_load=False, fail_send=False):
        self.default_id = default_id
        self.fail_load = fail_load
        self.fail_send = fail_send
        self.sent = []
        self._lock = threading.Lock()

    def load_activities(self, external_id):
        if self.fail_load:
            raise RedmineError("connection refused")
        activities = [ProjectActivity(9, "Design"), ProjectActivity(10, "Development")]
        default = next((a for a in activities if a.id == self.default_id), None)
        return activities, default

    def send_task(self, external_id, desc, date, duration, activity_id):
        if self.fail_send:
            raise RedmineError("Unauthorized")
        with self._lock:
            self.sent.append((external_id, desc, date, duration, activity_id))


def _task():
    return TaskToSync(
        id="3-5",
        external_id="1234",
        duration=3600,
        desc="Write docs",
        date="2024-03-04",
        project="proj",
        ids=["3", "5"],
    )


def _view(redmine, tasks=None, on_close=lambda: None):
    service = FakeService([_task()] if tasks is None else tasks)
    view = SyncView(service, redmine, Pages(), on_close)
    return view, service


def _screen(view):
    canvas = view.table.render((150, 10))
    return b"\n".join(canvas.text).decode("utf-8")


def test_rows_show_loading_before_activities_arrive():
    view, _ = _view(FakeRedmine())
    screen = _screen(view)
    assert "Loading..." in screen
    assert "Write docs" in screen
    assert "3,5" in screen
    assert view.actions_lock is True


def test_actions_are_disabled_while_loading():
    view, _ = _view(FakeRedmine())
    assert "Close:[gray] Esc" in view.actions_manager.text
    view.load_activities()
    assert "Close:[blue] Esc" in view.actions_manager.text


def test_load_activities_with_default():
    view, _ = _view(FakeRedmine(default_id=10))
    view.load_activities()
    assert view.actions_lock is False
    assert view.all_have_activity is True
    assert view.activities[0].default.name == "Development"
    assert "Development" in _screen(view)


def test_load_activities_without_default():
    view, _ = _view(FakeRedmine(default_id=77))
    view.load_activities()
    assert view.all_have_activity is False
    assert view.activities[0].default is None
    assert "Select activity!" in _screen(view)


def test_load_activities_connection_error():
    view, _ = _view(FakeRedmine(fail_load=True))
    view.load_activities()
    assert view.activities[0].activities is None
    assert view.all_have_activity is False
    assert view.actions_lock is False
    assert "Connection Error!" in _screen(view)


def test_sync_tasks_sends_and_marks_reported():
    redmine = FakeRedmine(default_id=10)
    view, service = _view(redmine)
    view.load_activities()
    view.sync_tasks()
    assert redmine.sent == [("1234", "Write docs", "2024-03-04", 3600, 10)]
    assert sorted(service.reported) == [3, 5]
    assert view.actions_lock is False


def test_sync_tasks_failure_marks_nothing():
    redmine = FakeRedmine(default_id=10, fail_send=True)
    view, service = _view(redmine)
    view.load_activities()
    view.sync_tasks()
    assert service.reported == []


def test_sync_skips_tasks_without_activity():
    redmine = FakeRedmine(default_id=77)
    view, service = _view(redmine)
    view.load_activities()
    view.sync_tasks()
    assert redmine.sent == []
    assert service.reported == []


def test_select_activity_opens_form_and_set_activity_updates():
    view, _ = _view(FakeRedmine(default_id=77))
    view.load_activities()
    view.select_activity(0)
    assert view.pages.has_page("formModal")
    view.set_activity(0, 0)
    assert view.activities[0].default.name == "Design"
    assert view.all_tasks_have_activity() is True
    assert "Design" in _screen(view)


def test_select_activity_form_ok_keeps_current_choice():
    view, _ = _view(FakeRedmine(default_id=9))
    view.load_activities()
    view.select_activity(0)
    view.dialog.press("OK")
    assert view.activities[0].default.id == 9
    assert not view.pages.has_page("formModal")


def test_select_activity_before_loading_raises():
    view, _ = _view(FakeRedmine())
    with pytest.raises(LookupError):
        view.select_activity(0)


def test_select_activity_unknown_task_raises():
    view, _ = _view(FakeRedmine())
    with pytest.raises(IndexError):
        view.select_activity(5)


def test_confirm_sync_through_keys():
    redmine = FakeRedmine(default_id=10)
    view, service = _view(redmine)
    view.background = lambda fn: fn()
    view.load_activities()
    view.actions_manager.handle_key("s")
    assert view.pages.has_page("confirmSync")
    view.dialog.press("Ok")
    assert not view.pages.has_page("confirmSync")
    assert len(redmine.sent) == 1
    assert sorted(service.reported) == [3, 5]


def test_cancel_sync_sends_nothing():
    redmine = FakeRedmine(default_id=10)
    view, _ = _view(redmine)
    view.background = lambda fn: fn()
    view.load_activities()
    view.actions_manager.handle_key("s")
    view.dialog.press("Cancel")
    assert redmine.sent == []


def test_escape_closes_only_when_unlocked():
    closed = []
    view, _ = _view(FakeRedmine(), on_close=lambda: closed.append(True))
    view.actions_manager.handle_key("esc")
    assert closed == []
    view.load_activities()
    view.actions_manager.handle_key("esc")
    assert closed == [True]


def test_no_tasks_means_every_task_has_activity():
    view, _ = _view(FakeRedmine(), tasks=[])
    view.load_activities()
    assert view.all_have_activity is True
    assert view.actions_lock is False
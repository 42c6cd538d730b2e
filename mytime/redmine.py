"""Client for reporting time entries to a Redmine server."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

import requests

from mytime.util import humanize_duration

log = logging.getLogger(__name__)

_INTEGER = re.compile(r"[+-]?\d+")


class RedmineError(Exception):
    """A request to Redmine failed or the server reported an error."""


@dataclass
class ProjectActivity:
    """A time-entry activity available in a Redmine project."""

    id: int
    name: str
    default: bool = False


def int_from_string(value: Any) -> int:
    """Read an integer given either as a JSON number or as a decimal string.

    Raises ValueError for anything else.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid type for an integer: {type(value).__name__}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        if _INTEGER.fullmatch(value) is None:
            raise ValueError(f"invalid integer {value!r}")
        return int(value)
    raise ValueError(f"invalid type for an integer: {type(value).__name__}")


def _headers(token: str) -> dict[str, str]:
    return {"X-Redmine-API-Key": token, "Content-Type": "application/json"}


def _decode(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        log.error("Error unmarshalling response: %s", exc)
        raise RedmineError(f"invalid response from {response.url}: {exc}") from exc


def request_get(token: str, url: str) -> Any:
    """GET ``url`` with the API token and return the decoded JSON body."""
    try:
        response = requests.get(url, headers=_headers(token))
    except requests.RequestException as exc:
        log.error("Error fetching %s: %s", url, exc)
        raise RedmineError(str(exc)) from exc
    return _decode(response)


def request_post(token: str, url: str, body: Any) -> Any:
    """POST ``body`` as JSON to ``url``.

    Returns None when the server answers 201 Created, otherwise the decoded
    JSON body. Raises RedmineError on 401 and on transport or decoding errors.
    """
    try:
        response = requests.post(url, data=json.dumps(body), headers=_headers(token))
    except requests.RequestException as exc:
        log.error("Error posting to %s: %s", url, exc)
        raise RedmineError(str(exc)) from exc

    if response.status_code == 201:
        return None
    if response.status_code == 401:
        raise RedmineError("Unauthorized")
    return _decode(response)


def _object(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise RedmineError(f"unexpected {what}: expected a JSON object")
    return data


def _int_field(data: dict[str, Any], name: str) -> int:
    value = data.get(name, 0)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise RedmineError(f"field {name!r} is not a number")
    return int(value)


class Redmine:
    """A Redmine server reached with an API token."""

    def __init__(self, url: str, token: str, default_activity: int) -> None:
        self.url = url
        self.token = token
        self.default_activity = default_activity

    @classmethod
    def from_integration_config(cls, text: str) -> Redmine:
        """Build a client from the JSON integration settings."""
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise RedmineError(f"invalid integration config: {exc}") from exc
        data = _object(data, "integration config")

        url = data.get("url", "")
        token = data.get("token", "")
        if not isinstance(url, str) or not isinstance(token, str):
            raise RedmineError("integration config: url and token must be strings")
        try:
            default_activity = int_from_string(data.get("default_activity", 0))
        except ValueError as exc:
            raise RedmineError(f"integration config: {exc}") from exc
        return cls(url=url, token=token, default_activity=default_activity)

    def get_issue(self, external_id: str) -> dict[str, Any]:
        """The issue with the given id, as returned by the server."""
        url = f"{self.url}/issues/{external_id}.json"
        response = _object(request_get(self.token, url), "issue response")
        issue = response.get("issue") or {}
        return _object(issue, "issue")

    def load_activities(
        self, external_id: str
    ) -> tuple[list[ProjectActivity], ProjectActivity | None]:
        """Activities of the issue's project and the configured default among them.

        The default is None when the project does not offer it.
        """
        issue = self.get_issue(external_id)
        project = _object(issue.get("project") or {}, "issue project")
        project_id = _int_field(project, "id")

        url = f"{self.url}/projects/{project_id}.json?include=time_entry_activities"
        response = _object(request_get(self.token, url), "project response")
        project_data = _object(response.get("project") or {}, "project")

        activities = []
        for item in project_data.get("time_entry_activities") or []:
            entry = _object(item, "activity")
            name = entry.get("name", "")
            activities.append(ProjectActivity(id=_int_field(entry, "id"), name=str(name)))

        default = None
        for activity in activities:
            if activity.id == self.default_activity:
                default = activity
        return activities, default

    def send_task(
        self, external_id: str, desc: str, date: str, duration: int, activity_id: int
    ) -> None:
        """Create a time entry on the issue; raise RedmineError when it is refused."""
        url = f"{self.url}/time_entries.json"
        payload = {
            "time_entry": {
                "issue_id": external_id,
                "hours": humanize_duration(duration),
                "comments": desc,
                "spent_on": date,
                "activity_id": activity_id,
            }
        }

        response = request_post(self.token, url, payload)
        if response is None:
            return

        errors: list[str] = []
        if isinstance(response, dict):
            errors = [str(error) for error in response.get("errors") or []]
        log.warning("Task not sent successfully: %s", errors)
        raise RedmineError(f"Error sending task: [{' '.join(errors)}]")
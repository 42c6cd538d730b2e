# mytime

A keyboard-driven terminal time tracker. It records what you work on as
tasks with a start and an end time, shows how much you have worked on a day
and in its week against your goals, and can send finished tasks to Redmine as
time entries.

## Installation

```
pip install .
```

## Running

```
mytime
```

To append a debug log to `mytime.log` in the current directory, run:

```
mytime --logs
```

The program prints `Bye!` when you quit.

## Storage and settings

Tasks are kept in an SQLite database at
`$HOME/.local/share/mytime/mytime.sqlite`. The directory and the `tasks` and
`settings` tables are created when the program starts.

The program needs a row in the `settings` table and stops with an error when
there is none. The program has no screen for editing settings, so add the row
with any SQLite client, for example:

```sql
INSERT INTO settings (work_hours, theme, view_type, dark_mode, integration_config)
VALUES ('8,8,8,8,7,0,0', '', '', 0,
        '{"url": "https://redmine.example.com", "token": "token", "default_activity": "9"}');
```

- `work_hours` holds the daily goals in hours, seven comma-separated numbers
  from Monday to Sunday. When it cannot be read, the goals count as zero.
- `integration_config` holds the Redmine server URL, the API token and the id
  of the default time-entry activity (a number or a string of digits).

## Keys

Home view:

| Key     | Action                                   |
|---------|------------------------------------------|
| `q`     | Quit                                     |
| `h`/`l` | Previous / next day (never past today)   |
| `t`     | Jump to today                            |
| `j`/`k` | Select next / previous task              |
| `n`     | New task (stops any running task)        |
| `Enter` | Stop the selected task, or start it anew |
| `d`     | Duplicate the selected task              |
| `m`     | Modify the selected task                 |
| `x`     | Delete the selected task                 |
| `s`     | Open the sync view (if tasks are ready)  |

The footer greys out the actions that are not available. The selection clears
itself after two seconds without `j` or `k`. The view refreshes every ten
seconds, so the duration of a running task keeps growing.

Sync view: `j`/`k` move through the rows, `a` picks the Redmine activity for
the selected row, `s` sends every row after a confirmation, and `Esc` returns
to the home view. Only closed tasks that have an external id and are not yet
reported appear here; tasks with the same description, external id, project
and day are grouped into one row. The activities are loaded from Redmine when
the view opens, and `s` is available once every row has an activity. Each row
is sent as a time entry whose hours are written like `1h30m`; the tasks of a
row that was accepted are marked as reported.

## Using it from Python

The storage and the task operations can be used without the terminal
interface:

```python
from datetime import datetime

from mytime.repository import SqliteRepository
from mytime.service import Service

with SqliteRepository(":memory:") as repo:
    service = Service(repo)
    service.create_task("Write report", "docs", None)
    tasks = service.get_tasks_by_date(datetime.now())
```

`mytime.redmine.Redmine` talks to the Redmine API, and `mytime.util` holds
`humanize_duration` and `update_time`.

## What it does not do

- There is no settings screen; the settings row is edited outside the program.
- Redmine is the only service tasks can be reported to.
- There is no export or report of the tracked time other than the two views.

## Tests

```
pip install .[test]
pytest
```
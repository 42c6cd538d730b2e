[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mytime"
version = "0.1.0"
description = "Terminal time tracker for daily tasks with Redmine time entry synchronisation"
requires-python = ">=3.10"
keywords = ["time-tracking", "timesheet", "redmine", "terminal", "tui"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console :: Curses",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Scheduling",
]
dependencies = [
    "requests",
    "urwid",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
mytime = "mytime.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["mytime"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

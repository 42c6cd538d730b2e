"""Terminal time tracker with SQLite storage and Redmine synchronisation."""

__version__ = "0.1.0"
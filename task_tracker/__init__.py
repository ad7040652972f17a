"""Per-user task tracking backend with daily due-date reminders."""

__version__ = "1.0.0"

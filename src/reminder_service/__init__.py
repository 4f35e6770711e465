"""Process wiring for the reminder bot: settings, scheduler, status app and CLI."""

from .config import Settings, get_settings, parse_source_groups
from .runtime import Collaborators, ReminderRuntime, load_collaborators
from .scheduler import ReminderScheduler

__all__ = [
    "Settings",
    "get_settings",
    "parse_source_groups",
    "Collaborators",
    "ReminderRuntime",
    "load_collaborators",
    "ReminderScheduler",
]

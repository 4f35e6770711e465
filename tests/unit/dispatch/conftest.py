"""
In-memory collaborators for the dispatch tests.
"""

import pytest

from reminder_engine.errors import TransientError


class MemorySheet:
    """Task sheets keyed by (document_id, name); data rows start at position 2."""

    def __init__(self, sheets=None):
        self.sheets = {key: list(rows) for key, rows in (sheets or {}).items()}
        self.count_calls = []
        self.page_calls = []
        self.broken_groups = {}
        self.broken_pages = {}

    def _rows(self, group):
        return self.sheets.get((group.document_id, group.name))

    async def fetch_total_count(self, group):
        self.count_calls.append(group.name)
        exc = self.broken_groups.get(group.name)
        if exc is not None:
            raise exc
        rows = self._rows(group)
        return None if rows is None else len(rows) + 1

    async def fetch_page(self, group, start, end):
        self.page_calls.append((group.name, start, end))
        exc = self.broken_pages.get((group.name, start))
        if exc is not None:
            raise exc
        return self._rows(group)[start - 2 : end - 1]


class RecordingNotifier:
    """Sends succeed unless the recipient is listed in ``failing``."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sent = []
        self.attempts = {}

    async def send(self, message):
        self.attempts[message.to] = self.attempts.get(message.to, 0) + 1
        if message.to in self.failing:
            raise TransientError(f"SMTP 421 for {message.to}")
        self.sent.append(message)


class RecordingWriter:
    def __init__(self, on_write=None):
        self.batches = []
        self.on_write = on_write

    async def write_batch(self, group, units):
        if self.on_write is not None:
            self.on_write(group, units)
        self.batches.append((group.name, list(units)))

    def units(self):
        return [u for _, batch in self.batches for u in batch]


@pytest.fixture()
def make_sheet():
    return MemorySheet


@pytest.fixture()
def make_notifier():
    return RecordingNotifier


@pytest.fixture()
def make_writer():
    return RecordingWriter

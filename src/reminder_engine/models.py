"""
Pydantic data models for the reminder engine.

Records are read-only views of source rows; messages are the payloads handed
to the notification transport.
"""

from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class SourceGroup(BaseModel):
    """One named sub-collection (sheet) inside a source document."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    name: str

    @field_validator("document_id", "name")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @property
    def label(self) -> str:
        return f"{self.document_id[:12]}/{self.name}"


class ColumnLayout(BaseModel):
    """0-indexed column positions of the task sheet (A..E by default)."""

    model_config = ConfigDict(frozen=True)

    name: int = 0
    recipient: int = 1
    due: int = 2
    status: int = 3
    last_action: int = 4

    @property
    def width(self) -> int:
        return max(self.name, self.recipient, self.due, self.status, self.last_action) + 1


class Record(BaseModel):
    """A task row as read from the source; all fields trimmed text."""

    model_config = ConfigDict(frozen=True)

    position: int
    name: str = ""
    recipient: str = ""
    due: str = ""
    status: str = ""
    last_action: str = ""

    @classmethod
    def from_row(cls, row: list, position: int, columns: ColumnLayout) -> "Record":
        def cell(idx: int) -> str:
            if idx < len(row) and row[idx] is not None:
                return str(row[idx]).strip()
            return ""

        return cls(
            position=position,
            name=cell(columns.name),
            recipient=cell(columns.recipient),
            due=cell(columns.due),
            status=cell(columns.status),
            last_action=cell(columns.last_action),
        )


class ReminderMessage(BaseModel):
    """Outbound notification payload."""

    to: str
    subject: str
    text: str
    cc: Optional[str] = None
    kind: Literal["reminder", "urgent"] = "reminder"
    task_name: str
    due_date: date
    overdue_days: int = 0

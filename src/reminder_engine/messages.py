"""Plain-text reminder payloads."""

from __future__ import annotations

from datetime import date
from typing import Optional

from .dates import format_human
from .models import ReminderMessage


def build_reminder_message(
    *,
    task_name: str,
    recipient: str,
    due_date: date,
    overdue_days: int,
    manager_email: Optional[str] = None,
    signature: str = "Reminder Bot",
) -> ReminderMessage:
    """Due-today tasks get a friendly reminder; overdue tasks an urgent one cc'd to the manager."""
    due_text = format_human(due_date)

    if overdue_days <= 0:
        return ReminderMessage(
            to=recipient,
            subject=f'Reminder: "{task_name}" is due today',
            text=(
                "Hi,\n\n"
                f'This is a friendly reminder that your task "{task_name}" '
                f"is due TODAY ({due_text}).\n\n"
                "Please complete it at your earliest convenience.\n\n"
                f"-- {signature}"
            ),
            kind="reminder",
            task_name=task_name,
            due_date=due_date,
            overdue_days=0,
        )

    cc_note = "This email has been CC'd to the manager for visibility.\n\n" if manager_email else ""
    return ReminderMessage(
        to=recipient,
        cc=manager_email or None,
        subject=f'URGENT: "{task_name}" is overdue by {overdue_days} day(s)',
        text=(
            "Hi,\n\n"
            f'Your task "{task_name}" is OVERDUE by {overdue_days} day(s).\n'
            f"Original due date: {due_text}\n\n"
            "Please address this immediately.\n\n"
            f"{cc_note}"
            f"-- {signature}"
        ),
        kind="urgent",
        task_name=task_name,
        due_date=due_date,
        overdue_days=overdue_days,
    )

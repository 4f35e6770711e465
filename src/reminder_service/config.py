from __future__ import annotations

import json
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from reminder_engine.dispatch import RetryPolicy, RunOptions
from reminder_engine.errors import ConfigError
from reminder_engine.models import SourceGroup


class Settings(BaseSettings):
    # --- source groups
    SPREADSHEETS: Optional[str] = None
    SPREADSHEET_ID: Optional[str] = None
    SHEET_NAME: str = "Sheet1"

    # --- batching
    SHEET_BATCH_SIZE: int = 5000
    SHEET_WRITE_BATCH_SIZE: int = 500

    # --- delivery queue
    QUEUE_CONCURRENCY: int = 5
    QUEUE_MAX_RETRIES: int = 5
    QUEUE_BASE_DELAY_MS: int = 1000
    QUEUE_MAX_DELAY_MS: int = 60_000
    SOURCE_MAX_RETRIES: int = 3

    # --- classification
    TIMEZONE: str = "Asia/Kolkata"
    LAST_ACTION_TIMEZONE: str = "Asia/Kolkata"
    DEDUP_SAME_DAY: bool = True
    DONE_STATUS: str = "Completed"
    MANAGER_EMAIL: Optional[str] = None
    MAIL_FROM_NAME: str = "Reminder Bot"

    # --- scheduler / service
    CRON_SCHEDULE: str = "0 9 * * 1-5"
    SKIP_WEEKENDS: bool = True
    RUN_ON_STARTUP: bool = False
    PORT: int = 7860
    SHUTDOWN_GRACE_SEC: float = 5.0
    REMINDER_COLLABORATORS: Optional[str] = None

    # --- logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = "logs"
    LOG_ROTATION: str = "20 MB"
    LOG_RETENTION: str = "14 days"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @property
    def source_groups(self) -> list[SourceGroup]:
        return parse_source_groups(self.SPREADSHEETS, self.SPREADSHEET_ID, self.SHEET_NAME)

    def run_options(self) -> RunOptions:
        return RunOptions(
            groups=tuple(self.source_groups),
            timezone=self.TIMEZONE,
            last_action_timezone=self.LAST_ACTION_TIMEZONE,
            done_status=self.DONE_STATUS,
            dedup_same_day=self.DEDUP_SAME_DAY,
            skip_weekends=self.SKIP_WEEKENDS,
            page_size=self.SHEET_BATCH_SIZE,
            chunk_size=self.SHEET_WRITE_BATCH_SIZE,
            manager_email=self.MANAGER_EMAIL or None,
            signature=self.MAIL_FROM_NAME,
        )

    def delivery_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.QUEUE_MAX_RETRIES,
            base_delay_ms=self.QUEUE_BASE_DELAY_MS,
            max_delay_ms=self.QUEUE_MAX_DELAY_MS,
        )

    def source_policy(self) -> RetryPolicy:
        return self.delivery_policy().with_retries(self.SOURCE_MAX_RETRIES)


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_source_groups(
    raw: Optional[str], legacy_id: Optional[str] = None, sheet_name: str = "Sheet1"
) -> list[SourceGroup]:
    """Resolve configured documents and sheets into an ordered list of groups.

    Accepts a JSON array of ``{"id": ..., "sheets": [...]}`` objects or bare
    ids, a comma-separated id list, or the legacy single ``SPREADSHEET_ID``.
    """
    default_sheets = _split(sheet_name) or ["Sheet1"]

    def expand(doc_id: str, sheets: list[str]) -> list[SourceGroup]:
        return [SourceGroup(document_id=doc_id, name=s) for s in sheets]

    if raw and raw.strip():
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return [g for doc_id in _split(raw) for g in expand(doc_id, default_sheets)]

        if not isinstance(parsed, list) or not parsed:
            raise ConfigError("SPREADSHEETS must be a non-empty JSON array")

        groups: list[SourceGroup] = []
        for entry in parsed:
            if isinstance(entry, str):
                groups.extend(expand(entry, default_sheets))
                continue
            if not isinstance(entry, dict) or not entry.get("id"):
                raise ConfigError('Each SPREADSHEETS entry must have an "id" field')
            sheets = entry.get("sheets")
            if not isinstance(sheets, list) or not sheets:
                sheets = default_sheets
            groups.extend(expand(str(entry["id"]), [str(s) for s in sheets]))
        return groups

    if legacy_id:
        return expand(legacy_id, default_sheets)

    raise ConfigError(
        "Missing SPREADSHEETS (or legacy SPREADSHEET_ID) environment variable. "
        'Example: SPREADSHEETS=[{"id":"abc123","sheets":["Sheet1","Sheet2"]}]'
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()

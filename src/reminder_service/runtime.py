from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

from reminder_engine.dispatch import (
    BatchWriter,
    BoundedWorkQueue,
    DeliveryJob,
    Notifier,
    OverlapGuard,
    PageSource,
    QueueState,
    RunOrchestrator,
    RunResult,
)
from reminder_engine.errors import ConfigError

from .config import Settings


@dataclass
class Collaborators:
    """Transports the engine talks to; supplied by the deployment."""

    source: PageSource
    notifier: Notifier
    writer: BatchWriter


def load_collaborators(target: Optional[str], settings: Settings) -> Collaborators:
    """Import ``module:factory`` and call ``factory(settings)``."""
    if not target or ":" not in target:
        raise ConfigError("REMINDER_COLLABORATORS must look like 'package.module:factory'")

    module_name, _, attr = target.partition(":")
    try:
        factory = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Cannot load collaborators from {target!r}: {e}") from e

    built: Any = factory(settings)
    if isinstance(built, Collaborators):
        return built
    try:
        return Collaborators(source=built.source, notifier=built.notifier, writer=built.writer)
    except AttributeError as e:
        raise ConfigError(f"{target!r} must return source, notifier and writer") from e


class ReminderRuntime:
    """One queue, one orchestrator, one guard: everything a process needs to run reminders."""

    def __init__(self, settings: Settings, collaborators: Collaborators, **orchestrator_kwargs):
        self.settings = settings
        self.queue: BoundedWorkQueue[DeliveryJob] = BoundedWorkQueue(
            concurrency=settings.QUEUE_CONCURRENCY, name="email"
        )
        self.orchestrator = RunOrchestrator(
            source=collaborators.source,
            notifier=collaborators.notifier,
            writer=collaborators.writer,
            queue=self.queue,
            options=settings.run_options(),
            delivery_policy=orchestrator_kwargs.pop("delivery_policy", settings.delivery_policy()),
            source_policy=orchestrator_kwargs.pop("source_policy", settings.source_policy()),
            **orchestrator_kwargs,
        )
        self.guard = OverlapGuard(self.orchestrator.run_once)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReminderRuntime":
        return cls(settings, load_collaborators(settings.REMINDER_COLLABORATORS, settings))

    async def run_once(self) -> RunResult:
        return await self.guard.run_once()

    def queue_stats(self) -> QueueState:
        return self.queue.stats()

    async def shutdown(self, grace_sec: Optional[float] = None) -> bool:
        """Let in-flight deliveries finish, bounded by the grace period."""
        grace = self.settings.SHUTDOWN_GRACE_SEC if grace_sec is None else grace_sec
        drained = await self.queue.stop(timeout=grace)
        if drained:
            logger.info("Delivery queue drained; shutdown complete")
        return drained

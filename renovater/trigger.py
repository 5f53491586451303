"""Trigger reconciliations from changes to the build pipeline selector.

The controller watches a single object, ``BuildPipelineSelector``
``build-pipeline-selector`` in the build-service namespace. Its creation or
update starts a reconciliation; deletions and events about any other object
are ignored. Between triggers the follow-up requested by the previous run
starts the next reconciliation.
"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import time
import typing as typ

from renovater.github import InstallationDirectoryError
from renovater.logging import get_logger, log_exception, log_info
from renovater.store import ResourceStoreError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from renovater.config import RenovaterConfig
    from renovater.reconciler import ReconcileResult, TektonResourcesRenovater
    from renovater.store import ResourceStore

logger = get_logger(__name__)


class EventType(enum.StrEnum):
    """Kinds of change reported for a watched object."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    GENERIC = "generic"


_RECONCILE_EVENT_TYPES = frozenset({EventType.CREATE, EventType.UPDATE})


@dataclasses.dataclass(frozen=True, slots=True)
class TriggerEvent:
    """A change observed on a cluster object."""

    type: EventType
    kind: str
    name: str
    namespace: str


def should_reconcile(event: TriggerEvent, config: RenovaterConfig) -> bool:
    """Return True for creates and updates of the configured trigger object."""
    return (
        event.type in _RECONCILE_EVENT_TYPES
        and event.kind == config.trigger_kind
        and event.namespace == config.namespace
        and event.name == config.trigger_name
    )


class TriggerWatcher:
    """Poll the trigger object and report changes of its resourceVersion."""

    def __init__(self, store: ResourceStore, config: RenovaterConfig) -> None:
        """Initialise with the store to poll and the trigger identity."""
        self._store = store
        self._config = config
        self._last_version: str | None = None

    def _event(self, event_type: EventType) -> TriggerEvent:
        return TriggerEvent(
            type=event_type,
            kind=self._config.trigger_kind,
            name=self._config.trigger_name,
            namespace=self._config.namespace,
        )

    async def poll(self) -> TriggerEvent | None:
        """Return the change since the previous poll, if any."""
        manifest = await self._store.get_object(
            self._config.trigger_kind,
            self._config.trigger_name,
            self._config.namespace,
        )
        if manifest is None:
            if self._last_version is None:
                return None
            self._last_version = None
            return self._event(EventType.DELETE)

        version = str(manifest.get("metadata", {}).get("resourceVersion", ""))
        if version == self._last_version:
            return None
        event_type = EventType.CREATE if self._last_version is None else EventType.UPDATE
        self._last_version = version
        return self._event(event_type)


class RenovaterController:
    """Run reconciliations on trigger events and on requested follow-ups."""

    def __init__(
        self,
        renovater: TektonResourcesRenovater,
        watcher: TriggerWatcher,
        config: RenovaterConfig,
        *,
        error_backoff: float = 60.0,
        clock: cabc.Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialise the controller with its reconciler and trigger watcher."""
        self._renovater = renovater
        self._watcher = watcher
        self._config = config
        self._error_backoff = error_backoff
        self._clock = clock
        self._next_run_at: float | None = None

    @property
    def next_run_at(self) -> float | None:
        """Clock reading at which the follow-up reconciliation is due."""
        return self._next_run_at

    def _follow_up_due(self) -> bool:
        return self._next_run_at is not None and self._clock() >= self._next_run_at

    async def tick(self) -> ReconcileResult | None:
        """Poll once and reconcile when triggered or when a follow-up is due.

        Raises
        ------
        InstallationDirectoryError
            Propagated from the reconciliation; a retry is scheduled after
            ``error_backoff`` seconds first.

        """
        event = await self._watcher.poll()
        triggered = event is not None and should_reconcile(event, self._config)
        if not triggered and not self._follow_up_due():
            return None

        try:
            result = await self._renovater.reconcile()
        except InstallationDirectoryError:
            self._next_run_at = self._clock() + self._error_backoff
            raise

        if result.requeue_after is None:
            self._next_run_at = None
        else:
            self._next_run_at = self._clock() + result.requeue_after.total_seconds()
        log_info(
            logger,
            "Reconciliation finished: %d jobs created, %d batches failed",
            len(result.jobs_created),
            result.failed_batches,
        )
        return result

    async def run(self, poll_interval: float = 30.0) -> None:
        """Run the controller loop forever with the given poll interval."""
        while True:
            try:
                await self.tick()
            except (InstallationDirectoryError, ResourceStoreError) as exc:
                log_exception(logger, f"reconciliation attempt failed: {exc}", exc)
            await asyncio.sleep(poll_interval)

"""Reconcile Renovate Jobs with GitHub App installations and Components.

Each reconciliation reads the GitHub App identity from the Pipelines as Code
secret, lists the App installations and the tracked Components, keeps only the
repositories backing a Component, and launches one Renovate Job per batch of
installations. When the App is not configured the run is a no-op.

Failure handling
----------------
- Reading the secret or listing Components fails: logged, the run ends with no
  follow-up scheduled.
- Listing installations fails: raised, so the caller can retry.
- Creating or linking one batch fails: logged, the remaining batches still
  run.

Once batches have been processed a follow-up run is requested after
``RenovaterConfig.next_reconcile`` regardless of per-batch outcomes.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import typing as typ

from renovater.artifacts import build_renovate_job
from renovater.batching import partition
from renovater.credentials import (
    AppCredentialsError,
    is_github_app_configured,
    load_app_credentials,
)
from renovater.lifecycle import OwnershipError, launch_renovate_job
from renovater.logging import get_logger, log_error, log_exception, log_info
from renovater.matching import match_installations, tracked_repositories
from renovater.store import (
    ResourceNotFoundError,
    ResourceStoreError,
    object_name,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from renovater.artifacts import RenovateJobArtifact
    from renovater.config import RenovaterConfig
    from renovater.github import InstallationDirectory
    from renovater.store import ResourceStore

logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Outcome of one reconciliation.

    ``requeue_after`` is ``None`` when the run stopped early (App not
    configured or a read failed) and no follow-up is needed beyond the next
    external trigger.
    """

    requeue_after: dt.timedelta | None = None
    installations_matched: int = 0
    jobs_created: tuple[str, ...] = ()
    failed_batches: int = 0

    @property
    def is_noop(self) -> bool:
        """Return True when the run created nothing and scheduled nothing."""
        return self.requeue_after is None and not self.jobs_created


class TektonResourcesRenovater:
    """Launch Renovate Jobs that update ``.tekton`` pipeline references."""

    def __init__(
        self,
        store: ResourceStore,
        directory: InstallationDirectory,
        config_source: cabc.Callable[[], RenovaterConfig],
    ) -> None:
        """Initialise with the cluster store, directory and config loader.

        ``config_source`` is called at the start of every reconciliation so
        environment changes such as the batch size apply to the next run.
        """
        self._store = store
        self._directory = directory
        self._config_source = config_source

    async def reconcile(self) -> ReconcileResult:
        """Run one reconciliation.

        Raises
        ------
        InstallationDirectoryError
            If the GitHub App installations cannot be listed.

        """
        config = self._config_source()

        secret_data = await self._read_pac_secret(config)
        if secret_data is None:
            return ReconcileResult()
        if not is_github_app_configured(secret_data):
            log_info(logger, "GitHub App is not set")
            return ReconcileResult()
        try:
            credentials = load_app_credentials(secret_data)
        except AppCredentialsError as exc:
            log_exception(logger, f"failed to load GitHub App credentials: {exc}", exc)
            return ReconcileResult()

        installations, slug = await self._directory.get_installations(
            credentials.app_id, credentials.private_key
        )

        try:
            components = await self._store.list_components()
        except ResourceStoreError as exc:
            log_exception(logger, f"failed to list Components: {exc}", exc)
            return ReconcileResult()

        matched = match_installations(installations, tracked_repositories(components))
        jobs_created: list[str] = []
        failed_batches = 0
        for batch in partition(matched, config.installations_per_job):
            artifact = build_renovate_job(batch, slug, config)
            if artifact is None:
                continue
            job_name = await self._launch(artifact)
            if job_name is None:
                failed_batches += 1
            else:
                jobs_created.append(job_name)

        return ReconcileResult(
            requeue_after=config.next_reconcile,
            installations_matched=len(matched),
            jobs_created=tuple(jobs_created),
            failed_batches=failed_batches,
        )

    async def _read_pac_secret(
        self, config: RenovaterConfig
    ) -> dict[str, bytes] | None:
        """Return the secret data, empty when absent, ``None`` on read errors."""
        try:
            return await self._store.get_secret(config.pac_secret_name, config.namespace)
        except ResourceNotFoundError:
            return {}
        except ResourceStoreError as exc:
            log_error(
                logger,
                "failed to get Pipelines as Code secret in %s namespace: %s",
                config.namespace,
                exc,
                exc_info=exc,
            )
            return None

    async def _launch(self, artifact: RenovateJobArtifact) -> str | None:
        """Create one batch, returning the Job name or ``None`` on failure."""
        try:
            job = await launch_renovate_job(self._store, artifact)
        except (ResourceStoreError, OwnershipError) as exc:
            log_exception(logger, f"failed to create a job {artifact.name}: {exc}", exc)
            return None
        return object_name(job) or artifact.name

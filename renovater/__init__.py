"""Renovate Job controller for ``.tekton`` pipeline definitions.

The renovater matches GitHub App installations against tracked Components and
launches batched Renovate Jobs that keep Tekton task bundle references in the
``.tekton/`` directory of each repository up to date.

Usage
-----
Run one reconciliation::

    from renovater import RenovaterConfig, TektonResourcesRenovater

    renovater = TektonResourcesRenovater(store, directory, RenovaterConfig.from_env)
    result = await renovater.reconcile()
    print(result.jobs_created, result.requeue_after)

"""

from __future__ import annotations

from renovater.artifacts import RenovateJobArtifact, build_renovate_job
from renovater.batching import partition
from renovater.config import RenovaterConfig
from renovater.lifecycle import launch_renovate_job
from renovater.matching import match_installations, tracked_repositories
from renovater.reconciler import ReconcileResult, TektonResourcesRenovater
from renovater.renovate_config import generate_config_js

__all__ = [
    "ReconcileResult",
    "RenovateJobArtifact",
    "RenovaterConfig",
    "TektonResourcesRenovater",
    "build_renovate_job",
    "generate_config_js",
    "launch_renovate_job",
    "match_installations",
    "partition",
    "tracked_repositories",
]

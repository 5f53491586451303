"""Configuration for the Tekton resources renovater.

``RenovaterConfig`` carries the knobs that shape each reconciliation: the
Renovate image, the package pattern grouped into a single update, and how many
GitHub App installations a single Job processes.

Usage
-----
Create a configuration with defaults:

>>> config = RenovaterConfig()
>>> config.installations_per_job
20

Or load from environment variables:

>>> import os
>>> os.environ["RENOVATE_INSTALLATIONS_PER_JOB"] = "7"
>>> RenovaterConfig.from_env().installations_per_job
7

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import os
import re
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

DEFAULT_RENOVATE_IMAGE = "quay.io/redhat-appstudio/renovate:34.154-slim"
DEFAULT_MATCH_PATTERN = "^quay.io/redhat-appstudio-tekton-catalog/"
DEFAULT_INSTALLATIONS_PER_JOB = 20

RENOVATE_IMAGE_ENV = "RENOVATE_IMAGE"
RENOVATE_PATTERN_ENV = "RENOVATE_PATTERN"
INSTALLATIONS_PER_JOB_ENV = "RENOVATE_INSTALLATIONS_PER_JOB"
NAMESPACE_ENV = "RENOVATER_NAMESPACE"

BUILD_SERVICE_NAMESPACE = "build-service"
BUILD_PIPELINE_SELECTOR_NAME = "build-pipeline-selector"
BUILD_PIPELINE_SELECTOR_KIND = "BuildPipelineSelector"
PAC_SECRET_NAME = "pipelines-as-code-secret"  # noqa: S105 - secret name, not a value

# Only one or two ASCII digits are accepted; anything else uses the default.
_INSTALLATIONS_PER_JOB_PATTERN = re.compile(r"[0-9]{1,2}")


def parse_installations_per_job(raw: str | None) -> int:
    """Return the installations-per-job limit encoded in ``raw``.

    Parameters
    ----------
    raw : str | None
        Raw environment value.

    Returns
    -------
    int
        The parsed limit, or ``DEFAULT_INSTALLATIONS_PER_JOB`` when ``raw`` is
        missing, non-numeric, longer than two digits, or zero.

    Examples
    --------
    >>> parse_installations_per_job("7")
    7
    >>> parse_installations_per_job("100")
    20

    """
    if raw is None or not _INSTALLATIONS_PER_JOB_PATTERN.fullmatch(raw):
        return DEFAULT_INSTALLATIONS_PER_JOB
    return int(raw) or DEFAULT_INSTALLATIONS_PER_JOB


@dc.dataclass(frozen=True, slots=True)
class RenovaterConfig:
    """Settings for one reconciliation run.

    Attributes
    ----------
    renovate_image
        Container image that runs Renovate inside each Job.
    match_pattern
        Regular expression selecting the Tekton bundle references that are
        re-enabled and grouped together. Injected verbatim into the generated
        Renovate config.
    installations_per_job
        Maximum number of installations handled by a single Job.
    namespace
        Namespace holding the Pipelines as Code secret, the trigger object and
        every created Job, Secret and ConfigMap.
    trigger_kind, trigger_name
        The singleton object whose creation or update triggers reconciliation.
    pac_secret_name
        Secret carrying the GitHub App id and private key.
    next_reconcile
        Delay before the unconditional follow-up reconciliation.
    job_ttl
        How long finished Jobs (and the objects they own) are kept.

    """

    renovate_image: str = DEFAULT_RENOVATE_IMAGE
    match_pattern: str = DEFAULT_MATCH_PATTERN
    installations_per_job: int = DEFAULT_INSTALLATIONS_PER_JOB
    namespace: str = BUILD_SERVICE_NAMESPACE
    trigger_kind: str = BUILD_PIPELINE_SELECTOR_KIND
    trigger_name: str = BUILD_PIPELINE_SELECTOR_NAME
    pac_secret_name: str = PAC_SECRET_NAME
    next_reconcile: dt.timedelta = dt.timedelta(hours=10)
    job_ttl: dt.timedelta = dt.timedelta(hours=24)

    def __post_init__(self) -> None:
        """Reject limits that would make batching impossible."""
        if self.installations_per_job < 1:
            msg = (
                "installations_per_job must be positive, "
                f"got: {self.installations_per_job}"
            )
            raise ValueError(msg)

    @classmethod
    def from_env(cls) -> RenovaterConfig:
        """Create configuration from environment variables.

        Reads the following environment variables:

        - ``RENOVATE_IMAGE``: Renovate image reference.
        - ``RENOVATE_PATTERN``: package pattern for the grouping rule.
        - ``RENOVATE_INSTALLATIONS_PER_JOB``: one or two digit positive
          integer. Invalid values fall back to 20 instead of failing.
        - ``RENOVATER_NAMESPACE``: namespace the controller operates in.

        Empty values are treated as unset.
        """
        return cls(
            renovate_image=os.environ.get(RENOVATE_IMAGE_ENV)
            or DEFAULT_RENOVATE_IMAGE,
            match_pattern=os.environ.get(RENOVATE_PATTERN_ENV) or DEFAULT_MATCH_PATTERN,
            installations_per_job=parse_installations_per_job(
                os.environ.get(INSTALLATIONS_PER_JOB_ENV)
            ),
            namespace=os.environ.get(NAMESPACE_ENV) or BUILD_SERVICE_NAMESPACE,
        )


def pinned_namespace_loader(
    namespace: str,
) -> cabc.Callable[[], RenovaterConfig]:
    """Return a loader that re-reads the environment but keeps ``namespace``.

    The trigger watcher is bound to a namespace when the controller starts.
    Reconciliations keep creating Jobs there even if ``RENOVATER_NAMESPACE``
    changes later, while the image, pattern and batch size still reload.
    """

    def load() -> RenovaterConfig:
        return dc.replace(RenovaterConfig.from_env(), namespace=namespace)

    return load

"""Build the Secret, ConfigMap and Job manifests for one Renovate batch.

A batch of installations runs inside a single Job. Installation tokens live in
a Secret keyed by installation id and reach the container as ``TOKEN_{id}``
environment variables; generated configs live in a ConfigMap mounted at
``/configs``. The container runs one Renovate invocation per installation,
each wired to its own token and config file.
"""

from __future__ import annotations

import dataclasses
import random
import string
import time
import typing as typ

from renovater.renovate_config import config_file_name, generate_config_js

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from renovater.config import RenovaterConfig
    from renovater.models import MatchedInstallation
    from renovater.store import Manifest

JOB_NAME_PREFIX = "renovate-job"
CONTAINER_NAME = "renovate"
CONFIGS_MOUNT_PATH = "/configs"
TOKEN_ENV_PREFIX = "TOKEN_"  # noqa: S105 - env var prefix, not a credential
BACKOFF_LIMIT = 1

_NAME_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_NAME_SUFFIX_LENGTH = 5


def generate_job_name(
    now: cabc.Callable[[], float] = time.time,
    rng: random.Random | None = None,
) -> str:
    """Return ``renovate-job-{unix_timestamp}-{random suffix}``.

    The suffix separates Jobs created within the same second.
    """
    chooser = rng or random
    suffix = "".join(
        chooser.choices(_NAME_SUFFIX_ALPHABET, k=_NAME_SUFFIX_LENGTH)  # noqa: S311 - naming only
    )
    return f"{JOB_NAME_PREFIX}-{int(now())}-{suffix}"


def renovate_command(installation_id: int) -> str:
    """Return the shell command running Renovate for one installation."""
    return (
        f"RENOVATE_TOKEN=${TOKEN_ENV_PREFIX}{installation_id} "
        f"RENOVATE_CONFIG_FILE={CONFIGS_MOUNT_PATH}/"
        f"{config_file_name(installation_id)} renovate"
    )


@dataclasses.dataclass(frozen=True, slots=True)
class RenovateJobArtifact:
    """Manifests created for one batch, all sharing ``name``."""

    name: str
    secret: Manifest
    config_map: Manifest
    job: Manifest


def _metadata(name: str, namespace: str) -> dict[str, str]:
    return {"name": name, "namespace": namespace}


def _security_context() -> dict[str, typ.Any]:
    return {
        "capabilities": {"drop": ["ALL"]},
        "runAsNonRoot": True,
        "allowPrivilegeEscalation": False,
        "seccompProfile": {"type": "RuntimeDefault"},
    }


def _job_manifest(
    name: str, commands: cabc.Sequence[str], config: RenovaterConfig
) -> Manifest:
    return {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": _metadata(name, config.namespace),
        "spec": {
            "backoffLimit": BACKOFF_LIMIT,
            "ttlSecondsAfterFinished": int(config.job_ttl.total_seconds()),
            "template": {
                "spec": {
                    "volumes": [{"name": name, "configMap": {"name": name}}],
                    "containers": [
                        {
                            "name": CONTAINER_NAME,
                            "image": config.renovate_image,
                            "envFrom": [
                                {
                                    "prefix": TOKEN_ENV_PREFIX,
                                    "secretRef": {"name": name},
                                }
                            ],
                            "command": ["bash", "-c", "; ".join(commands)],
                            "volumeMounts": [
                                {"name": name, "mountPath": CONFIGS_MOUNT_PATH}
                            ],
                            "securityContext": _security_context(),
                        }
                    ],
                    "restartPolicy": "Never",
                }
            },
        },
    }


def build_renovate_job(
    installations: cabc.Sequence[MatchedInstallation],
    slug: str,
    config: RenovaterConfig,
    name: str | None = None,
) -> RenovateJobArtifact | None:
    """Build the manifests for one batch of installations.

    Parameters
    ----------
    installations
        The batch; each installation must carry at least one repository.
    slug
        GitHub App slug used for the Renovate bot identity.
    config
        Supplies the namespace, image, match pattern and Job TTL.
    name
        Shared object name. Generated with :func:`generate_job_name` when
        omitted.

    Returns
    -------
    RenovateJobArtifact | None
        ``None`` for an empty batch, which must not produce a Job.

    """
    if not installations:
        return None

    name = name or generate_job_name()
    tokens: dict[str, str] = {}
    configs: dict[str, str] = {}
    commands: list[str] = []
    for installation in installations:
        tokens[str(installation.id)] = installation.token
        configs[config_file_name(installation.id)] = generate_config_js(
            slug, installation.repositories, config.match_pattern
        )
        commands.append(renovate_command(installation.id))

    secret: Manifest = {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": _metadata(name, config.namespace),
        "stringData": tokens,
    }
    config_map: Manifest = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": _metadata(name, config.namespace),
        "data": configs,
    }
    return RenovateJobArtifact(
        name=name,
        secret=secret,
        config_map=config_map,
        job=_job_manifest(name, commands, config),
    )

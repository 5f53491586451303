"""Unit tests for Renovate Job manifest building."""

from __future__ import annotations

import random
import re

import pytest

from renovater.artifacts import (
    RenovateJobArtifact,
    build_renovate_job,
    generate_job_name,
    renovate_command,
)
from renovater.config import RenovaterConfig
from renovater.models import MatchedInstallation, RenovateRepository

_NAME = "renovate-job-1700000000-abcde"


def _matched(installation_id: int, *repositories: str) -> MatchedInstallation:
    return MatchedInstallation(
        id=installation_id,
        token=f"token-{installation_id}",
        repositories=tuple(RenovateRepository(repository=r) for r in repositories),
    )


@pytest.fixture
def artifact(config: RenovaterConfig) -> RenovateJobArtifact:
    """Build an artifact for two installations."""
    built = build_renovate_job(
        [_matched(11, "octo/a"), _matched(22, "octo/b", "octo/c")],
        "tekton-bot",
        config,
        name=_NAME,
    )
    assert built is not None
    return built


def _container(artifact: RenovateJobArtifact) -> dict[str, object]:
    return artifact.job["spec"]["template"]["spec"]["containers"][0]


def test_empty_batch_builds_nothing(config: RenovaterConfig) -> None:
    """No artifact is produced for an empty batch."""
    assert build_renovate_job([], "tekton-bot", config) is None


def test_objects_share_name_and_namespace(artifact: RenovateJobArtifact) -> None:
    """Secret, ConfigMap and Job use the same name in the build namespace."""
    for manifest in (artifact.secret, artifact.config_map, artifact.job):
        assert manifest["metadata"] == {"name": _NAME, "namespace": "build-service"}
    assert artifact.secret["kind"] == "Secret"
    assert artifact.config_map["kind"] == "ConfigMap"
    assert artifact.job["kind"] == "Job"
    assert artifact.job["apiVersion"] == "batch/v1"


def test_secret_holds_one_token_per_installation(
    artifact: RenovateJobArtifact,
) -> None:
    """Tokens are keyed by installation id."""
    assert artifact.secret["stringData"] == {"11": "token-11", "22": "token-22"}


def test_config_map_holds_one_config_per_installation(
    artifact: RenovateJobArtifact,
) -> None:
    """Configs are keyed ``{id}.js`` and list only that installation's repos."""
    data = artifact.config_map["data"]

    assert sorted(data) == ["11.js", "22.js"]
    assert '[{"repository":"octo/a"}]' in data["11.js"]
    assert '[{"repository":"octo/b"},{"repository":"octo/c"}]' in data["22.js"]


def test_command_runs_each_installation_in_turn(
    artifact: RenovateJobArtifact,
) -> None:
    """Commands are semicolon-joined and reference their own token and config."""
    assert _container(artifact)["command"] == [
        "bash",
        "-c",
        "RENOVATE_TOKEN=$TOKEN_11 RENOVATE_CONFIG_FILE=/configs/11.js renovate; "
        "RENOVATE_TOKEN=$TOKEN_22 RENOVATE_CONFIG_FILE=/configs/22.js renovate",
    ]


def test_job_limits_and_lifecycle(artifact: RenovateJobArtifact) -> None:
    """The Job retries once and expires a day after finishing."""
    spec = artifact.job["spec"]

    assert spec["backoffLimit"] == 1
    assert spec["ttlSecondsAfterFinished"] == 86400
    assert spec["template"]["spec"]["restartPolicy"] == "Never"


def test_job_wires_secret_and_configs(artifact: RenovateJobArtifact) -> None:
    """Tokens arrive as prefixed env vars and configs as a mounted volume."""
    pod = artifact.job["spec"]["template"]["spec"]
    container = _container(artifact)

    assert pod["volumes"] == [{"name": _NAME, "configMap": {"name": _NAME}}]
    assert container["volumeMounts"] == [{"name": _NAME, "mountPath": "/configs"}]
    assert container["envFrom"] == [{"prefix": "TOKEN_", "secretRef": {"name": _NAME}}]
    assert container["image"] == "quay.io/redhat-appstudio/renovate:34.154-slim"


def test_job_runs_restricted(artifact: RenovateJobArtifact) -> None:
    """The container runs as non-root with no capabilities."""
    assert _container(artifact)["securityContext"] == {
        "capabilities": {"drop": ["ALL"]},
        "runAsNonRoot": True,
        "allowPrivilegeEscalation": False,
        "seccompProfile": {"type": "RuntimeDefault"},
    }


def test_custom_image_and_pattern() -> None:
    """Configured image and pattern flow into the manifests."""
    config = RenovaterConfig(
        renovate_image="registry.example/renovate:38",
        match_pattern="^quay.io/example/",
    )

    built = build_renovate_job([_matched(1, "octo/a")], "bot", config, name=_NAME)

    assert built is not None
    assert _container(built)["image"] == "registry.example/renovate:38"
    assert "^quay.io/example/" in built.config_map["data"]["1.js"]


def test_generated_name_when_omitted(config: RenovaterConfig) -> None:
    """Omitting the name produces a timestamped unique name."""
    built = build_renovate_job([_matched(1, "octo/a")], "bot", config)

    assert built is not None
    assert re.fullmatch(r"renovate-job-\d+-[a-z0-9]{5}", built.name)
    assert built.job["metadata"]["name"] == built.name


def test_generate_job_name_uses_clock_and_rng() -> None:
    """Names combine the unix timestamp with a random suffix."""
    first = generate_job_name(lambda: 1700000000.9, random.Random(7))
    second = generate_job_name(lambda: 1700000000.9, random.Random(8))

    assert first.startswith("renovate-job-1700000000-")
    assert len(first.rsplit("-", 1)[1]) == 5
    assert first != second


def test_renovate_command() -> None:
    """The command references the installation's token and config file."""
    assert renovate_command(5) == (
        "RENOVATE_TOKEN=$TOKEN_5 RENOVATE_CONFIG_FILE=/configs/5.js renovate"
    )

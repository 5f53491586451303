"""Behavioural tests for batched Renovate Job reconciliation."""
# ruff: noqa: D103

from __future__ import annotations

import asyncio
import dataclasses
import datetime as dt
import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from renovater.config import BUILD_SERVICE_NAMESPACE, PAC_SECRET_NAME, RenovaterConfig
from renovater.reconciler import TektonResourcesRenovater
from renovater.store import ResourceConflictError
from tests.helpers.fakes import (
    InMemoryResourceStore,
    StaticInstallationDirectory,
    component,
    installation,
)

if typ.TYPE_CHECKING:
    from renovater.reconciler import ReconcileResult
    from tests.helpers.fakes import FakeLogger


class StepContext(typ.TypedDict, total=False):
    """State shared between BDD steps in this module."""

    store: InMemoryResourceStore
    directory: StaticInstallationDirectory
    config: RenovaterConfig
    result: ReconcileResult


@scenario(
    "../renovate_reconciliation.feature",
    "Matched installations are split into batched Jobs",
)
def test_batched_jobs() -> None:
    """Matched installations produce one Job per batch."""


@scenario(
    "../renovate_reconciliation.feature",
    "An unconfigured GitHub App creates nothing",
)
def test_unconfigured_app() -> None:
    """Reconciliation is a no-op without App settings."""


@scenario(
    "../renovate_reconciliation.feature",
    "A failing batch does not block the others",
)
def test_failed_batch_isolated() -> None:
    """One rejected batch leaves the others untouched."""


@pytest.fixture
def context(
    pac_secret_data: dict[str, bytes], fake_logger: FakeLogger
) -> StepContext:
    del fake_logger
    return {
        "store": InMemoryResourceStore(
            secrets={(BUILD_SERVICE_NAMESPACE, PAC_SECRET_NAME): pac_secret_data}
        ),
        "directory": StaticInstallationDirectory(slug="tekton-bot"),
        "config": RenovaterConfig(),
    }


def _split(names: str) -> list[str]:
    return [name.strip() for name in names.split(",") if name.strip()]


@given("the GitHub App is configured in the Pipelines as Code secret")
def app_configured(context: StepContext) -> None:
    secret = context["store"].secrets[(BUILD_SERVICE_NAMESPACE, PAC_SECRET_NAME)]
    assert secret, "Expected App settings in the secret"


@given("the Pipelines as Code secret has no GitHub App settings")
def app_not_configured(context: StepContext) -> None:
    context["store"].secrets[(BUILD_SERVICE_NAMESPACE, PAC_SECRET_NAME)] = {
        "webhook.secret": b"hook"
    }


@given(parsers.parse('Components track "{first}", "{second}" and "{third}"'))
def components_tracked(context: StepContext, first: str, second: str, third: str) -> None:
    context["store"].components.extend(
        component(f"https://github.com/{name}.git") for name in (first, second, third)
    )


@given(
    parsers.parse(
        'the App has installations {a:d} with "{a_repos}", {b:d} with "{b_repos}" '
        'and {c:d} with "{c_repos}"'
    )
)
def app_installations(  # noqa: PLR0913
    context: StepContext,
    a: int,
    a_repos: str,
    b: int,
    b_repos: str,
    c: int,
    c_repos: str,
) -> None:
    context["directory"].installations = [
        installation(a, *_split(a_repos)),
        installation(b, *_split(b_repos)),
        installation(c, *_split(c_repos)),
    ]


@given(parsers.parse("at most {limit:d} installations run per Job"))
def installations_per_job(context: StepContext, limit: int) -> None:
    context["config"] = dataclasses.replace(
        context["config"], installations_per_job=limit
    )


@given("the first Job creation is rejected")
def first_job_rejected(context: StepContext) -> None:
    store = context["store"]
    store.fail_on[("create", "Job")] = ResourceConflictError("job name collision")
    store.fail_times[("create", "Job")] = 1


@when("the renovater reconciles")
def reconcile(context: StepContext) -> None:
    config = context["config"]
    renovater = TektonResourcesRenovater(
        context["store"], context["directory"], lambda: config
    )
    context["result"] = asyncio.run(renovater.reconcile())


@then(parsers.parse("{count:d} Renovate Jobs are created"))
def jobs_created(context: StepContext, count: int) -> None:
    assert len(context["result"].jobs_created) == count
    jobs = context["store"].stored("Job")
    assert {job["metadata"]["name"] for job in jobs} >= set(
        context["result"].jobs_created
    )


@then("no Renovate Jobs are created")
def no_jobs_created(context: StepContext) -> None:
    assert context["result"].jobs_created == ()
    assert context["store"].stored("Job") == []


@then(
    parsers.parse(
        'the Job for installations "{ids}" renovates "{first}" and "{second}"'
    )
)
def job_renovates(context: StepContext, ids: str, first: str, second: str) -> None:
    store = context["store"]
    expected_keys = _split(ids)
    job_name = next(
        name
        for name in context["result"].jobs_created
        if sorted(store.objects[("Secret", BUILD_SERVICE_NAMESPACE, name)]["stringData"])
        == expected_keys
    )
    configs = store.objects[("ConfigMap", BUILD_SERVICE_NAMESPACE, job_name)]["data"]
    rendered = "".join(configs.values())
    for repository in (first, second):
        assert f'"repository":"{repository}"' in rendered, f"{repository} missing"
    assert '"repository":"octo/b"' not in rendered, "untracked repository leaked"


@then("every Secret and ConfigMap is owned by its Job")
def owned_by_job(context: StepContext) -> None:
    store = context["store"]
    for name in context["result"].jobs_created:
        job = store.objects[("Job", BUILD_SERVICE_NAMESPACE, name)]
        for kind in ("Secret", "ConfigMap"):
            child = store.objects[(kind, BUILD_SERVICE_NAMESPACE, name)]
            (reference,) = child["metadata"]["ownerReferences"]
            assert reference["uid"] == job["metadata"]["uid"], f"{kind} {name} unowned"


@then(parsers.parse("{count:d} batch is reported as failed"))
def failed_batches(context: StepContext, count: int) -> None:
    assert context["result"].failed_batches == count


@then(parsers.parse("the next reconciliation is requested after {hours:d} hours"))
def requeued(context: StepContext, hours: int) -> None:
    assert context["result"].requeue_after == dt.timedelta(hours=hours)


@then("no follow-up reconciliation is requested")
def not_requeued(context: StepContext) -> None:
    assert context["result"].requeue_after is None


@then("GitHub was not queried")
def github_not_queried(context: StepContext) -> None:
    assert context["directory"].calls == []

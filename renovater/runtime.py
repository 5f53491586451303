"""Command-line entrypoint for the Tekton resources renovater.

Subcommands:

    renovater reconcile   # run a single reconciliation and exit
    renovater run         # watch the trigger object and reconcile on change

Environment variables:

    RENOVATER_LOG_LEVEL         - log level (default: INFO)
    RENOVATER_POLL_INTERVAL     - seconds between trigger polls (default: 30)
    RENOVATER_APP_TOKEN_SIGNER  - ``module:attribute`` of the GitHub App JWT
                                  signer, required
    RENOVATER_GITHUB_API_URL    - GitHub API base URL
    RENOVATE_IMAGE, RENOVATE_PATTERN, RENOVATE_INSTALLATIONS_PER_JOB,
    RENOVATER_NAMESPACE         - see :class:`renovater.config.RenovaterConfig`
"""

from __future__ import annotations

import asyncio
import importlib
import typing as typ

from cyclopts import App, Parameter

from renovater.config import RenovaterConfig, pinned_namespace_loader
from renovater.github import (
    GitHubAppDirectory,
    GitHubAppDirectoryConfig,
    InstallationDirectoryError,
)
from renovater.kubectl import KubectlResourceStore
from renovater.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_exception,
    log_info,
    log_warning,
)
from renovater.reconciler import TektonResourcesRenovater
from renovater.trigger import RenovaterController, TriggerWatcher

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from renovater.github import AppTokenSigner

logger = get_logger(__name__)

app = App(
    name="renovater",
    help="Keep Renovate Jobs for .tekton directories in sync with GitHub App installations",
    version="0.1.0",
)


class SignerLoadError(RuntimeError):
    """Raised when the configured App token signer cannot be imported."""

    @classmethod
    def bad_path(cls, path: str) -> SignerLoadError:
        """Return an error for a path not in ``module:attribute`` form."""
        return cls(f"signer path must look like 'module:attribute', got: {path!r}")


def load_signer(path: str) -> AppTokenSigner:
    """Import the App token signer named by ``module:attribute``.

    Raises
    ------
    SignerLoadError
        If the path is malformed, the import fails, or the target is not
        callable.

    """
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise SignerLoadError.bad_path(path)
    try:
        signer = getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as exc:
        msg = f"cannot load signer {path!r}: {exc}"
        raise SignerLoadError(msg) from exc
    if not callable(signer):
        msg = f"signer {path!r} is not callable"
        raise SignerLoadError(msg)
    return typ.cast("AppTokenSigner", signer)


def _setup_logging(log_level: str) -> None:
    normalized, invalid = configure_logging(log_level)
    if invalid:
        log_warning(
            logger,
            "Invalid RENOVATER_LOG_LEVEL %r, falling back to %s",
            log_level,
            normalized,
        )


def _build(
    signer_path: str,
    config_source: cabc.Callable[[], RenovaterConfig] = RenovaterConfig.from_env,
) -> tuple[TektonResourcesRenovater, GitHubAppDirectory]:
    directory = GitHubAppDirectory(
        load_signer(signer_path), GitHubAppDirectoryConfig.from_env()
    )
    renovater = TektonResourcesRenovater(KubectlResourceStore(), directory, config_source)
    return renovater, directory


async def _reconcile_once(signer_path: str) -> int:
    renovater, directory = _build(signer_path)
    try:
        result = await renovater.reconcile()
    except InstallationDirectoryError as exc:
        log_exception(logger, f"failed to list GitHub App installations: {exc}", exc)
        return 1
    finally:
        await directory.aclose()
    log_info(
        logger,
        "Reconciled %d installations into %d jobs (%d failed batches)",
        result.installations_matched,
        len(result.jobs_created),
        result.failed_batches,
    )
    return 0


async def _run_forever(signer_path: str, poll_interval: float) -> None:
    config = RenovaterConfig.from_env()
    renovater, directory = _build(
        signer_path, pinned_namespace_loader(config.namespace)
    )
    controller = RenovaterController(
        renovater, TriggerWatcher(KubectlResourceStore(), config), config
    )
    try:
        await controller.run(poll_interval)
    finally:
        await directory.aclose()


@app.command
def reconcile(
    *,
    signer: typ.Annotated[str, Parameter(env_var="RENOVATER_APP_TOKEN_SIGNER")],
    log_level: typ.Annotated[str, Parameter(env_var="RENOVATER_LOG_LEVEL")] = "INFO",
) -> int:
    """Run a single reconciliation.

    Parameters
    ----------
    signer
        ``module:attribute`` of the GitHub App JWT signer.
    log_level
        Log level name.

    """
    _setup_logging(log_level)
    try:
        return asyncio.run(_reconcile_once(signer))
    except SignerLoadError as exc:
        log_error(logger, "%s", exc)
        return 2


@app.command
def run(
    *,
    signer: typ.Annotated[str, Parameter(env_var="RENOVATER_APP_TOKEN_SIGNER")],
    poll_interval: typ.Annotated[
        float, Parameter(env_var="RENOVATER_POLL_INTERVAL")
    ] = 30.0,
    log_level: typ.Annotated[str, Parameter(env_var="RENOVATER_LOG_LEVEL")] = "INFO",
) -> int:
    """Watch the build pipeline selector and reconcile on change.

    Parameters
    ----------
    signer
        ``module:attribute`` of the GitHub App JWT signer.
    poll_interval
        Seconds between polls of the trigger object.
    log_level
        Log level name.

    """
    _setup_logging(log_level)
    log_info(logger, "Starting renovater controller (poll_interval=%.1fs)", poll_interval)
    try:
        asyncio.run(_run_forever(signer, poll_interval))
    except SignerLoadError as exc:
        log_error(logger, "%s", exc)
        return 2
    return 0


def main() -> int:
    """Run the renovater CLI."""
    return app()


if __name__ == "__main__":
    raise SystemExit(main())

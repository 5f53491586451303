"""Match GitHub App installations against tracked components.

A GitHub App is usually installed on far more repositories than the cluster
tracks. Only repositories backing a ``Component`` are handed to Renovate, and
an installation with no such repository produces no work at all.
"""

from __future__ import annotations

import typing as typ

from renovater.models import MatchedInstallation, RenovateRepository

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from renovater.models import Component, Installation

    type TrackedRepositories = dict[str, str]


def canonical_repository_url(url: str) -> str:
    """Strip a trailing ``.git`` and then a trailing ``/`` from ``url``.

    Examples
    --------
    >>> canonical_repository_url("https://github.com/octo/reef.git")
    'https://github.com/octo/reef'
    >>> canonical_repository_url("https://github.com/octo/reef/")
    'https://github.com/octo/reef'

    """
    return url.removesuffix(".git").removesuffix("/")


def tracked_repositories(
    components: cabc.Iterable[Component],
) -> TrackedRepositories:
    """Map canonical Git URLs of ``components`` to their pinned revision.

    Components without a Git source are ignored. An empty revision means the
    repository default branch. When two components share a URL the later one
    wins.
    """
    tracked: TrackedRepositories = {}
    for component in components:
        source = component.git_source
        if source is None:
            continue
        tracked[canonical_repository_url(source.url)] = source.revision
    return tracked


def _match_repositories(
    installation: Installation, tracked: TrackedRepositories
) -> tuple[RenovateRepository, ...]:
    matched: list[RenovateRepository] = []
    for repository in installation.repositories:
        branch = tracked.get(repository.html_url)
        if branch is None:
            continue
        matched.append(
            RenovateRepository(
                repository=repository.full_name,
                base_branches=(branch,) if branch else (),
            )
        )
    return tuple(matched)


def match_installations(
    installations: cabc.Iterable[Installation],
    tracked: TrackedRepositories,
) -> list[MatchedInstallation]:
    """Reduce ``installations`` to the repositories present in ``tracked``.

    Parameters
    ----------
    installations
        Installations in the order the directory returned them.
    tracked
        Mapping produced by :func:`tracked_repositories`.

    Returns
    -------
    list[MatchedInstallation]
        One entry per installation with at least one tracked repository.
        Installation and repository order are preserved.

    """
    matched: list[MatchedInstallation] = []
    for installation in installations:
        repositories = _match_repositories(installation, tracked)
        if not repositories:
            continue
        matched.append(
            MatchedInstallation(
                id=installation.id,
                token=installation.token,
                repositories=repositories,
            )
        )
    return matched

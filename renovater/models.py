"""Typed structures shared across the renovater reconciliation."""

from __future__ import annotations

import msgspec


class RepositoryRef(msgspec.Struct, frozen=True, kw_only=True):
    """Repository visible to a GitHub App installation.

    Attributes
    ----------
    full_name : str
        ``owner/name`` identifier used by Renovate.
    html_url : str
        Canonical browser URL, compared against tracked component URLs.

    """

    full_name: str
    html_url: str


class Installation(msgspec.Struct, frozen=True, kw_only=True):
    """GitHub App installation with its access token and repositories."""

    id: int
    token: str
    repositories: tuple[RepositoryRef, ...] = ()


class RenovateRepository(
    msgspec.Struct, frozen=True, kw_only=True, omit_defaults=True, rename="camel"
):
    """Entry of the ``repositories`` array in a generated Renovate config.

    Encodes as ``{"repository": ..., "baseBranches": [...]}``; the branch list
    is omitted when empty so Renovate uses the default branch.
    """

    repository: str
    base_branches: tuple[str, ...] = ()


class MatchedInstallation(msgspec.Struct, frozen=True, kw_only=True):
    """Installation reduced to the repositories that are tracked components."""

    id: int
    token: str
    repositories: tuple[RenovateRepository, ...]


class GitSource(msgspec.Struct, frozen=True, kw_only=True):
    """Git source of a component."""

    url: str
    revision: str = ""


class ComponentSource(msgspec.Struct, frozen=True, kw_only=True):
    """Component source; only Git sources are relevant here."""

    git: GitSource | None = None


class ComponentSpec(msgspec.Struct, frozen=True, kw_only=True):
    """Subset of the ``Component`` spec read by the renovater."""

    source: ComponentSource = msgspec.field(default_factory=ComponentSource)


class ObjectMeta(msgspec.Struct, frozen=True, kw_only=True):
    """Identity of a cluster object."""

    name: str = ""
    namespace: str = ""


class Component(msgspec.Struct, frozen=True, kw_only=True):
    """Tracked ``appstudio.redhat.com/v1alpha1`` Component record."""

    metadata: ObjectMeta = msgspec.field(default_factory=ObjectMeta)
    spec: ComponentSpec = msgspec.field(default_factory=ComponentSpec)

    @property
    def git_source(self) -> GitSource | None:
        """Return the Git source, if the component has one."""
        return self.spec.source.git


class AppCredentials(msgspec.Struct, frozen=True, kw_only=True):
    """GitHub App identity read from the Pipelines as Code secret."""

    app_id: int
    private_key: bytes = b""

    def __repr__(self) -> str:
        """Hide the private key from logs and tracebacks."""
        return f"AppCredentials(app_id={self.app_id})"

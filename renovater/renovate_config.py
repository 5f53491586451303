"""Render per-installation Renovate configuration modules.

Each installation gets its own ``config.js`` so Renovate runs with the
installation token against exactly the repositories matched for it. The
document is consumed by the Renovate image, so field names, nesting and the
order of the package rules must stay stable.
"""

from __future__ import annotations

import typing as typ

import msgspec

from renovater.config import DEFAULT_MATCH_PATTERN

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from renovater.models import RenovateRepository

CONFIG_FILE_EXTENSION = "js"
GROUP_NAME = "tekton references"

# The pattern is injected twice; both filters must match for the group rule.
_CONFIG_TEMPLATE = r"""
module.exports = {
    platform: "github",
    username: "%(slug)s[bot]",
    gitAuthor:"%(slug)s <123456+%(slug)s[bot]@users.noreply.github.com>",
    onboarding: false,
    requireConfig: "ignored",
    enabledManagers: ["tekton"],
    repositories: %(repositories)s,
    tekton: {
        fileMatch: ["\\.yaml$", "\\.yml$"],
        includePaths: [".tekton/**"],
        packageRules: [
          {
            matchPackagePatterns: ["*"],
            enabled: false
          },
          {
            matchPackagePatterns: ["%(pattern)s"],
            matchDepPatterns: ["%(pattern)s"],
            groupName: "%(group)s",
            enabled: true
          }
        ]
    },
    includeForks: true,
    dependencyDashboard: false
}
"""


def config_file_name(installation_id: int) -> str:
    """Return the ConfigMap key holding the config for ``installation_id``."""
    return f"{installation_id}.{CONFIG_FILE_EXTENSION}"


def generate_config_js(
    slug: str,
    repositories: cabc.Sequence[RenovateRepository],
    match_pattern: str = DEFAULT_MATCH_PATTERN,
) -> str:
    """Render the Renovate config module for one installation.

    Parameters
    ----------
    slug
        GitHub App slug; the bot identity Renovate commits as.
    repositories
        Matched repositories of the installation, in order.
    match_pattern
        Package pattern re-enabled and grouped under ``tekton references``.
        An empty value falls back to the default pattern.

    Returns
    -------
    str
        JavaScript module text. Identical inputs render identical text.

    """
    return _CONFIG_TEMPLATE % {
        "slug": slug,
        "repositories": msgspec.json.encode(list(repositories)).decode("utf-8"),
        "pattern": match_pattern or DEFAULT_MATCH_PATTERN,
        "group": GROUP_NAME,
    }

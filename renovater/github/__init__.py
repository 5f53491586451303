"""GitHub App installation discovery."""

from __future__ import annotations

from .directory import (
    AppTokenSigner,
    GitHubAppDirectory,
    GitHubAppDirectoryConfig,
    InstallationDirectory,
)
from .errors import GitHubAPIError, GitHubResponseShapeError, InstallationDirectoryError

__all__ = [
    "AppTokenSigner",
    "GitHubAPIError",
    "GitHubAppDirectory",
    "GitHubAppDirectoryConfig",
    "GitHubResponseShapeError",
    "InstallationDirectory",
    "InstallationDirectoryError",
]

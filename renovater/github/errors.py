"""GitHub installation directory errors."""

from __future__ import annotations


class InstallationDirectoryError(RuntimeError):
    """Base class for failures listing GitHub App installations."""


class GitHubAPIError(InstallationDirectoryError):
    """Raised when GitHub returns an error response or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, method: str, path: str, status_code: int) -> GitHubAPIError:
        """Return an error for non-2xx HTTP responses."""
        return cls(
            f"GitHub API {method} {path} returned HTTP {status_code}",
            status_code=status_code,
        )

    @classmethod
    def signing_failed(cls, app_id: int, exc: Exception) -> GitHubAPIError:
        """Return an error for an App JWT that could not be signed."""
        return cls(f"failed to sign GitHub App JWT for app {app_id}: {exc}")

    @classmethod
    def transport_error(cls, method: str, path: str, exc: Exception) -> GitHubAPIError:
        """Return an error for requests that never produced a response."""
        return cls(f"GitHub API {method} {path} failed: {exc}")


class GitHubResponseShapeError(InstallationDirectoryError):
    """Raised when GitHub responses are missing expected fields."""

    @classmethod
    def invalid(cls, path: str, detail: str) -> GitHubResponseShapeError:
        """Return an error for a response that does not decode."""
        return cls(f"Unexpected GitHub API response from {path}: {detail}")

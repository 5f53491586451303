"""GitHub App installation directory.

Lists the installations of a GitHub App together with an installation access
token and the repositories each installation can see. Signing the App JWT is
delegated to an :class:`AppTokenSigner` supplied by the caller.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import os
import typing as typ

import httpx
import msgspec

from renovater.models import Installation, RepositoryRef

from .errors import GitHubAPIError, GitHubResponseShapeError

DEFAULT_API_URL = "https://api.github.com"
API_URL_ENV = "RENOVATER_GITHUB_API_URL"


class InstallationDirectory(typ.Protocol):
    """Interface for discovering GitHub App installations."""

    async def get_installations(
        self, app_id: int, private_key: bytes
    ) -> tuple[list[Installation], str]:
        """Return installations in discovery order and the App slug.

        Raises
        ------
        InstallationDirectoryError
            If the directory cannot be queried.

        """
        ...


class AppTokenSigner(typ.Protocol):
    """Callable returning a short-lived App JWT for ``app_id``."""

    def __call__(self, app_id: int, private_key: bytes) -> str:
        """Sign and return the App JWT."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubAppDirectoryConfig:
    """Configuration for the GitHub REST API directory."""

    api_url: str = DEFAULT_API_URL
    timeout_s: float = 20.0
    user_agent: str = "renovater/0.1"
    page_size: int = 100

    @classmethod
    def from_env(cls) -> GitHubAppDirectoryConfig:
        """Build configuration, honouring ``RENOVATER_GITHUB_API_URL``."""
        api_url = os.environ.get(API_URL_ENV, "").strip() or DEFAULT_API_URL
        return cls(api_url=api_url.rstrip("/"))


class _App(msgspec.Struct):
    slug: str


class _InstallationItem(msgspec.Struct):
    id: int


class _AccessToken(msgspec.Struct):
    token: str


class _Repository(msgspec.Struct):
    full_name: str
    html_url: str


class _RepositoryPage(msgspec.Struct):
    repositories: list[_Repository]


class GitHubAppDirectory:
    """GitHub REST implementation of :class:`InstallationDirectory`."""

    def __init__(
        self,
        signer: AppTokenSigner,
        config: GitHubAppDirectoryConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the directory with a JWT signer and API configuration."""
        self._signer = signer
        self._config = config or GitHubAppDirectoryConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=self._config.api_url,
            timeout=self._config.timeout_s,
            headers={
                "User-Agent": self._config.user_agent,
                "Accept": "application/vnd.github+json",
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def get_installations(
        self, app_id: int, private_key: bytes
    ) -> tuple[list[Installation], str]:
        """Return every installation of the App and the App slug."""
        try:
            jwt = self._signer(app_id, private_key)
        except Exception as exc:  # noqa: BLE001 - signers are pluggable
            raise GitHubAPIError.signing_failed(app_id, exc) from exc
        app_auth = {"Authorization": f"Bearer {jwt}"}
        app = await self._request("GET", "/app", _App, headers=app_auth)

        installations: list[Installation] = []
        async for page in self._pages(
            "/app/installations", list[_InstallationItem], headers=app_auth
        ):
            for item in page:
                installations.append(await self._installation(item.id, app_auth))
        return installations, app.slug

    async def _installation(
        self, installation_id: int, app_auth: dict[str, str]
    ) -> Installation:
        access = await self._request(
            "POST",
            f"/app/installations/{installation_id}/access_tokens",
            _AccessToken,
            headers=app_auth,
        )
        token_auth = {"Authorization": f"token {access.token}"}
        repositories: list[RepositoryRef] = []
        async for page in self._pages(
            "/installation/repositories", _RepositoryPage, headers=token_auth
        ):
            repositories.extend(
                RepositoryRef(full_name=repo.full_name, html_url=repo.html_url)
                for repo in page.repositories
            )
        return Installation(
            id=installation_id,
            token=access.token,
            repositories=tuple(repositories),
        )

    async def _pages[T](
        self, path: str, page_type: type[T], *, headers: dict[str, str]
    ) -> cabc.AsyncIterator[T]:
        """Yield decoded pages until GitHub returns a short page."""
        page_number = 1
        while True:
            page = await self._request(
                "GET",
                path,
                page_type,
                headers=headers,
                params={"per_page": self._config.page_size, "page": page_number},
            )
            yield page
            items = page.repositories if isinstance(page, _RepositoryPage) else page
            if len(typ.cast("cabc.Sized", items)) < self._config.page_size:
                return
            page_number += 1

    async def _request[T](
        self,
        method: str,
        path: str,
        response_type: type[T],
        *,
        headers: dict[str, str],
        params: dict[str, int] | None = None,
    ) -> T:
        try:
            response = await self._client.request(
                method, path, headers=headers, params=params
            )
        except httpx.HTTPError as exc:
            raise GitHubAPIError.transport_error(method, path, exc) from exc
        if not response.is_success:
            raise GitHubAPIError.http_error(method, path, response.status_code)
        try:
            return msgspec.json.decode(response.content, type=response_type)
        except msgspec.DecodeError as exc:
            raise GitHubResponseShapeError.invalid(path, str(exc)) from exc

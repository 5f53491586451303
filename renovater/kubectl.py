"""``kubectl``-backed implementation of :class:`ResourceStore`.

Every call shells out to ``kubectl`` with JSON output and runs in a worker
thread so the event loop stays responsive. Server errors are mapped onto the
store error hierarchy by inspecting the reason kubectl prints on stderr.

Examples
--------
Point the store at a specific cluster:

    store = KubectlResourceStore(env={**os.environ, "KUBECONFIG": "/tmp/kc"})
    data = await store.get_secret("pipelines-as-code-secret", "build-service")

"""

from __future__ import annotations

import asyncio
import base64
import binascii
import subprocess
import typing as typ

import msgspec

from renovater.models import Component
from renovater.store import (
    ResourceConflictError,
    ResourceNotFoundError,
    ResourceStoreError,
    object_kind,
    object_name,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from renovater.store import Manifest

COMPONENT_RESOURCE = "components.appstudio.redhat.com"

_NOT_FOUND_REASONS = ("(NotFound)",)
_CONFLICT_REASONS = ("(AlreadyExists)", "(Conflict)")


class _Secret(msgspec.Struct):
    data: dict[str, str] = msgspec.field(default_factory=dict)


class _ComponentList(msgspec.Struct):
    items: list[Component] = msgspec.field(default_factory=list)


def _store_error(verb: str, kind: str, name: str, stderr: str) -> ResourceStoreError:
    detail = stderr.strip() or "kubectl exited with an error"
    if any(reason in stderr for reason in _NOT_FOUND_REASONS):
        return ResourceNotFoundError.request_failed(verb, kind, name, detail)
    if any(reason in stderr for reason in _CONFLICT_REASONS):
        return ResourceConflictError.request_failed(verb, kind, name, detail)
    return ResourceStoreError.request_failed(verb, kind, name, detail)


def _decode_secret_data(name: str, raw: bytes) -> dict[str, bytes]:
    try:
        secret = msgspec.json.decode(raw, type=_Secret)
        return {key: base64.b64decode(value) for key, value in secret.data.items()}
    except (msgspec.DecodeError, binascii.Error) as exc:
        raise ResourceStoreError.request_failed(
            "get", "Secret", name, f"undecodable secret data: {exc}"
        ) from exc


class KubectlResourceStore:
    """Cluster store that drives ``kubectl``."""

    def __init__(
        self,
        *,
        kubectl: str = "kubectl",
        env: dict[str, str] | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialise with the kubectl executable, environment and timeout."""
        self._kubectl = kubectl
        self._env = env
        self._timeout = timeout

    def _run(
        self,
        args: cabc.Sequence[str],
        *,
        target: tuple[str, str, str],
        stdin: bytes | None = None,
    ) -> bytes:
        verb, kind, name = target
        try:
            result = subprocess.run(  # noqa: S603 - fixed kubectl argv, manifests generated internally
                [self._kubectl, *args],
                input=stdin,
                capture_output=True,
                check=False,
                env=self._env,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise ResourceStoreError.request_failed(verb, kind, name, str(exc)) from exc
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace")
            raise _store_error(verb, kind, name, stderr)
        return result.stdout

    async def _kubectl_async(
        self,
        args: cabc.Sequence[str],
        *,
        target: tuple[str, str, str],
        stdin: bytes | None = None,
    ) -> bytes:
        """Run kubectl without blocking the event loop."""
        return await asyncio.to_thread(self._run, args, target=target, stdin=stdin)

    async def get_secret(self, name: str, namespace: str) -> dict[str, bytes]:
        """Return the base64-decoded data of a Secret."""
        raw = await self._kubectl_async(
            ["get", "secret", name, f"--namespace={namespace}", "-o", "json"],
            target=("get", "Secret", name),
        )
        return _decode_secret_data(name, raw)

    async def get_object(
        self, kind: str, name: str, namespace: str
    ) -> Manifest | None:
        """Return an object manifest, or ``None`` when it does not exist."""
        raw = await self._kubectl_async(
            [
                "get",
                kind,
                name,
                f"--namespace={namespace}",
                "--ignore-not-found",
                "-o",
                "json",
            ],
            target=("get", kind, name),
        )
        if not raw.strip():
            return None
        return self._decode_manifest(raw, ("get", kind, name))

    async def list_components(self) -> list[Component]:
        """Return Components from every namespace."""
        target = ("list", COMPONENT_RESOURCE, "")
        raw = await self._kubectl_async(
            ["get", COMPONENT_RESOURCE, "--all-namespaces", "-o", "json"],
            target=target,
        )
        try:
            return msgspec.json.decode(raw, type=_ComponentList).items
        except msgspec.DecodeError as exc:
            raise ResourceStoreError.request_failed(*target, str(exc)) from exc

    async def create(self, manifest: Manifest) -> Manifest:
        """Create ``manifest`` and return the stored object."""
        return await self._apply("create", manifest)

    async def update(self, manifest: Manifest) -> Manifest:
        """Replace the stored object with ``manifest``."""
        return await self._apply("replace", manifest)

    async def _apply(self, verb: str, manifest: Manifest) -> Manifest:
        target = (verb, object_kind(manifest), object_name(manifest))
        raw = await self._kubectl_async(
            [verb, "-f", "-", "-o", "json"],
            target=target,
            stdin=msgspec.json.encode(manifest),
        )
        return self._decode_manifest(raw, target)

    @staticmethod
    def _decode_manifest(raw: bytes, target: tuple[str, str, str]) -> Manifest:
        try:
            return msgspec.json.decode(raw, type=dict[str, typ.Any])
        except msgspec.DecodeError as exc:
            raise ResourceStoreError.request_failed(*target, str(exc)) from exc

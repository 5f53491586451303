"""Cluster resource store interface used by the renovater.

The store is the only way the controller touches the cluster: it reads the
Pipelines as Code secret and tracked components, and it creates and updates
the Secret, ConfigMap and Job of each Renovate batch. Objects are exchanged as
plain manifest dictionaries.
"""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from renovater.models import Component

    type Manifest = dict[str, typ.Any]


class ResourceStoreError(RuntimeError):
    """Raised when the cluster store rejects or fails a request."""

    def __init__(self, message: str, *, kind: str = "", name: str = "") -> None:
        """Initialise with a message and the object the request targeted."""
        self.kind = kind
        self.name = name
        super().__init__(message)

    @classmethod
    def request_failed(cls, verb: str, kind: str, name: str, detail: str) -> typ.Self:
        """Return an error for a failed ``verb`` on ``kind/name``."""
        target = f"{kind}/{name}" if name else kind
        return cls(f"{verb} {target} failed: {detail}", kind=kind, name=name)


class ResourceNotFoundError(ResourceStoreError):
    """Raised when the requested object does not exist."""


class ResourceConflictError(ResourceStoreError):
    """Raised on name collisions or stale resource versions."""


class ResourceStore(typ.Protocol):
    """Interface for reading and writing cluster objects."""

    async def get_secret(self, name: str, namespace: str) -> dict[str, bytes]:
        """Return the decoded data of a Secret.

        Raises
        ------
        ResourceNotFoundError
            If the Secret does not exist.

        """
        ...

    async def get_object(
        self, kind: str, name: str, namespace: str
    ) -> Manifest | None:
        """Return an object manifest, or ``None`` when it does not exist."""
        ...

    async def list_components(self) -> list[Component]:
        """Return every tracked Component across namespaces."""
        ...

    async def create(self, manifest: Manifest) -> Manifest:
        """Create an object and return it as stored (with ``metadata.uid``)."""
        ...

    async def update(self, manifest: Manifest) -> Manifest:
        """Replace an existing object and return it as stored."""
        ...


def object_kind(manifest: Manifest) -> str:
    """Return the ``kind`` of ``manifest`` or an empty string."""
    return str(manifest.get("kind", ""))


def object_name(manifest: Manifest) -> str:
    """Return ``metadata.name`` of ``manifest`` or an empty string."""
    return str(manifest.get("metadata", {}).get("name", ""))

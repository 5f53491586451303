"""Create a Renovate batch in the cluster and tie its objects to the Job.

Objects are created Secret first, ConfigMap second and Job last, because the
Job references both by name. The Secret and ConfigMap are then made children
of the Job so the cluster garbage collector removes them together with it once
``ttlSecondsAfterFinished`` elapses.

The owner reference needs the Job ``uid``, which only exists once the Job is
created, so linking is a second update per child. Between creation and
linking the children are unowned; a crash in that window leaves orphans that
this controller does not clean up, and a linking failure does not roll back
the created objects.
"""

from __future__ import annotations

import typing as typ

from renovater.logging import get_logger, log_info
from renovater.store import object_kind, object_name

if typ.TYPE_CHECKING:
    from renovater.artifacts import RenovateJobArtifact
    from renovater.store import Manifest, ResourceStore

logger = get_logger(__name__)


class OwnershipError(RuntimeError):
    """Raised when an owner reference cannot be built."""

    @classmethod
    def missing_uid(cls, kind: str, name: str) -> OwnershipError:
        """Return an error for an owner that has not been created yet."""
        return cls(f"{kind}/{name} has no uid; create it before using it as owner")


def owner_reference(owner: Manifest) -> dict[str, str]:
    """Return an ``ownerReferences`` entry pointing at ``owner``.

    Raises
    ------
    OwnershipError
        If ``owner`` has no ``metadata.uid``.

    """
    kind = object_kind(owner)
    name = object_name(owner)
    uid = owner.get("metadata", {}).get("uid")
    if not uid:
        raise OwnershipError.missing_uid(kind, name)
    return {
        "apiVersion": str(owner.get("apiVersion", "")),
        "kind": kind,
        "name": name,
        "uid": str(uid),
    }


def set_owner_reference(owner: Manifest, obj: Manifest) -> Manifest:
    """Add or refresh the reference to ``owner`` in ``obj`` and return ``obj``.

    An existing reference to the same ``apiVersion`` group and ``kind`` and
    ``name`` is replaced instead of duplicated.
    """
    reference = owner_reference(owner)
    metadata = obj.setdefault("metadata", {})
    references: list[dict[str, typ.Any]] = [
        existing
        for existing in metadata.get("ownerReferences", [])
        if not _refers_to_same_owner(existing, reference)
    ]
    references.append(reference)
    metadata["ownerReferences"] = references
    return obj


def _api_group(api_version: str) -> str:
    return api_version.rpartition("/")[0]


def _refers_to_same_owner(existing: dict[str, typ.Any], new: dict[str, str]) -> bool:
    return (
        _api_group(str(existing.get("apiVersion", ""))) == _api_group(new["apiVersion"])
        and existing.get("kind") == new["kind"]
        and existing.get("name") == new["name"]
    )


async def link_owned_objects(
    store: ResourceStore, owner: Manifest, *children: Manifest
) -> list[Manifest]:
    """Make ``owner`` the owner of each child, updating them one at a time."""
    updated: list[Manifest] = []
    for child in children:
        set_owner_reference(owner, child)
        updated.append(await store.update(child))
    return updated


async def launch_renovate_job(
    store: ResourceStore, artifact: RenovateJobArtifact
) -> Manifest:
    """Create the batch objects and link the Secret and ConfigMap to the Job.

    Returns
    -------
    Manifest
        The created Job as returned by the store.

    Raises
    ------
    ResourceStoreError
        If any create or update call fails. Objects created before the failure
        are left in place.
    OwnershipError
        If the store returned a Job without a uid.

    """
    secret = await store.create(artifact.secret)
    config_map = await store.create(artifact.config_map)
    job = await store.create(artifact.job)
    log_info(logger, "Job %s triggered", object_name(job) or artifact.name)

    await link_owned_objects(store, job, secret, config_map)
    return job

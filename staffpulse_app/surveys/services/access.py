"""
Location access resolution for organization admins.

- Full access admins: every location of their organization
- Restricted admins: assigned locations + all descendants

Descendants are found with an explicit frontier and a visited set, so a
malformed (cyclic) parent chain terminates instead of looping.
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
import logging

from ..errors import NotFound
from ..models import Location, OrganizationAdmin

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessScope:
    """Locations an admin may see."""

    admin_id: int
    organization_id: int
    is_full_access: bool
    location_ids: frozenset = field(default_factory=frozenset)

    def __contains__(self, location_id) -> bool:
        return location_id in self.location_ids


def build_child_map(edges: Iterable[tuple]) -> dict:
    """Turn (location_id, parent_id) pairs into parent_id -> [child ids]."""
    children = defaultdict(list)
    for location_id, parent_id in edges:
        if parent_id is not None:
            children[parent_id].append(location_id)
    return dict(children)


def descendant_location_ids(parent_ids: Iterable, child_map: Mapping) -> set:
    """
    Return every location below ``parent_ids``, the parents themselves excluded.

    Each node is expanded at most once, so the walk is bounded by the number
    of distinct locations whatever the shape of ``child_map``.
    """
    visited = set(parent_ids)
    frontier = deque(visited)
    descendants = set()

    while frontier:
        current = frontier.popleft()
        for child_id in child_map.get(current, ()):
            if child_id in visited:
                continue
            visited.add(child_id)
            descendants.add(child_id)
            frontier.append(child_id)

    return descendants


def resolve_from_snapshot(
    is_full_access: bool,
    assigned_ids: Iterable,
    organization_edges: Iterable[tuple],
) -> set:
    """
    Pure form of the resolver.

    ``organization_edges`` holds (location_id, parent_id) for every location in
    the admin's organization.
    """
    edges = list(organization_edges)
    if is_full_access:
        return {location_id for location_id, _ in edges}

    assigned = set(assigned_ids)
    child_map = build_child_map(edges)
    return assigned | descendant_location_ids(assigned, child_map)


def _get_admin(admin_id) -> OrganizationAdmin:
    try:
        return OrganizationAdmin.objects.get(pk=admin_id)
    except OrganizationAdmin.DoesNotExist:
        raise NotFound(f"Admin {admin_id} not found")


def _organization_edges(organization_id) -> list[tuple]:
    return list(
        Location.objects.filter(organization_id=organization_id).values_list(
            "id", "parent_id"
        )
    )


def resolve_accessible(admin_id) -> AccessScope:
    """
    Resolve the locations visible to an admin.

    Raises:
        NotFound: If the admin does not exist
    """
    admin = _get_admin(admin_id)
    edges = _organization_edges(admin.organization_id)

    if admin.is_full_access:
        location_ids = resolve_from_snapshot(True, (), edges)
    else:
        assigned_ids = list(admin.assignments.values_list("location_id", flat=True))
        location_ids = resolve_from_snapshot(False, assigned_ids, edges)

    logger.debug(
        f"Resolved {len(location_ids)} locations for admin_id={admin.pk} "
        f"(full_access={admin.is_full_access})"
    )

    return AccessScope(
        admin_id=admin.pk,
        organization_id=admin.organization_id,
        is_full_access=admin.is_full_access,
        location_ids=frozenset(location_ids),
    )


def resolve_accessible_ids(admin_id) -> set:
    return set(resolve_accessible(admin_id).location_ids)


def has_access(admin_id, location_id) -> bool:
    """Check if an admin may see a location."""
    admin = _get_admin(admin_id)
    if admin.is_full_access:
        return Location.objects.filter(
            pk=location_id, organization_id=admin.organization_id
        ).exists()
    return location_id in resolve_accessible(admin.pk)


def get_descendant_ids(location_id) -> set:
    """All locations below ``location_id`` within its organization."""
    try:
        location = Location.objects.get(pk=location_id)
    except Location.DoesNotExist:
        raise NotFound(f"Location {location_id} not found")
    child_map = build_child_map(_organization_edges(location.organization_id))
    return descendant_location_ids([location.pk], child_map)

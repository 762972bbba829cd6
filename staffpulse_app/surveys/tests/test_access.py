"""
Tests for location access resolution.
"""

from django.contrib.auth import get_user_model
import pytest

from staffpulse_app.surveys.errors import NotFound
from staffpulse_app.surveys.models import (
    Industry,
    Location,
    LocationAssignment,
    Organization,
    OrganizationAdmin,
)
from staffpulse_app.surveys.services.access import (
    build_child_map,
    descendant_location_ids,
    get_descendant_ids,
    has_access,
    resolve_accessible,
    resolve_accessible_ids,
    resolve_from_snapshot,
)

User = get_user_model()


class TestSnapshotResolution:
    """Pure resolver over (location_id, parent_id) edges."""

    EDGES = [
        (1, None),  # area
        (2, 1),
        (3, 2),
        (4, None),  # second area
        (5, 4),
    ]

    def test_full_access_returns_every_location(self):
        assert resolve_from_snapshot(True, [], self.EDGES) == {1, 2, 3, 4, 5}

    def test_restricted_includes_descendants(self):
        assert resolve_from_snapshot(False, [1], self.EDGES) == {1, 2, 3}

    def test_restricted_leaf(self):
        assert resolve_from_snapshot(False, [5], self.EDGES) == {5}

    def test_no_assignments_is_empty(self):
        assert resolve_from_snapshot(False, [], self.EDGES) == set()

    def test_overlapping_assignments(self):
        assert resolve_from_snapshot(False, [1, 2, 5], self.EDGES) == {1, 2, 3, 5}

    def test_cycle_terminates(self):
        cyclic = [(1, 3), (2, 1), (3, 2), (4, 3)]

        result = resolve_from_snapshot(False, [1], cyclic)

        assert result == {1, 2, 3, 4}

    def test_self_parent_terminates(self):
        assert resolve_from_snapshot(False, [1], [(1, 1)]) == {1}

    def test_descendants_exclude_parents(self):
        child_map = build_child_map(self.EDGES)
        assert descendant_location_ids([1], child_map) == {2, 3}

    def test_deep_chain(self):
        edges = [(i, i - 1 if i else None) for i in range(5000)]
        assert len(resolve_from_snapshot(False, [0], edges)) == 5000


@pytest.fixture
def organization(db):
    industry = Industry.objects.create(code="food", name="Food service")
    return Organization.objects.create(name="Ramen Co", industry=industry)


@pytest.fixture
def tree(organization):
    """
    kanto
      shibuya
        shibuya-east
    kansai
      namba
    """
    kanto = Location.objects.create(organization=organization, name="Kanto")
    shibuya = Location.objects.create(organization=organization, name="Shibuya", parent=kanto)
    east = Location.objects.create(organization=organization, name="Shibuya East", parent=shibuya)
    kansai = Location.objects.create(organization=organization, name="Kansai")
    namba = Location.objects.create(organization=organization, name="Namba", parent=kansai)
    return {"kanto": kanto, "shibuya": shibuya, "east": east, "kansai": kansai, "namba": namba}


@pytest.fixture
def foreign_location(db):
    industry = Industry.objects.create(code="hotel", name="Hotel")
    org = Organization.objects.create(name="Other", industry=industry)
    return Location.objects.create(organization=org, name="Elsewhere")


def make_admin(organization, username, access_mode, assigned=()):
    user = User.objects.create_user(username=username, password="x")
    admin = OrganizationAdmin.objects.create(
        user=user, organization=organization, access_mode=access_mode
    )
    for location in assigned:
        LocationAssignment.objects.create(admin=admin, location=location)
    return admin


@pytest.mark.django_db
class TestResolveAccessible:
    def test_full_access(self, organization, tree, foreign_location):
        admin = make_admin(organization, "owner", OrganizationAdmin.AccessMode.FULL)

        scope = resolve_accessible(admin.pk)

        assert scope.is_full_access is True
        assert scope.location_ids == {loc.pk for loc in tree.values()}
        assert foreign_location.pk not in scope

    def test_restricted_admin(self, organization, tree):
        admin = make_admin(
            organization, "area", OrganizationAdmin.AccessMode.RESTRICTED, [tree["kanto"]]
        )

        ids = resolve_accessible_ids(admin.pk)

        assert ids == {tree["kanto"].pk, tree["shibuya"].pk, tree["east"].pk}

    def test_restricted_is_idempotent(self, organization, tree):
        admin = make_admin(
            organization, "area2", OrganizationAdmin.AccessMode.RESTRICTED, [tree["shibuya"]]
        )
        assert resolve_accessible_ids(admin.pk) == resolve_accessible_ids(admin.pk)

    def test_zero_assignments(self, organization, tree):
        admin = make_admin(organization, "none", OrganizationAdmin.AccessMode.RESTRICTED)
        assert resolve_accessible_ids(admin.pk) == set()

    def test_missing_admin(self, db):
        with pytest.raises(NotFound):
            resolve_accessible(999999)


@pytest.mark.django_db
class TestHasAccess:
    def test_full_access_own_org_only(self, organization, tree, foreign_location):
        admin = make_admin(organization, "owner2", OrganizationAdmin.AccessMode.FULL)

        assert has_access(admin.pk, tree["namba"].pk) is True
        assert has_access(admin.pk, foreign_location.pk) is False

    def test_restricted(self, organization, tree):
        admin = make_admin(
            organization, "shop", OrganizationAdmin.AccessMode.RESTRICTED, [tree["shibuya"]]
        )

        assert has_access(admin.pk, tree["east"].pk) is True
        assert has_access(admin.pk, tree["kanto"].pk) is False
        assert has_access(admin.pk, tree["namba"].pk) is False

    def test_get_descendant_ids(self, tree):
        assert get_descendant_ids(tree["kanto"].pk) == {tree["shibuya"].pk, tree["east"].pk}

    def test_get_descendant_ids_missing(self, db):
        with pytest.raises(NotFound):
            get_descendant_ids(999999)

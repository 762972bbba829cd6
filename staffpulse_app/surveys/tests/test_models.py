"""
Tests for model-level invariants.
"""

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
import pytest

from staffpulse_app.surveys.categories import CATEGORY_TABLE
from staffpulse_app.surveys.errors import ValidationError
from staffpulse_app.surveys.models import (
    IdentityAccessLog,
    Industry,
    Location,
    Organization,
    Question,
    SurveyResponse,
)

User = get_user_model()


@pytest.fixture
def organization(db):
    industry = Industry.objects.create(code="retail", name="Retail")
    return Organization.objects.create(name="Acme", industry=industry)


@pytest.mark.django_db
class TestLocation:
    def test_cycle_rejected(self, organization):
        a = Location.objects.create(organization=organization, name="A")
        b = Location.objects.create(organization=organization, name="B", parent=a)

        a.parent = b
        with pytest.raises(ValidationError):
            a.clean()

    def test_self_parent_rejected(self, organization):
        a = Location.objects.create(organization=organization, name="A")
        a.parent = a
        with pytest.raises(ValidationError):
            a.clean()

    def test_cross_organization_parent_rejected(self, organization):
        industry = Industry.objects.create(code="other", name="Other")
        other = Organization.objects.create(name="Other", industry=industry)
        foreign = Location.objects.create(organization=other, name="X")

        child = Location(organization=organization, name="Child", parent=foreign)
        with pytest.raises(ValidationError):
            child.clean()

    def test_ancestors_survive_cycles(self, organization):
        a = Location.objects.create(organization=organization, name="A")
        b = Location.objects.create(organization=organization, name="B", parent=a)
        # Bypass clean() to build an invalid chain
        Location.objects.filter(pk=a.pk).update(parent=b)
        b.refresh_from_db()

        assert [loc.pk for loc in b.ancestors()] == [a.pk]


@pytest.mark.django_db
class TestSurveyResponse:
    def test_identity_requires_consent_constraint(self, organization):
        location = Location.objects.create(organization=organization, name="A")
        with pytest.raises(IntegrityError), transaction.atomic():
            SurveyResponse.objects.create(
                location=location, encrypted_identity="blob", identity_consent=False
            )

    def test_clean_rejects_identity_without_consent(self, organization):
        location = Location.objects.create(organization=organization, name="A")
        response = SurveyResponse(location=location, encrypted_identity="blob")
        with pytest.raises(ValidationError):
            response.clean()


@pytest.mark.django_db
class TestIdentityAccessLog:
    def test_append_only(self, organization):
        location = Location.objects.create(organization=organization, name="A")
        response = SurveyResponse.objects.create(location=location, answers={})
        user = User.objects.create_superuser(username="root", email="r@test.com", password="x")
        log = IdentityAccessLog.objects.create(
            response=response, revealer=user, reason="r", requested_by="hr"
        )

        log.reason = "changed"
        with pytest.raises(ValidationError):
            log.save()
        with pytest.raises(ValidationError):
            log.delete()
        assert IdentityAccessLog.objects.get().reason == "r"


@pytest.mark.django_db
class TestSeededQuestions:
    def test_driver_questions_seeded(self):
        keys = list(Question.objects.filter(is_driver=True).values_list("key", flat=True))
        assert keys == [f"q{i}" for i in range(1, 10)]

    def test_no_driver_question_is_reverse_scored(self):
        drivers = Question.objects.filter(is_driver=True)
        assert not drivers.filter(reverse_scored=True).exists()
        assert not any(definition.reverse_scored for definition in CATEGORY_TABLE.values())

    def test_staffing_question_is_positively_worded(self):
        q5 = Question.objects.get(key="q5")
        assert q5.text_ja == "人員は十分だと感じますか？"
        assert q5.category == "STAFFING_RESOURCES"

    def test_enps_item(self):
        enps = Question.objects.get(key="enps")
        assert (enps.scale_min, enps.scale_max, enps.is_driver) == (0, 10, False)

    def test_accepts(self):
        q1 = Question.objects.get(key="q1")
        assert q1.accepts(1) and q1.accepts(5)
        assert not q1.accepts(6)
        assert not q1.accepts(True)
        assert not q1.accepts(None)

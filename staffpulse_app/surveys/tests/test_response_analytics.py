"""
Tests for response analytics service.
"""

from datetime import date, datetime
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.utils import timezone
import pytest

from staffpulse_app.surveys.errors import AccessDenied, NotFound
from staffpulse_app.surveys.models import (
    Industry,
    Location,
    LocationAssignment,
    Organization,
    OrganizationAdmin,
    SurveyResponse,
)
from staffpulse_app.surveys.services.ranking import InsufficientData
from staffpulse_app.surveys.services.response_analytics import (
    LocationAnalytics,
    build_aggregate_stats,
    compute_location_analytics,
    compute_monthly_trend,
    compute_question_stats,
    highest_questions,
    lowest_questions,
)

User = get_user_model()


def question(key, order, scale_max=5):
    return SimpleNamespace(
        key=key,
        order=order,
        text=key,
        text_ja=key,
        category="X",
        scale_min=1,
        scale_max=scale_max,
        reverse_scored=False,
    )


def at(year, month, day=15):
    return timezone.make_aware(datetime(year, month, day, 12, 0))


class TestQuestionStats:
    def test_basic_statistics(self):
        responses = [{"q1": 1}, {"q1": 3}, {"q1": 5}, {"q1": 5}]

        [stat] = compute_question_stats(responses, [question("q1", 1)])

        assert stat.average == 3.5
        assert stat.median == 5  # upper middle
        assert stat.std_dev == pytest.approx(1.6583, rel=1e-3)
        assert stat.distribution == {1: 1, 2: 0, 3: 1, 4: 0, 5: 2}
        assert stat.response_count == 4
        assert stat.risk.level == "GOOD"

    def test_no_answers(self):
        [stat] = compute_question_stats([{"q2": 3}], [question("q1", 1)])

        assert stat.average is None
        assert stat.risk is None
        assert stat.distribution == {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}

    def test_out_of_range_ignored(self):
        [stat] = compute_question_stats([{"q1": 6}, {"q1": 2}], [question("q1", 1)])
        assert stat.response_count == 1

    def test_lowest_and_highest(self):
        questions = [question(f"q{i}", i) for i in range(1, 6)]
        responses = [{"q1": 1, "q2": 2, "q3": 3, "q4": 4, "q5": 5}]
        stats = compute_question_stats(responses, questions)

        assert [s.key for s in lowest_questions(stats)] == ["q1", "q2", "q3"]
        assert [s.key for s in highest_questions(stats, count=2)] == ["q5", "q4"]


class TestMonthlyTrend:
    def test_fills_gaps(self):
        responses = [
            SimpleNamespace(answers={"q1": 4}, submitted_at=at(2026, 1)),
            SimpleNamespace(answers={"q1": 2}, submitted_at=at(2026, 1)),
            SimpleNamespace(answers={"q1": 5}, submitted_at=at(2026, 3)),
        ]

        trend = compute_monthly_trend(responses)

        assert [p.month for p in trend] == ["2026-01", "2026-02", "2026-03"]
        assert [p.response_count for p in trend] == [2, 0, 1]
        assert [p.overall for p in trend] == [3.0, None, 5.0]

    def test_year_boundary(self):
        responses = [
            SimpleNamespace(answers={"q1": 3}, submitted_at=at(2025, 12)),
            SimpleNamespace(answers={"q1": 3}, submitted_at=at(2026, 1)),
        ]
        assert [p.month for p in compute_monthly_trend(responses)] == ["2025-12", "2026-01"]

    def test_plain_answers_have_no_trend(self):
        assert compute_monthly_trend([{"q1": 3}]) == []

    def test_aggregate_stats_keeps_driver_answers_only(self):
        stats = build_aggregate_stats(
            [{"q1": 3, "q2": 5, "comment": "x"}], questions=[question("q1", 1)]
        )

        assert stats.response_answers == [{"q1": 3, "q2": 5}]
        assert stats.overall == 4.0


@pytest.fixture
def organization(db):
    industry = Industry.objects.create(code="retail", name="Retail")
    return Organization.objects.create(name="Acme", industry=industry)


@pytest.fixture
def locations(organization):
    area = Location.objects.create(organization=organization, name="Kanto")
    shop = Location.objects.create(organization=organization, name="Shibuya", parent=area)
    other = Location.objects.create(organization=organization, name="Osaka")
    return {"area": area, "shop": shop, "other": other}


def make_admin(organization, username, access_mode, assigned=()):
    user = User.objects.create_user(username=username, password="x")
    admin = OrganizationAdmin.objects.create(
        user=user, organization=organization, access_mode=access_mode
    )
    for location in assigned:
        LocationAssignment.objects.create(admin=admin, location=location)
    return admin


def add_responses(location, count, value=4, enps=9):
    for _ in range(count):
        SurveyResponse.objects.create(
            location=location,
            answers={f"q{i}": value for i in range(1, 10)},
            enps_score=enps,
        )


@pytest.mark.django_db
class TestComputeLocationAnalytics:
    def test_full_report(self, organization, locations):
        admin = make_admin(organization, "full", OrganizationAdmin.AccessMode.FULL)
        add_responses(locations["shop"], 4, value=4)
        add_responses(locations["other"], 3, value=2)

        report = compute_location_analytics(admin.pk, locations["shop"].pk)

        assert isinstance(report, LocationAnalytics)
        assert report.response_count == 4
        assert report.stats.overall == 4.0
        assert report.enps == 100
        assert len(report.stats.question_stats) == 9
        assert report.percentile.rank == 1
        assert report.percentile.total == 2
        assert isinstance(report.impact, InsufficientData)

    def test_insufficient_data(self, organization, locations):
        admin = make_admin(organization, "full2", OrganizationAdmin.AccessMode.FULL)
        add_responses(locations["shop"], 2)

        result = compute_location_analytics(admin.pk, locations["shop"].pk)

        assert result == InsufficientData(current=2, required=3)

    def test_include_children(self, organization, locations):
        admin = make_admin(
            organization,
            "area",
            OrganizationAdmin.AccessMode.RESTRICTED,
            assigned=[locations["area"]],
        )
        add_responses(locations["area"], 1, value=2)
        add_responses(locations["shop"], 2, value=4)

        report = compute_location_analytics(
            admin.pk, locations["area"].pk, include_children=True
        )

        assert report.response_count == 3
        assert report.include_children is True

    def test_restricted_admin_denied(self, organization, locations):
        admin = make_admin(
            organization,
            "shop",
            OrganizationAdmin.AccessMode.RESTRICTED,
            assigned=[locations["shop"]],
        )
        add_responses(locations["other"], 5)

        with pytest.raises(AccessDenied):
            compute_location_analytics(admin.pk, locations["other"].pk)

    def test_missing_location(self, organization, locations):
        admin = make_admin(organization, "full3", OrganizationAdmin.AccessMode.FULL)
        with pytest.raises(NotFound):
            compute_location_analytics(admin.pk, 999999)

    def test_date_window(self, organization, locations):
        admin = make_admin(organization, "full4", OrganizationAdmin.AccessMode.FULL)
        add_responses(locations["shop"], 3)
        SurveyResponse.objects.filter(location=locations["shop"]).update(
            submitted_at=at(2025, 6)
        )
        add_responses(locations["shop"], 3, value=2)

        result = compute_location_analytics(
            admin.pk, locations["shop"].pk, start=date(2025, 6, 1), end=date(2025, 6, 30)
        )

        assert result.response_count == 3
        assert result.stats.overall == 4.0

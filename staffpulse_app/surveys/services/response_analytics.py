"""
Response analytics service for location reports.

Computes per-question statistics, monthly trends and the aggregate view that
pattern detection runs over. Only numeric answers are read here; free text
and identities never leave the ingestion/escrow paths.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
import logging
import math
from typing import Any

from django.conf import settings
from django.utils import timezone

from ..categories import DRIVER_QUESTION_KEYS
from ..errors import NotFound
from ..models import Location, Question, SurveyResponse
from ..permissions import require_location_access
from .access import get_descendant_ids, resolve_accessible_ids
from .patterns import detect_patterns
from .ranking import (
    ImpactResult,
    InsufficientData,
    RankResult,
    build_peer_scores,
    compute_impact,
    rank_entity,
)
from .scoring import (
    RiskInfo,
    all_category_scores,
    calculate_enps,
    category_risk_level,
    confidence_level,
    is_valid_answer,
    overall_score,
)

logger = logging.getLogger(__name__)

TOP_QUESTION_COUNT = 3


@dataclass
class QuestionStat:
    """Statistics for a single question."""

    key: str
    order: int
    text: str
    text_ja: str
    category: str
    average: float | None
    median: float | None
    std_dev: float | None
    response_count: int
    distribution: dict[int, int] = field(default_factory=dict)
    risk: RiskInfo | None = None


@dataclass
class MonthlyTrendPoint:
    month: str  # YYYY-MM
    response_count: int
    overall: float | None


@dataclass
class AggregateStats:
    """Everything pattern rules are allowed to look at."""

    response_count: int
    overall: float | None
    category_scores: dict[str, float | None] = field(default_factory=dict)
    question_stats: list[QuestionStat] = field(default_factory=list)
    # Driver answers per response, in submission order
    response_answers: list[dict[str, Any]] = field(default_factory=list)
    monthly_trend: list[MonthlyTrendPoint] = field(default_factory=list)


@dataclass
class LocationAnalytics:
    location_id: int
    location_name: str
    include_children: bool
    response_count: int
    stats: AggregateStats
    enps: int | None
    confidence: dict[str, str]
    lowest_questions: list[QuestionStat] = field(default_factory=list)
    highest_questions: list[QuestionStat] = field(default_factory=list)
    impact: ImpactResult | InsufficientData | None = None
    patterns: list = field(default_factory=list)
    percentile: RankResult | None = None


def _answers_of(response) -> dict:
    if isinstance(response, dict):
        return response
    return response.answers or {}


def compute_question_stats(responses, questions) -> list[QuestionStat]:
    """
    Mean, median, population standard deviation and answer distribution.

    ``questions`` are Question rows (or anything with the same attributes).
    Median picks the upper middle value for even-sized samples.
    """
    responses = list(responses)
    stats = []

    for question in questions:
        scores = []
        for response in responses:
            value = _answers_of(response).get(question.key)
            if is_valid_answer(value, question.scale_max, question.scale_min):
                scores.append(value)

        distribution = {
            point: 0 for point in range(question.scale_min, question.scale_max + 1)
        }
        if not scores:
            stats.append(
                QuestionStat(
                    key=question.key,
                    order=question.order,
                    text=question.text,
                    text_ja=question.text_ja,
                    category=question.category,
                    average=None,
                    median=None,
                    std_dev=None,
                    response_count=0,
                    distribution=distribution,
                )
            )
            continue

        average = sum(scores) / len(scores)
        ordered = sorted(scores)
        counts = Counter(scores)
        for point in distribution:
            distribution[point] = counts.get(point, 0)
        std_dev = math.sqrt(sum((s - average) ** 2 for s in scores) / len(scores))

        stats.append(
            QuestionStat(
                key=question.key,
                order=question.order,
                text=question.text,
                text_ja=question.text_ja,
                category=question.category,
                average=average,
                median=ordered[len(ordered) // 2],
                std_dev=std_dev,
                response_count=len(scores),
                distribution=distribution,
                risk=category_risk_level(average, question.reverse_scored),
            )
        )

    return stats


def lowest_questions(stats: list[QuestionStat], count: int = TOP_QUESTION_COUNT):
    scored = [s for s in stats if s.average is not None]
    return sorted(scored, key=lambda s: (s.average, s.order))[:count]


def highest_questions(stats: list[QuestionStat], count: int = TOP_QUESTION_COUNT):
    scored = [s for s in stats if s.average is not None]
    return sorted(scored, key=lambda s: (-s.average, s.order))[:count]


def _month_key(value) -> tuple[int, int]:
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return value.year, value.month


def _next_month(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def compute_monthly_trend(responses) -> list[MonthlyTrendPoint]:
    """
    Overall score per calendar month, oldest first.

    Months without responses between the first and last one are filled in
    with a count of 0 and no score, so gaps stay visible.
    """
    buckets: dict[tuple[int, int], list] = {}
    for response in responses:
        submitted_at = getattr(response, "submitted_at", None)
        if submitted_at is None:
            continue
        buckets.setdefault(_month_key(submitted_at), []).append(response)

    if not buckets:
        return []

    trend = []
    current, last = min(buckets), max(buckets)
    while current <= last:
        bucket = buckets.get(current, [])
        trend.append(
            MonthlyTrendPoint(
                month=f"{current[0]:04d}-{current[1]:02d}",
                response_count=len(bucket),
                overall=overall_score(bucket),
            )
        )
        current = _next_month(*current)
    return trend


def build_aggregate_stats(responses, questions=None) -> AggregateStats:
    responses = list(responses)
    if questions is None:
        questions = Question.objects.filter(is_driver=True).order_by("order")

    return AggregateStats(
        response_count=len(responses),
        overall=overall_score(responses),
        category_scores=all_category_scores(responses),
        question_stats=compute_question_stats(responses, questions),
        response_answers=[
            {
                key: _answers_of(r)[key]
                for key in DRIVER_QUESTION_KEYS
                if key in _answers_of(r)
            }
            for r in responses
        ],
        monthly_trend=compute_monthly_trend(responses),
    )


def _filter_window(queryset, start: date | None, end: date | None):
    if start:
        queryset = queryset.filter(submitted_at__date__gte=start)
    if end:
        queryset = queryset.filter(submitted_at__date__lte=end)
    return queryset


def _location_percentile(location, start, end) -> RankResult | None:
    """Rank the location among its organization's active locations."""
    min_responses = settings.PERCENTILE_MIN_RESPONSES
    rows = _filter_window(
        SurveyResponse.objects.filter(
            location__organization_id=location.organization_id,
            location__status=Location.Status.ACTIVE,
        ),
        start,
        end,
    ).only("location_id", "answers", "enps_score")

    by_location: dict[int, list] = {}
    for row in rows:
        by_location.setdefault(row.location_id, []).append(row)

    peers = [
        build_peer_scores(location_id, location_rows)
        for location_id, location_rows in by_location.items()
        if len(location_rows) >= min_responses
    ]
    return rank_entity(peers, location.pk)


def compute_location_analytics(
    admin_id,
    location_id,
    include_children: bool = False,
    start: date | None = None,
    end: date | None = None,
) -> LocationAnalytics | InsufficientData:
    """
    Build the analytics report for one location.

    Args:
        admin_id: OrganizationAdmin requesting the report
        location_id: Location to report on
        include_children: Also include every location below it
        start: Only responses submitted on or after this date
        end: Only responses submitted on or before this date

    Raises:
        NotFound: If the location or admin does not exist
        AccessDenied: If the admin may not see the location
    """
    try:
        location = Location.objects.get(pk=location_id)
    except Location.DoesNotExist:
        raise NotFound(f"Location {location_id} not found")

    require_location_access(admin_id, location.pk)

    location_ids = {location.pk}
    if include_children:
        location_ids |= get_descendant_ids(location.pk)
        location_ids &= resolve_accessible_ids(admin_id)

    responses = list(
        _filter_window(
            SurveyResponse.objects.filter(location_id__in=location_ids), start, end
        ).order_by("submitted_at")
    )

    min_responses = settings.ANALYTICS_MIN_RESPONSES
    if len(responses) < min_responses:
        logger.info(
            f"Analytics skipped for location_id={location.pk}: "
            f"{len(responses)}/{min_responses} responses"
        )
        return InsufficientData(current=len(responses), required=min_responses)

    stats = build_aggregate_stats(responses)

    return LocationAnalytics(
        location_id=location.pk,
        location_name=location.name,
        include_children=include_children,
        response_count=len(responses),
        stats=stats,
        enps=calculate_enps(responses).score,
        confidence=confidence_level(len(responses)),
        lowest_questions=lowest_questions(stats.question_stats),
        highest_questions=highest_questions(stats.question_stats),
        impact=compute_impact(responses),
        patterns=detect_patterns(stats),
        percentile=_location_percentile(location, start, end),
    )

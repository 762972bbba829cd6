"""
Response aggregation and scoring.

Turns already access-filtered responses into category scores, an overall
score, eNPS and risk classifications. Nothing here touches the database or
re-checks permissions.

Scores are ``float | None`` throughout: ``None`` means "no valid data" and is
carried through every step instead of being coerced to 0 or NaN.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
import math
from typing import Any

from ..categories import (
    CATEGORY_TABLE,
    DRIVER_QUESTION_KEYS,
    CategoryDefinition,
    category_for_question,
    get_category,
)

ENPS_MIN = 0
ENPS_MAX = 10
PROMOTER_MIN = 9
PASSIVE_MIN = 7

NO_DATA = "NO_DATA"


def round_half_up(value: float) -> int:
    """Round halves upward (12.5 -> 13, -12.5 -> -12); round() would give 12."""
    return int(math.floor(value + 0.5))


def map_score(score: float | None, fn: Callable[[float], Any]) -> Any | None:
    """Apply ``fn`` to a score, passing ``None`` straight through."""
    if score is None:
        return None
    return fn(score)


def _mean(values: list[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def _answers_of(item) -> Mapping:
    """Accept either an answers mapping or a record with an ``answers`` attribute."""
    if isinstance(item, Mapping):
        return item
    return getattr(item, "answers", None) or {}


def is_valid_answer(value, scale_max: int, scale_min: int = 1) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return scale_min <= value <= scale_max


def _scale_for_question(question_key: str) -> int:
    definition = category_for_question(question_key)
    return definition.scale_max if definition else 5


def valid_values(responses: Iterable, question_keys: Iterable[str]) -> list[float]:
    """Collect in-range answers for ``question_keys`` across all responses."""
    keys = list(question_keys)
    scales = {key: _scale_for_question(key) for key in keys}
    values = []
    for response in responses:
        answers = _answers_of(response)
        for key in keys:
            value = answers.get(key)
            if is_valid_answer(value, scales[key]):
                values.append(value)
    return values


# ============================================
# Category / overall scores
# ============================================


def category_score(
    responses: Iterable, category: str | CategoryDefinition
) -> float | None:
    """
    Mean of all valid answers for the category's questions.

    Returns the raw average; reverse-scored categories are not inverted here.
    """
    definition = (
        category if isinstance(category, CategoryDefinition) else get_category(category)
    )
    values = []
    for response in responses:
        answers = _answers_of(response)
        for key in definition.question_keys:
            value = answers.get(key)
            if is_valid_answer(value, definition.scale_max):
                values.append(value)
    return _mean(values)


def all_category_scores(responses: Iterable) -> dict[str, float | None]:
    responses = list(responses)
    return {key: category_score(responses, key) for key in CATEGORY_TABLE}


def overall_score(responses: Iterable) -> float | None:
    """Mean across every valid driver answer (eNPS excluded)."""
    return _mean(valid_values(responses, DRIVER_QUESTION_KEYS))


def retention_intent_score(responses: Iterable) -> float | None:
    return category_score(responses, "RETENTION_INTENT")


def category_sample_size(responses: Iterable, category: str) -> int:
    return len(valid_values(responses, get_category(category).question_keys))


# ============================================
# eNPS (Employee Net Promoter Score)
# ============================================


@dataclass
class EnpsResult:
    score: int | None
    promoters: int = 0  # 9-10
    passives: int = 0  # 7-8
    detractors: int = 0  # 0-6
    total: int = 0
    promoter_percentage: float | None = None
    detractor_percentage: float | None = None


def _enps_value_of(item):
    if isinstance(item, Mapping):
        return item.get("enps_score")
    if hasattr(item, "enps_score"):
        return item.enps_score
    return item


def calculate_enps(values: Iterable) -> EnpsResult:
    """
    eNPS = % promoters - % detractors, rounded (range -100..+100).

    ``values`` may be raw 0-10 numbers or records carrying ``enps_score``.
    Out-of-range and missing values are ignored.
    """
    promoters = passives = detractors = 0

    for item in values:
        value = _enps_value_of(item)
        if not is_valid_answer(value, ENPS_MAX, ENPS_MIN):
            continue
        if value >= PROMOTER_MIN:
            promoters += 1
        elif value >= PASSIVE_MIN:
            passives += 1
        else:
            detractors += 1

    total = promoters + passives + detractors
    if total == 0:
        return EnpsResult(score=None)

    promoter_percentage = promoters / total * 100
    detractor_percentage = detractors / total * 100

    return EnpsResult(
        score=round_half_up(promoter_percentage - detractor_percentage),
        promoters=promoters,
        passives=passives,
        detractors=detractors,
        total=total,
        promoter_percentage=promoter_percentage,
        detractor_percentage=detractor_percentage,
    )


def format_enps(score: int | None) -> str:
    if score is None:
        return "-"
    return f"+{score}" if score >= 0 else str(score)


# ============================================
# Risk classification
# ============================================


@dataclass(frozen=True)
class RiskInfo:
    level: str
    label: str
    label_en: str
    color: str


_NO_DATA_RISK = RiskInfo(NO_DATA, "データなし", "No data", "slate")


def overall_risk_level(score: float | None) -> RiskInfo:
    """Thresholds on the 1-5 overall score."""
    if score is None:
        return _NO_DATA_RISK
    if score <= 2.0:
        return RiskInfo("CRITICAL", "危険", "Critical", "red")
    if score <= 2.7:
        return RiskInfo("WARNING", "注意", "Warning", "orange")
    if score <= 3.2:
        return RiskInfo("CAUTION", "やや注意", "Caution", "yellow")
    if score <= 3.8:
        return RiskInfo("STABLE", "安定", "Stable", "green")
    return RiskInfo("EXCELLENT", "優良", "Excellent", "emerald")


def enps_risk_level(score: int | None) -> RiskInfo:
    if score is None:
        return _NO_DATA_RISK
    if score <= -30:
        return RiskInfo("CRITICAL", "危険", "Critical", "red")
    if score <= 0:
        return RiskInfo("WARNING", "注意", "Warning", "orange")
    if score <= 30:
        return RiskInfo("STABLE", "安定", "Stable", "green")
    return RiskInfo("EXCELLENT", "優良", "Excellent", "emerald")


def category_risk_level(score: float | None, reverse_scored: bool = False) -> RiskInfo:
    if score is None:
        return _NO_DATA_RISK

    if reverse_scored:
        # High raw average = high risk
        if score >= 4.0:
            return RiskInfo("NEEDS_IMPROVEMENT", "要改善", "Needs improvement", "red")
        if score >= 3.2:
            return RiskInfo(
                "ROOM_FOR_IMPROVEMENT", "改善余地あり", "Room for improvement", "yellow"
            )
        return RiskInfo("GOOD", "良好", "Good", "green")

    if score <= 2.5:
        return RiskInfo("NEEDS_IMPROVEMENT", "要改善", "Needs improvement", "red")
    if score <= 3.2:
        return RiskInfo(
            "ROOM_FOR_IMPROVEMENT", "改善余地あり", "Room for improvement", "yellow"
        )
    return RiskInfo("GOOD", "良好", "Good", "green")


def confidence_level(response_count: int) -> dict[str, str]:
    """How far a score can be trusted given the number of responses."""
    if response_count < 5:
        return {
            "level": "LOW",
            "label": "参考値",
            "description": "回答数が少ないため参考値です",
        }
    if response_count < 20:
        return {
            "level": "MEDIUM",
            "label": "中程度",
            "description": "回答数が増えるとより正確な結果が得られます",
        }
    return {
        "level": "HIGH",
        "label": "高信頼度",
        "description": "十分な回答数があります",
    }


# ============================================
# Benchmarks
# ============================================


@dataclass(frozen=True)
class BenchmarkComparison:
    difference: float | None
    is_positive: bool | None
    # "higher"/"lower" for normal categories, "better"/"worse" when reverse scored
    direction: str | None

    @property
    def label(self) -> str:
        if self.difference is None:
            return "-"
        words = {
            "higher": "高い",
            "lower": "低い",
            "better": "良い",
            "worse": "悪い",
        }
        return f"業界平均より {abs(self.difference):.1f} ポイント{words[self.direction]}"


def compare_to_benchmark(
    score: float | None, benchmark: float | None, reverse_scored: bool = False
) -> BenchmarkComparison:
    """
    Signed ``score - benchmark``.

    For reverse-scored categories a lower raw average is the better result, so
    a negative difference counts as positive.
    """
    if score is None or benchmark is None:
        return BenchmarkComparison(difference=None, is_positive=None, direction=None)

    diff = score - benchmark
    if reverse_scored:
        is_positive = diff <= 0
        direction = "better" if is_positive else "worse"
    else:
        is_positive = diff >= 0
        direction = "higher" if is_positive else "lower"

    return BenchmarkComparison(difference=diff, is_positive=is_positive, direction=direction)


def benchmark_map(benchmarks: Iterable) -> dict[str, float]:
    """
    Category -> benchmark average, plus ``overall`` as the mean of the driver
    categories. Rows outside the category table (eNPS) and reverse-scored
    categories do not contribute to ``overall``.
    """
    result: dict[str, float] = {}
    driver_values = []
    for benchmark in benchmarks:
        result[benchmark.category] = benchmark.avg_score
        definition = CATEGORY_TABLE.get(benchmark.category)
        if definition is not None and not definition.reverse_scored:
            driver_values.append(benchmark.avg_score)
    if driver_values:
        result["overall"] = sum(driver_values) / len(driver_values)
    return result


# ============================================
# Roll-up
# ============================================


@dataclass
class ScoreSummary:
    response_count: int
    overall: float | None
    categories: dict[str, float | None] = field(default_factory=dict)
    enps: EnpsResult = field(default_factory=lambda: EnpsResult(score=None))
    overall_risk: RiskInfo = _NO_DATA_RISK
    enps_risk: RiskInfo = _NO_DATA_RISK


def summarize_responses(responses: Iterable) -> ScoreSummary:
    """Score a set of response records (anything with answers + enps_score)."""
    responses = list(responses)
    overall = overall_score(responses)
    enps = calculate_enps(responses)
    return ScoreSummary(
        response_count=len(responses),
        overall=overall,
        categories=all_category_scores(responses),
        enps=enps,
        overall_risk=overall_risk_level(overall),
        enps_risk=enps_risk_level(enps.score),
    )

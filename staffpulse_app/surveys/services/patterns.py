"""
Pattern detection over aggregate response statistics.

Each rule is a pure function ``rule(stats, thresholds) -> Pattern | None``
evaluated independently. Add a rule by appending it to PATTERN_RULES.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
import math
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models

from ..categories import CATEGORY_TABLE, DRIVER_QUESTION_KEYS

if TYPE_CHECKING:
    from .response_analytics import AggregateStats


class Severity(models.TextChoices):
    INFO = "info", "Info"
    WARNING = "warning", "Warning"
    ERROR = "error", "Error"


@dataclass(frozen=True)
class Pattern:
    type: str
    severity: str
    title: str
    description: str
    metric: str


@dataclass(frozen=True)
class PatternThresholds:
    min_responses: int = 5
    outlier_sigma: float = 1.5
    volatility_std_dev: float = 0.5
    volatility_min_months: int = 3
    polarization_share: float = 0.6
    straight_line_share: float = 0.1
    category_std_dev: float = 1.2

    @classmethod
    def from_settings(cls) -> PatternThresholds:
        return cls(min_responses=settings.PATTERN_MIN_RESPONSES)


def _population_std_dev(values: list[float]) -> float:
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def _driver_values(answers: dict) -> list:
    return [
        answers[key]
        for key in DRIVER_QUESTION_KEYS
        if isinstance(answers.get(key), (int, float))
        and not isinstance(answers.get(key), bool)
    ]


def low_response_count(stats: AggregateStats, thresholds: PatternThresholds):
    if stats.response_count >= thresholds.min_responses:
        return None
    return Pattern(
        type="LOW_RESPONSE_COUNT",
        severity=Severity.INFO,
        title="回答数が少ない",
        description="回答数が少ないため、結果は参考値として扱ってください。",
        metric=f"{stats.response_count}件 (推奨: {thresholds.min_responses}件以上)",
    )


def low_outlier_question(stats: AggregateStats, thresholds: PatternThresholds):
    """A question scoring far below the other driver questions."""
    if stats.response_count < thresholds.min_responses:
        return None

    scored = [
        q
        for q in stats.question_stats
        if q.average is not None and q.key in DRIVER_QUESTION_KEYS
    ]
    if len(scored) < 3:
        return None

    averages = [q.average for q in scored]
    mean = sum(averages) / len(averages)
    sigma = _population_std_dev(averages)
    if sigma == 0:
        return None

    worst = min(scored, key=lambda q: (q.average, q.order))
    if worst.average >= mean - thresholds.outlier_sigma * sigma:
        return None

    return Pattern(
        type="LOW_OUTLIER_QUESTION",
        severity=Severity.WARNING,
        title=f"「{worst.text_ja or worst.text}」が突出して低い",
        description="他の設問と比べてこの設問だけが大きく低くなっています。重点的な確認が必要です。",
        metric=f"{worst.average:.2f} (平均 {mean:.2f}, -{(mean - worst.average) / sigma:.1f}σ)",
    )


def score_volatility(stats: AggregateStats, thresholds: PatternThresholds):
    monthly = [p.overall for p in stats.monthly_trend if p.overall is not None]
    if len(monthly) < thresholds.volatility_min_months:
        return None

    std_dev = _population_std_dev(monthly)
    if std_dev <= thresholds.volatility_std_dev:
        return None

    return Pattern(
        type="SCORE_VOLATILITY",
        severity=Severity.WARNING,
        title="スコアの変動が大きい",
        description="月ごとの総合スコアが大きく変動しています。職場環境の変化がないか確認してください。",
        metric=f"月次標準偏差: {std_dev:.2f}",
    )


def polarized(stats: AggregateStats, thresholds: PatternThresholds):
    if stats.response_count < thresholds.min_responses:
        return None

    scores = [v for answers in stats.response_answers for v in _driver_values(answers)]
    if not scores:
        return None

    share = sum(1 for s in scores if s in (1, 5)) / len(scores)
    if share <= thresholds.polarization_share:
        return None

    return Pattern(
        type="POLARIZED",
        severity=Severity.WARNING,
        title="意見の二極化",
        description="従業員の意見が大きく分かれています。チーム内に異なる経験をしているグループがある可能性があります。",
        metric=f"{share * 100:.0f}%が極端な回答",
    )


def low_engagement(stats: AggregateStats, thresholds: PatternThresholds):
    """Straight-lined responses: the same answer to every question."""
    if stats.response_count < thresholds.min_responses:
        return None

    straight_lined = 0
    for answers in stats.response_answers:
        values = _driver_values(answers)
        if len(values) >= 2 and len(set(values)) == 1:
            straight_lined += 1

    share = straight_lined / stats.response_count
    if share <= thresholds.straight_line_share:
        return None

    return Pattern(
        type="LOW_ENGAGEMENT",
        severity=Severity.INFO,
        title="低エンゲージメント回答の検出",
        description="全問同じ回答をしている回答者がいます。回答の信頼性に注意が必要です。",
        metric=f"{straight_lined}件 ({share * 100:.0f}%)",
    )


def high_variance(stats: AggregateStats, thresholds: PatternThresholds):
    """Reports the single category with the widest spread between respondents."""
    if stats.response_count < thresholds.min_responses:
        return None

    worst = None
    for key, definition in CATEGORY_TABLE.items():
        per_response = []
        for answers in stats.response_answers:
            values = [
                answers[q]
                for q in definition.question_keys
                if isinstance(answers.get(q), (int, float))
                and not isinstance(answers.get(q), bool)
            ]
            if values:
                per_response.append(sum(values) / len(values))

        if len(per_response) < thresholds.min_responses:
            continue
        std_dev = _population_std_dev(per_response)
        if std_dev > thresholds.category_std_dev and (worst is None or std_dev > worst[1]):
            worst = (definition, std_dev)

    if worst is None:
        return None

    definition, std_dev = worst
    return Pattern(
        type="HIGH_VARIANCE",
        severity=Severity.WARNING,
        title=f"{definition.label_ja}のばらつきが大きい",
        description="この領域で従業員間の経験に大きな差があります。特定のシフトや担当者による違いがある可能性があります。",
        metric=f"標準偏差: {std_dev:.2f}",
    )


PatternRule = Callable[["AggregateStats", PatternThresholds], "Pattern | None"]

PATTERN_RULES: tuple[PatternRule, ...] = (
    low_response_count,
    low_outlier_question,
    score_volatility,
    polarized,
    low_engagement,
    high_variance,
)


def detect_patterns(
    stats: AggregateStats,
    rules: Iterable[PatternRule] = PATTERN_RULES,
    thresholds: PatternThresholds | None = None,
) -> list[Pattern]:
    thresholds = thresholds or PatternThresholds.from_settings()
    findings = []
    for rule in rules:
        finding = rule(stats, thresholds)
        if finding is not None:
            findings.append(finding)
    return findings

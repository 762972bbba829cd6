"""
Peer ranking and category impact.

Peers are whatever population a report compares against (locations within
an organization, organizations within an industry). Each peer is reduced to
a PeerScores snapshot first; everything below is pure.

Ordering rule: score descending, ties broken by peer id ascending (compared
as text) so repeated runs always rank equal scores the same way.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from django.conf import settings

from ..categories import CATEGORY_TABLE
from .scoring import (
    all_category_scores,
    calculate_enps,
    category_sample_size,
    overall_score,
    round_half_up,
)


@dataclass(frozen=True)
class InsufficientData:
    """Not an error: too few responses to produce a meaningful number."""

    current: int
    required: int

    @property
    def message(self) -> str:
        return f"分析には最低{self.required}件の回答が必要です（現在{self.current}件）"


@dataclass
class PeerScores:
    peer_id: object
    overall: float | None
    categories: dict[str, float | None] = field(default_factory=dict)
    enps: int | None = None
    response_count: int = 0


@dataclass(frozen=True)
class RankResult:
    peer_id: object
    score: float
    rank: int
    total: int
    percentile: int


def build_peer_scores(peer_id, responses: Iterable) -> PeerScores:
    responses = list(responses)
    return PeerScores(
        peer_id=peer_id,
        overall=overall_score(responses),
        categories=all_category_scores(responses),
        enps=calculate_enps(responses).score,
        response_count=len(responses),
    )


def percentile_for(rank: int, total: int) -> int:
    """Share of the other peers ranked below; a lone peer is at 100."""
    if total <= 1:
        return 100
    return round_half_up((total - rank) / (total - 1) * 100)


def _rank_by(
    peers: Iterable[PeerScores], peer_id, score_of: Callable[[PeerScores], float | None]
) -> RankResult | None:
    scored = [(peer, score_of(peer)) for peer in peers]
    valid = [(peer, score) for peer, score in scored if score is not None]
    # Ties by id: natural order when every id has one type, else as text
    if len({type(peer.peer_id) for peer, _ in valid}) <= 1:
        valid.sort(key=lambda item: (-item[1], item[0].peer_id))
    else:
        valid.sort(key=lambda item: (-item[1], str(item[0].peer_id)))

    total = len(valid)
    for position, (peer, score) in enumerate(valid, start=1):
        if peer.peer_id == peer_id:
            return RankResult(
                peer_id=peer_id,
                score=score,
                rank=position,
                total=total,
                percentile=percentile_for(position, total),
            )
    # Peer has no score of its own
    return None


def rank_entity(peers: Iterable[PeerScores], peer_id) -> RankResult | None:
    """Rank ``peer_id`` by overall score among peers that have one."""
    return _rank_by(peers, peer_id, lambda peer: peer.overall)


def rank_category(peers: Iterable[PeerScores], peer_id, category: str) -> RankResult | None:
    return _rank_by(peers, peer_id, lambda peer: peer.categories.get(category))


def rank_enps(peers: Iterable[PeerScores], peer_id) -> RankResult | None:
    return _rank_by(peers, peer_id, lambda peer: peer.enps)


def rank_all_categories(
    peers: Iterable[PeerScores], peer_id
) -> dict[str, RankResult | None]:
    peers = list(peers)
    return {
        category: rank_category(peers, peer_id, category) for category in CATEGORY_TABLE
    }


# ============================================
# Impact
# ============================================


@dataclass(frozen=True)
class CategoryImpact:
    category: str
    label_ja: str
    score: float | None
    deviation: float
    sample_size: int
    weight: float


@dataclass
class ImpactResult:
    response_count: int
    overall: float | None
    impacts: list[CategoryImpact] = field(default_factory=list)

    @property
    def top(self) -> CategoryImpact | None:
        return self.impacts[0] if self.impacts else None

    @property
    def insight(self) -> str | None:
        top = self.top
        if top is None or top.weight == 0:
            return None
        return (
            f"この事業所では「{top.label_ja}」が総合満足度に最も強く影響しています。"
            "この領域の改善が全体スコア向上に最も効果的です。"
        )


def compute_impact(
    responses: Iterable, min_responses: int | None = None
) -> ImpactResult | InsufficientData:
    """
    Rank categories by how far they pull away from the overall score.

    weight = |category score - overall| * sample size, normalised so the
    weights sum to 1 (all 0 when nothing deviates). This is a contribution
    heuristic, not a statistical correlation.
    """
    responses = list(responses)
    if min_responses is None:
        min_responses = settings.IMPACT_MIN_RESPONSES
    if len(responses) < min_responses:
        return InsufficientData(current=len(responses), required=min_responses)

    overall = overall_score(responses)
    scores = all_category_scores(responses)

    raw = []
    for key, definition in CATEGORY_TABLE.items():
        score = scores[key]
        sample_size = category_sample_size(responses, key)
        if score is None or overall is None:
            deviation = 0.0
        else:
            deviation = abs(score - overall)
        raw.append((key, definition, score, deviation, sample_size, deviation * sample_size))

    total_magnitude = sum(item[-1] for item in raw)
    impacts = [
        CategoryImpact(
            category=key,
            label_ja=definition.label_ja,
            score=score,
            deviation=deviation,
            sample_size=sample_size,
            weight=magnitude / total_magnitude if total_magnitude else 0.0,
        )
        for key, definition, score, deviation, sample_size, magnitude in raw
    ]
    impacts.sort(key=lambda impact: (-impact.weight, impact.category))

    return ImpactResult(response_count=len(responses), overall=overall, impacts=impacts)

"""
Content-safety flagging for free-text answers.

The default classifier is a keyword matcher over Japanese and English terms.
It is advisory only: a flag marks a response for human follow-up and never
decides anything on its own. Swap the implementation with the
CONTENT_CLASSIFIER setting.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import lru_cache
import logging

from django.conf import settings
from django.db import models
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class FlagCategory(models.TextChoices):
    HARASSMENT = "harassment", "ハラスメント"
    SAFETY = "safety", "安全性"
    CRISIS = "crisis", "メンタルヘルス"
    DISCRIMINATION = "discrimination", "差別"


ALERT_KEYWORDS: dict[str, dict[str, tuple[str, ...]]] = {
    FlagCategory.HARASSMENT: {
        "ja": (
            "セクハラ",
            "パワハラ",
            "いじめ",
            "触られた",
            "嫌がらせ",
            "ハラスメント",
            "モラハラ",
            "性的",
            "わいせつ",
        ),
        "en": (
            "harassment",
            "bullying",
            "touched",
            "groped",
            "inappropriate",
            "sexual",
            "molest",
        ),
    },
    FlagCategory.SAFETY: {
        "ja": ("暴力", "殴られた", "蹴られた", "脅された", "怖い", "危険", "怪我", "事故", "違法"),
        "en": (
            "violence",
            "hit",
            "kicked",
            "threatened",
            "scared",
            "unsafe",
            "injury",
            "accident",
            "illegal",
        ),
    },
    FlagCategory.CRISIS: {
        "ja": ("死にたい", "自殺", "限界", "うつ", "消えたい", "辛い", "眠れない", "パニック"),
        "en": ("suicide", "kill myself", "end it", "die", "depression", "panic", "breakdown"),
    },
    FlagCategory.DISCRIMINATION: {
        "ja": ("差別", "人種", "国籍", "障害", "宗教", "偏見"),
        "en": ("discrimination", "racist", "xenophob", "disability", "prejudice", "bias"),
    },
}


@dataclass
class FlagResult:
    flagged: bool = False
    reasons: list[str] = field(default_factory=list)


class ContentClassifier:
    """Interface for free-text classifiers."""

    def classify(self, text: str | None) -> FlagResult:
        raise NotImplementedError


class KeywordContentClassifier(ContentClassifier):
    """Case-insensitive substring match; one hit per category is enough."""

    def __init__(self, keywords: dict | None = None):
        self.keywords = ALERT_KEYWORDS if keywords is None else keywords

    def classify(self, text: str | None) -> FlagResult:
        if not text:
            return FlagResult()

        lowered = text.lower()
        reasons = []
        for category, by_language in self.keywords.items():
            terms = [term for group in by_language.values() for term in group]
            if any(term.lower() in lowered for term in terms):
                reasons.append(str(category))

        return FlagResult(flagged=bool(reasons), reasons=reasons)


@lru_cache(maxsize=None)
def _load_classifier(path: str) -> ContentClassifier:
    return import_string(path)()


def get_content_classifier() -> ContentClassifier:
    return _load_classifier(settings.CONTENT_CLASSIFIER)


def flag_text(text: str | None) -> FlagResult:
    return get_content_classifier().classify(text)


def flag_multiple(texts: Iterable[str | None]) -> FlagResult:
    """Union of reasons across several fields, first occurrence order kept."""
    reasons: list[str] = []
    for text in texts:
        for reason in flag_text(text).reasons:
            if reason not in reasons:
                reasons.append(reason)
    if reasons:
        logger.info(f"Free text flagged for follow-up: {', '.join(reasons)}")
    return FlagResult(flagged=bool(reasons), reasons=reasons)


def flag_category_label(category: str) -> str:
    return FlagCategory(category).label

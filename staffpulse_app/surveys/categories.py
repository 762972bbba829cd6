"""Survey category table.

This module is the single source of truth for which questions feed which
category. Bump CATEGORY_TABLE_VERSION whenever the mapping changes so stored
reports can be traced back to the table that produced them.
"""

from dataclasses import dataclass

from django.core.exceptions import ValidationError

CATEGORY_TABLE_VERSION = "2026.1"


@dataclass(frozen=True)
class CategoryDefinition:
    """One driver dimension of the survey."""

    key: str
    label: str
    label_ja: str
    question_keys: tuple[str, ...]
    # High raw average means a worse outcome (e.g. "do you feel understaffed?")
    reverse_scored: bool = False
    scale_max: int = 5


# Driver questions feed the overall score. eNPS is stored separately on the
# response and is never part of this table.
DRIVER_QUESTION_KEYS = ("q1", "q2", "q3", "q4", "q5", "q6", "q7", "q8", "q9")

CATEGORY_TABLE: dict[str, CategoryDefinition] = {
    "MANAGER_LEADERSHIP": CategoryDefinition(
        key="MANAGER_LEADERSHIP",
        label="Manager & Leadership",
        label_ja="店長・リーダー",
        question_keys=("q1", "q2"),
    ),
    "SCHEDULE_HOURS": CategoryDefinition(
        key="SCHEDULE_HOURS",
        label="Schedule & Hours",
        label_ja="シフト・時間",
        question_keys=("q3",),
    ),
    "TEAMWORK": CategoryDefinition(
        key="TEAMWORK",
        label="Teamwork",
        label_ja="チームワーク",
        question_keys=("q4",),
    ),
    "STAFFING_RESOURCES": CategoryDefinition(
        key="STAFFING_RESOURCES",
        label="Staffing & Resources",
        label_ja="人員・体制",
        question_keys=("q5",),
    ),
    "RESPECT_RECOGNITION": CategoryDefinition(
        key="RESPECT_RECOGNITION",
        label="Respect & Recognition",
        label_ja="尊重・承認",
        question_keys=("q6",),
    ),
    "PAY_BENEFITS": CategoryDefinition(
        key="PAY_BENEFITS",
        label="Pay & Benefits",
        label_ja="給与・待遇",
        question_keys=("q7",),
    ),
    "WORK_ENVIRONMENT": CategoryDefinition(
        key="WORK_ENVIRONMENT",
        label="Work Environment",
        label_ja="職場環境",
        question_keys=("q8",),
    ),
    "RETENTION_INTENT": CategoryDefinition(
        key="RETENTION_INTENT",
        label="Retention Intent",
        label_ja="定着意向",
        question_keys=("q9",),
    ),
}


def get_category(key: str) -> CategoryDefinition:
    try:
        return CATEGORY_TABLE[key]
    except KeyError:
        raise ValidationError(f"Unknown category: {key}")


def category_for_question(question_key: str) -> CategoryDefinition | None:
    for definition in CATEGORY_TABLE.values():
        if question_key in definition.question_keys:
            return definition
    return None


def validate_category_table(
    table: dict[str, CategoryDefinition] | None = None,
    driver_keys: tuple[str, ...] | list[str] | None = None,
) -> None:
    """
    Check that every driver question maps to exactly one category.

    Raises ValidationError listing every problem found.
    """
    table = CATEGORY_TABLE if table is None else table
    driver_keys = DRIVER_QUESTION_KEYS if driver_keys is None else driver_keys

    errors = []
    owners: dict[str, list[str]] = {}

    for key, definition in table.items():
        if definition.key != key:
            errors.append(f"Category {key} is registered under key {definition.key}")
        if not definition.question_keys:
            errors.append(f"Category {key} has no questions")
        if definition.scale_max < 2:
            errors.append(f"Category {key} has an invalid scale_max")
        for question_key in definition.question_keys:
            owners.setdefault(question_key, []).append(key)

    for question_key, categories in sorted(owners.items()):
        if len(categories) > 1:
            errors.append(
                f"Question {question_key} maps to several categories: "
                f"{', '.join(categories)}"
            )
        if question_key not in driver_keys:
            errors.append(f"Question {question_key} is not a driver question")

    for question_key in driver_keys:
        if question_key not in owners:
            errors.append(f"Driver question {question_key} has no category")

    if errors:
        raise ValidationError(errors)

"""
Seed the standard question set.

q1-q9 are 1-5 driver questions whose keys match the category table in
staffpulse_app.surveys.categories. The 0-10 eNPS item is stored on the
response itself and is seeded here only so reports can show its wording.

Idempotent: existing questions are updated in place.
"""

import logging

from django.db import migrations

logger = logging.getLogger(__name__)

QUESTIONS = [
    {
        "key": "q1",
        "order": 1,
        "category": "MANAGER_LEADERSHIP",
        "text": "Is it easy to consult your manager when you are in trouble?",
        "text_ja": "困った時に店長に相談しやすいですか？",
    },
    {
        "key": "q2",
        "order": 2,
        "category": "MANAGER_LEADERSHIP",
        "text": "Does your manager treat staff fairly?",
        "text_ja": "店長はスタッフを公平に扱っていますか？",
    },
    {
        "key": "q3",
        "order": 3,
        "category": "SCHEDULE_HOURS",
        "text": "Are you able to work your preferred shifts?",
        "text_ja": "希望のシフトに入れていますか？",
    },
    {
        "key": "q4",
        "order": 4,
        "category": "TEAMWORK",
        "text": "Does the team help each other when it is busy?",
        "text_ja": "忙しい時、チームで助け合えていますか？",
    },
    {
        "key": "q5",
        "order": 5,
        "category": "STAFFING_RESOURCES",
        "text": "Do you feel there are enough staff?",
        "text_ja": "人員は十分だと感じますか？",
    },
    {
        "key": "q6",
        "order": 6,
        "category": "RESPECT_RECOGNITION",
        "text": "Do you feel your efforts are recognized?",
        "text_ja": "自分の頑張りは認められていると感じますか？",
    },
    {
        "key": "q7",
        "order": 7,
        "category": "PAY_BENEFITS",
        "text": "Are you satisfied with your current pay and benefits?",
        "text_ja": "今の給与・待遇に納得していますか？",
    },
    {
        "key": "q8",
        "order": 8,
        "category": "WORK_ENVIRONMENT",
        "text": "Are you able to take adequate breaks?",
        "text_ja": "休憩は十分に取れていますか？",
    },
    {
        "key": "q9",
        "order": 9,
        "category": "RETENTION_INTENT",
        "text": "Do you think you will still be working here in 6 months?",
        "text_ja": "半年後もこの職場で働いていると思いますか？",
    },
    {
        "key": "enps",
        "order": 10,
        "category": "ENPS",
        "text": "How likely are you to recommend this workplace to a friend?",
        "text_ja": "この職場を友人に勧める可能性はどのくらいありますか？",
        "scale_min": 0,
        "scale_max": 10,
        "is_driver": False,
    },
]


def seed_questions(apps, schema_editor):
    Question = apps.get_model("surveys", "Question")

    created = 0
    for entry in QUESTIONS:
        defaults = {
            "order": entry["order"],
            "category": entry["category"],
            "text": entry["text"],
            "text_ja": entry["text_ja"],
            "scale_min": entry.get("scale_min", 1),
            "scale_max": entry.get("scale_max", 5),
            "is_driver": entry.get("is_driver", True),
        }
        _, was_created = Question.objects.update_or_create(
            key=entry["key"], defaults=defaults
        )
        created += int(was_created)

    logger.info(f"Seeded {created} new questions ({len(QUESTIONS)} total)")


def remove_questions(apps, schema_editor):
    Question = apps.get_model("surveys", "Question")
    Question.objects.filter(key__in=[q["key"] for q in QUESTIONS]).delete()


class Migration(migrations.Migration):

    dependencies = [
        ("surveys", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_questions, remove_questions),
    ]

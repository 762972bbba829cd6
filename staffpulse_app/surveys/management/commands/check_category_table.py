"""
Django management command to check the category table against the database.

Usage:
    python manage.py check_category_table
"""

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from staffpulse_app.surveys.categories import (
    CATEGORY_TABLE,
    CATEGORY_TABLE_VERSION,
    category_for_question,
    validate_category_table,
)
from staffpulse_app.surveys.models import Question


class Command(BaseCommand):
    help = "Validate the question-to-category table and compare it with Question rows"

    def handle(self, *args, **options):
        self.stdout.write(
            self.style.MIGRATE_HEADING(f"Category table {CATEGORY_TABLE_VERSION}")
        )

        problems = []
        try:
            validate_category_table()
        except ValidationError as e:
            problems.extend(e.messages)

        driver_questions = list(Question.objects.filter(is_driver=True))
        stored_keys = {q.key for q in driver_questions}

        for question in driver_questions:
            definition = category_for_question(question.key)
            if definition is None:
                problems.append(f"Question {question.key} has no category in the table")
            elif definition.key != question.category:
                problems.append(
                    f"Question {question.key} is tagged {question.category} "
                    f"but the table maps it to {definition.key}"
                )
            elif definition.scale_max != question.scale_max:
                problems.append(
                    f"Question {question.key} has scale_max={question.scale_max}, "
                    f"table expects {definition.scale_max}"
                )

        for definition in CATEGORY_TABLE.values():
            for key in definition.question_keys:
                if key not in stored_keys:
                    problems.append(f"Table question {key} is missing from the database")

        if problems:
            for problem in problems:
                self.stderr.write(self.style.ERROR(f"  {problem}"))
            raise CommandError(f"{len(problems)} category table problem(s) found")

        self.stdout.write(
            self.style.SUCCESS(
                f"{len(CATEGORY_TABLE)} categories, {len(stored_keys)} driver questions OK"
            )
        )

"""
Tests for the category table and its management commands.
"""

import base64
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
import pytest

from staffpulse_app.surveys.categories import (
    CATEGORY_TABLE,
    DRIVER_QUESTION_KEYS,
    CategoryDefinition,
    category_for_question,
    get_category,
    validate_category_table,
)
from staffpulse_app.surveys.errors import ValidationError
from staffpulse_app.surveys.models import Question


class TestCategoryTable:
    def test_shipped_table_is_valid(self):
        validate_category_table()

    def test_every_driver_question_has_one_category(self):
        for key in DRIVER_QUESTION_KEYS:
            owners = [c for c in CATEGORY_TABLE.values() if key in c.question_keys]
            assert len(owners) == 1

    def test_lookup(self):
        assert get_category("TEAMWORK").question_keys == ("q4",)
        assert category_for_question("q2").key == "MANAGER_LEADERSHIP"
        assert category_for_question("enps") is None

    def test_unknown_category(self):
        with pytest.raises(ValidationError):
            get_category("UNKNOWN")

    def test_duplicate_mapping_rejected(self):
        table = {
            "A": CategoryDefinition("A", "A", "A", ("q1",)),
            "B": CategoryDefinition("B", "B", "B", ("q1", "q2")),
        }
        with pytest.raises(ValidationError) as exc_info:
            validate_category_table(table, driver_keys=("q1", "q2"))
        assert "several categories" in exc_info.value.messages[0]

    def test_unmapped_driver_rejected(self):
        table = {"A": CategoryDefinition("A", "A", "A", ("q1",))}
        with pytest.raises(ValidationError) as exc_info:
            validate_category_table(table, driver_keys=("q1", "q2"))
        assert exc_info.value.messages == ["Driver question q2 has no category"]

    def test_empty_category_rejected(self):
        table = {"A": CategoryDefinition("A", "A", "A", ())}
        with pytest.raises(ValidationError):
            validate_category_table(table, driver_keys=())


@pytest.mark.django_db
class TestCheckCategoryTableCommand:
    def test_seeded_database_passes(self):
        out = StringIO()
        call_command("check_category_table", stdout=out)
        assert "OK" in out.getvalue()

    def test_mismatched_question_fails(self):
        Question.objects.filter(key="q4").update(category="PAY_BENEFITS")

        with pytest.raises(CommandError):
            call_command("check_category_table", stdout=StringIO(), stderr=StringIO())

    def test_missing_question_fails(self):
        Question.objects.filter(key="q9").delete()

        with pytest.raises(CommandError):
            call_command("check_category_table", stdout=StringIO(), stderr=StringIO())


class TestGenerateIdentityKeyCommand:
    def test_prints_key(self):
        out = StringIO()
        call_command("generate_identity_key", stdout=out, stderr=StringIO())
        assert len(base64.b64decode(out.getvalue().strip())) == 32

    def test_check_valid_key(self, settings):
        settings.IDENTITY_ENCRYPTION_KEY = base64.b64encode(b"k" * 32).decode()
        out = StringIO()
        call_command("generate_identity_key", "--check", stdout=out)
        assert "valid" in out.getvalue()

    def test_check_missing_key(self, settings):
        settings.IDENTITY_ENCRYPTION_KEY = ""
        with pytest.raises(CommandError):
            call_command("generate_identity_key", "--check")

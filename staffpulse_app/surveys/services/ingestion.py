"""
Survey response ingestion.

A submission is validated, scanned for concerning content, optionally
escrowed and then written as a single row. Derived fields (flagged,
flag_reasons, encrypted_identity) are computed before the insert so a stored
response never carries a partial set of them.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction

from staffpulse_app.core.rate_limit import enforce_rate_limit, get_rate_limit_config

from ..errors import EncryptionUnavailable, NotFound, ValidationError
from ..models import Location, Question, SurveyResponse
from .content_flagging import flag_multiple
from .identity_escrow import encrypt_identity
from .scoring import ENPS_MAX, ENPS_MIN, is_valid_answer

logger = logging.getLogger(__name__)


def _validate_answers(answers) -> dict:
    if not isinstance(answers, dict):
        raise ValidationError({"answers": "Answers must be a mapping."})

    questions = {
        question.key: question
        for question in Question.objects.filter(is_driver=True)
    }
    errors = {}
    cleaned = {}
    for key, value in answers.items():
        question = questions.get(key)
        if question is None:
            errors[key] = f"Unknown question: {key}"
        elif not question.accepts(value):
            errors[key] = (
                f"Answer must be between {question.scale_min} and {question.scale_max}."
            )
        else:
            cleaned[key] = value
    if errors:
        raise ValidationError(errors)
    return cleaned


def _validate_free_text(free_text) -> dict:
    if not free_text:
        return {}
    if not isinstance(free_text, dict):
        raise ValidationError({"free_text": "Free text must be a mapping."})

    max_length = settings.FREE_TEXT_MAX_LENGTH
    cleaned = {}
    for key, value in free_text.items():
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValidationError({key: "Free text must be a string."})
        value = value.strip()
        if len(value) > max_length:
            raise ValidationError({key: f"Must be at most {max_length} characters."})
        if value:
            cleaned[key] = value
    return cleaned


def _clean_identity(identity) -> str:
    identity = (identity or "").strip()
    if len(identity) > settings.IDENTITY_MAX_LENGTH:
        raise ValidationError(
            {"identity": f"Must be at most {settings.IDENTITY_MAX_LENGTH} characters."}
        )
    return identity


def _seal_identity(identity: str, consent: bool) -> str | None:
    if not (consent and identity):
        return None
    try:
        return encrypt_identity(identity)
    except EncryptionUnavailable as e:
        # The response itself is still stored
        logger.warning(f"Identity not stored, encryption unavailable: {e}")
        return None


def submit_response(
    location_id,
    answers: dict,
    enps_score: int | None = None,
    free_text: dict | None = None,
    identity: str | None = None,
    identity_consent: bool = False,
    client_key: str | None = None,
) -> SurveyResponse:
    """
    Validate and store one survey submission.

    Args:
        location_id: Location the response belongs to
        answers: question key -> numeric answer, checked against Question scales
        enps_score: Raw 0-10 likelihood to recommend
        free_text: field key -> comment
        identity: Optional email or employee id, kept only with consent
        identity_consent: Whether the respondent agreed to identity escrow
        client_key: Identifier for rate limiting (e.g. hashed IP); skipped if None

    Raises:
        RateLimitExceeded: If client_key has submitted too often
        NotFound: If the location does not exist
        ValidationError: If the location is inactive or any field is invalid
    """
    if client_key:
        enforce_rate_limit(client_key, get_rate_limit_config("survey_response"))

    try:
        location = Location.objects.get(pk=location_id)
    except Location.DoesNotExist:
        raise NotFound(f"Location {location_id} not found")
    if not location.is_active:
        raise ValidationError("This location is not accepting responses.")

    cleaned_answers = _validate_answers(answers)
    if enps_score is not None and not (
        isinstance(enps_score, int) and is_valid_answer(enps_score, ENPS_MAX, ENPS_MIN)
    ):
        raise ValidationError({"enps_score": "eNPS must be between 0 and 10."})
    cleaned_text = _validate_free_text(free_text)
    identity = _clean_identity(identity)

    flags = flag_multiple(cleaned_text.values())
    encrypted_identity = _seal_identity(identity, identity_consent)

    with transaction.atomic():
        response = SurveyResponse.objects.create(
            location=location,
            answers=cleaned_answers,
            enps_score=enps_score,
            free_text=cleaned_text,
            flagged=flags.flagged,
            flag_reasons=flags.reasons,
            encrypted_identity=encrypted_identity,
            identity_consent=bool(identity_consent),
        )

    logger.info(
        f"Stored response_id={response.pk} for location_id={location.pk} "
        f"(flagged={response.flagged}, identity={response.has_identity})"
    )
    return response

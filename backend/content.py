"""
Educational content generation.

Validates the request, builds the prompt, calls Gemini and stores the
result in `educational_content` before returning it. Every failure is
raised as a `ContentError` whose message is safe to show to users.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from google.genai import errors as genai_errors
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from backend.config import Settings
from backend.records import RecordService, RecordValidationError
from models import gemini, prompts
from shared.types import (
    MAX_AGE_GROUP,
    MIN_AGE_GROUP,
    ContentType,
    Language,
    Table,
    Tone,
)

logger = logging.getLogger(__name__)

MAX_CUSTOM_INSTRUCTIONS_LENGTH = 1000

CHECK_CONSTRAINT_MESSAGE = (
    "Data validation failed. Please check age group, subject, and content type values."
)


class ContentError(Exception):
    """Base class for generation failures surfaced to the caller verbatim."""


class ContentValidationError(ContentError):
    pass


class ContentGenerationError(ContentError):
    pass


@dataclass
class ContentRequest:
    age_group: int
    subject: str
    content_type: str
    user_id: str
    tone: Optional[str] = None
    language: Optional[str] = None
    include_quiz: bool = False
    custom_instructions: Optional[str] = None


def _choice(value, options: type, label: str) -> Optional[str]:
    if value in (None, ""):
        return None
    by_lower = {option.value.lower(): option.value for option in options}
    matched = by_lower.get(str(value).strip().lower())
    if matched is None:
        allowed = ", ".join(option.value for option in options)
        raise ContentValidationError(
            f"Invalid {label}: {value}. Must be one of: {allowed}."
        )
    return matched


def parse_content_request(payload: dict, caller_id: str) -> ContentRequest:
    """
    Validates a camelCase generation payload.

    Raises:
        ContentValidationError: On the first invalid field.
    """
    raw_age = payload.get("ageGroup")
    try:
        age_group = int(str(raw_age).strip())
    except (TypeError, ValueError):
        raise ContentValidationError(
            f"Invalid age group: {raw_age}. Age group must be a number between "
            f"{MIN_AGE_GROUP} and {MAX_AGE_GROUP}."
        )
    if not MIN_AGE_GROUP <= age_group <= MAX_AGE_GROUP:
        raise ContentValidationError(
            f"Invalid age group: {age_group}. Age group must be between "
            f"{MIN_AGE_GROUP} and {MAX_AGE_GROUP}."
        )

    subject = payload.get("subject")
    if not isinstance(subject, str) or not subject.strip():
        raise ContentValidationError("Subject is required and must be a non-empty string.")

    content_type = _choice(payload.get("contentType"), ContentType, "content type")
    if content_type is None:
        raise ContentValidationError("Content type is required.")

    user_id = payload.get("userId") or caller_id
    if not user_id:
        raise ContentValidationError("User ID is required.")
    if user_id != caller_id:
        raise ContentValidationError("User ID does not match the authenticated user.")

    include_quiz = payload.get("includeQuiz", False)
    if not isinstance(include_quiz, bool):
        raise ContentValidationError("includeQuiz must be true or false.")

    custom_instructions = payload.get("customInstructions")
    if custom_instructions is not None:
        if not isinstance(custom_instructions, str):
            raise ContentValidationError("Custom instructions must be text.")
        if len(custom_instructions) > MAX_CUSTOM_INSTRUCTIONS_LENGTH:
            raise ContentValidationError(
                f"Custom instructions must be at most {MAX_CUSTOM_INSTRUCTIONS_LENGTH} characters."
            )

    return ContentRequest(
        age_group=age_group,
        subject=subject.strip(),
        content_type=content_type.lower(),
        user_id=user_id,
        tone=_choice(payload.get("tone"), Tone, "tone"),
        language=_choice(payload.get("language"), Language, "language"),
        include_quiz=include_quiz,
        custom_instructions=custom_instructions,
    )


def generate_content(
    payload: dict,
    caller_id: str,
    *,
    records: RecordService,
    settings: Settings,
    predict: Optional[Callable[..., str]] = None,
) -> dict:
    predict = predict or gemini.call_predict
    logger.info("generate-content request from %s: %s", caller_id, payload)
    request = parse_content_request(payload, caller_id)

    if not settings.gemini_api_key:
        raise ContentGenerationError("GEMINI_API_KEY not configured")

    prompt = prompts.make_content_prompt(
        request.age_group,
        request.subject,
        request.content_type,
        tone=request.tone,
        language=request.language,
        include_quiz=request.include_quiz,
        custom_instructions=request.custom_instructions,
    )
    try:
        text = predict(prompt, api_key=settings.gemini_api_key, model=settings.gemini_model)
    except (genai_errors.APIError, gemini.GeminiInvalidResponseException) as e:
        logger.error("Gemini API error: %r", e)
        raise ContentGenerationError(f"Content generation failed: {e}") from e
    except Exception as e:
        logger.exception("Unexpected error calling Gemini")
        raise ContentGenerationError(f"Content generation failed: {e}") from e
    logger.info("Gemini returned %d characters", len(text))

    try:
        row = records.insert(
            Table.EDUCATIONAL_CONTENT,
            request.user_id,
            {
                "age_group": request.age_group,
                "subject": request.subject,
                "content_type": request.content_type,
                "content": text,
            },
        )
    except (RecordValidationError, IntegrityError) as e:
        logger.error("Database constraint violation: %s", e)
        raise ContentGenerationError(CHECK_CONSTRAINT_MESSAGE) from e
    except SQLAlchemyError as e:
        logger.error("Database error: %s", e)
        raise ContentGenerationError("Failed to save content to database") from e

    logger.info("Stored educational content %s", row["id"])
    return {"content": text, "success": True}

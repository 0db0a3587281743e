"""
src/nlp/case_classifier.py
===========================
Case Classifier — Legal Intake Pipeline (CLASSIFY stage)

Responsibility:
    - Accept masked English text
    - Infer the legal category of the case
    - Return exactly one CaseCategory

Two tiers:
    1. Primary  — OpenAI chat completion with a fixed prompt that demands a
                  single category name
    2. Fallback — ordered keyword scan; used when the primary call fails,
                  answers OTHER, or answers something outside the enum

Allowed categories (enum):
    FAMILY_LAW, CRIMINAL, PROPERTY, CORPORATE, CIVIL, OTHER

The keyword table is an ordered list, so a keyword shared by two
categories ("contract") always resolves to the earlier one (CORPORATE).

This module does NOT:
    - Perform PII redaction or translation
    - Create or modify cases
    - Store data
"""

import logging
from enum import Enum
from typing import Any

from src.openai_client import (
    CHAT_MODEL,
    chat_completions_with_retry,
    first_message_content,
    get_openai_client,
)
from src.stage_outcome import DegradedStage

logger = logging.getLogger("legalintake.nlp.case_classifier")


# ---------------------------------------------------------------------------
# Category enum
# ---------------------------------------------------------------------------


class CaseCategory(str, Enum):
    """Legal case categories."""

    FAMILY_LAW = "FAMILY_LAW"
    CRIMINAL = "CRIMINAL"
    PROPERTY = "PROPERTY"
    CORPORATE = "CORPORATE"
    CIVIL = "CIVIL"
    OTHER = "OTHER"


_VALID_CATEGORIES: set[str] = {member.value for member in CaseCategory}


# ---------------------------------------------------------------------------
# Keyword fallback table (order is significant)
# ---------------------------------------------------------------------------

KEYWORD_RULES: list[tuple[CaseCategory, tuple[str, ...]]] = [
    (
        CaseCategory.FAMILY_LAW,
        ("divorce", "custody", "alimony", "marriage", "child", "spouse", "parent"),
    ),
    (
        CaseCategory.CRIMINAL,
        ("theft", "assault", "fraud", "arrest", "police", "fir", "jail", "crime", "murder"),
    ),
    (
        CaseCategory.PROPERTY,
        ("land", "rent", "deed", "house", "tenant", "landlord", "eviction", "mortgage"),
    ),
    (
        CaseCategory.CORPORATE,
        ("business", "contract", "merger", "startup", "company", "shares", "partnership"),
    ),
    (
        CaseCategory.CIVIL,
        ("dispute", "lawsuit", "compensation", "defamation", "negligence", "contract"),
    ),
]


# ---------------------------------------------------------------------------
# OpenAI prompt
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT: str = "You are a legal classification assistant."

_CLASSIFICATION_PROMPT: str = (
    "You are a legal expert. Analyze the following masked legal case "
    "description and classify it into one of the following categories:\n"
    "- FAMILY_LAW\n"
    "- CRIMINAL\n"
    "- PROPERTY\n"
    "- CORPORATE\n"
    "- CIVIL\n"
    "- OTHER\n\n"
    "Provide ONLY the category name as the output.\n\n"
    "Case Description:\n"
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def classify_case(masked_text: str, client: Any = None) -> CaseCategory:
    """
    Classify masked case text into a CaseCategory.

    Never raises: any failure of the AI tier falls through to the keyword
    tier, which always produces a category.

    Args:
        masked_text: PII-masked English description of the case.
        client:      Optional OpenAI client; built from the environment if
                     omitted.

    Returns:
        The inferred CaseCategory (OTHER for blank input).
    """
    if not masked_text or not masked_text.strip():
        return CaseCategory.OTHER

    try:
        category = _classify_with_ai(masked_text, client)
        if category is not CaseCategory.OTHER:
            logger.info("Classified via AI as %s", category.value)
            return category
        logger.info("AI answered OTHER — trying keyword fallback.")
    except DegradedStage as exc:
        logger.warning(
            "AI classification failed, falling back to keywords: %s", exc.message,
        )

    return classify_with_keywords(masked_text)


def classify_with_keywords(text: str) -> CaseCategory:
    """
    Return the first category whose keyword list has a case-insensitive
    substring match in ``text``; OTHER if none match.
    """
    lowered = text.lower()
    for category, keywords in KEYWORD_RULES:
        for keyword in keywords:
            if keyword in lowered:
                logger.info(
                    "Classified via keyword '%s' as %s", keyword, category.value,
                )
                return category
    return CaseCategory.OTHER


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _normalize_label(raw: str) -> str:
    """Upper-case the model answer and replace spaces with underscores."""
    return raw.strip().strip(".").upper().replace(" ", "_")


def _parse_category_response(raw: str) -> CaseCategory:
    """
    Parse the model answer into a CaseCategory.

    Raises:
        ValueError: If the normalized answer is not a known category.
    """
    label = _normalize_label(raw)
    if label not in _VALID_CATEGORIES:
        raise ValueError(f"Unknown category label: {raw!r}")
    return CaseCategory(label)


def _classify_with_ai(text: str, client: Any = None) -> CaseCategory:
    """
    Ask OpenAI for a category.

    Raises:
        DegradedStage: On any provider error or unusable answer.
    """
    try:
        if client is None:
            client = get_openai_client()

        response = chat_completions_with_retry(
            client,
            model=CHAT_MODEL,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": _CLASSIFICATION_PROMPT + text},
            ],
            temperature=0.0,
        )
        return _parse_category_response(first_message_content(response))
    except Exception as exc:
        raise DegradedStage("classify", str(exc)) from exc

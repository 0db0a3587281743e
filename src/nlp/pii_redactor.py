"""
src/nlp/pii_redactor.py
========================
PII Redactor — Legal Intake Pipeline (REDACT stage)

Responsibility:
    - Mask personally identifiable information in an English transcript
    - Replace each match with a fixed-width asterisk literal

Mask literals:
    **********      — Phone numbers (10 asterisks)
    ************    — National ID (Aadhaar) numbers (12 asterisks)
    *****@*****     — Email addresses
    <phrase> *****  — Self-declared names ("my name is ...")
    <phrase> *****  — Self-declared locations ("I live in ...")

Patterns are applied in a fixed order (phone → ID → email → name →
location). Each substitution is independent. Mask literals are made of
asterisks only (plus the '@' of the email mask), so a second pass finds
nothing new and redaction is idempotent.

This module does NOT:
    - Fall back to the unredacted text (the orchestrator owns that policy)
    - Call any LLM or external API
    - Translate, classify, or store text
"""

import logging
import re

logger = logging.getLogger("legalintake.nlp.pii_redactor")


# ---------------------------------------------------------------------------
# Mask literals
# ---------------------------------------------------------------------------

PHONE_MASK: str = "*" * 10
NATIONAL_ID_MASK: str = "*" * 12
EMAIL_MASK: str = "*****@*****"
PHRASE_MASK: str = "*****"

# Any span produced by this module. Used by the translator to keep masks
# byte-identical across translation.
MASK_TOKEN_PATTERN: re.Pattern[str] = re.compile(r"\*+@\*+|\*+")


# ---------------------------------------------------------------------------
# PII detection patterns
# ---------------------------------------------------------------------------

# Indian mobile numbers: optional +91 prefix, first digit 6–9, 8–10 digits
# total, never part of a longer digit run.
_PHONE_PATTERN: re.Pattern[str] = re.compile(
    r"(?<!\d)(?:\+91[\-\s]?)?[6-9]\d{7,9}(?!\d)",
)

# Aadhaar: 12 digits, optionally in groups of 4 separated by single spaces
_NATIONAL_ID_PATTERN: re.Pattern[str] = re.compile(
    r"\b\d{4}\s?\d{4}\s?\d{4}\b",
)

_EMAIL_PATTERN: re.Pattern[str] = re.compile(
    r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}",
)

# Self-declared name: trigger phrase followed by plain words
_NAME_PATTERN: re.Pattern[str] = re.compile(
    r"\b(my name is|i am|this is)\s+[a-z ]+",
    re.IGNORECASE,
)

# Self-declared location. "sarnamu" is the transliterated Gujarati word for
# address; "adress" is a frequent transcription misspelling.
_LOCATION_PATTERN: re.Pattern[str] = re.compile(
    r"\b(from|live in|village is|residing in|sarnamu|surname|adress is)\s+[a-z ]+",
    re.IGNORECASE,
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def mask_personal_info(text: str) -> str:
    """
    Mask PII in a single text.

    Applies, in order:
        1. Phone numbers
        2. National ID numbers
        3. Email addresses
        4. Self-declared names (trigger phrase is kept)
        5. Self-declared locations (trigger phrase is kept)

    Args:
        text: English transcript text.

    Returns:
        Text with PII replaced by mask literals. Blank input is returned
        unchanged. Deterministic and idempotent.
    """
    if not text or not text.strip():
        return text

    result = _PHONE_PATTERN.sub(PHONE_MASK, text)
    result = _NATIONAL_ID_PATTERN.sub(NATIONAL_ID_MASK, result)
    result = _EMAIL_PATTERN.sub(EMAIL_MASK, result)
    result = _NAME_PATTERN.sub(lambda m: f"{m.group(1)} {PHRASE_MASK}", result)
    result = _LOCATION_PATTERN.sub(lambda m: f"{m.group(1)} {PHRASE_MASK}", result)

    logger.debug(
        "Masked %d mask tokens in %d characters.",
        len(MASK_TOKEN_PATTERN.findall(result)), len(result),
    )
    return result


def extract_mask_tokens(text: str) -> list[str]:
    """Return every mask token in ``text``, in order of appearance."""
    if not text:
        return []
    return MASK_TOKEN_PATTERN.findall(text)

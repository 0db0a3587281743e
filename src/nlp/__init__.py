# src/nlp/__init__.py
# ====================
# Text Processing Layer — Legal Intake
#
# Implements:
#   - PII redaction of the English transcript (REDACT)
#   - Chunked English → Gujarati translation (TRANSLATE)
#   - Two-tier case classification (CLASSIFY)
#
# Redaction runs first. Translation and classification only ever see
# masked text.

from src.nlp.case_classifier import CaseCategory, classify_case  # noqa: F401
from src.nlp.pii_redactor import mask_personal_info  # noqa: F401
from src.nlp.translator import translate_to_gujarati  # noqa: F401

__all__ = [
    "CaseCategory",
    "classify_case",
    "mask_personal_info",
    "translate_to_gujarati",
]

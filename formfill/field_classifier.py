"""Classifier strategy records and the deterministic HTML-based strategies."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from .form_models import CandidateField, ClassifierResult, DetectionMethod, FieldType

LOGGER = logging.getLogger(__name__)

DetectFn = Callable[[CandidateField], Optional[ClassifierResult]]
AsyncDetectFn = Callable[[CandidateField], Awaitable[Optional[ClassifierResult]]]


@dataclass(slots=True, frozen=True)
class FieldClassifier:
    """A named detection strategy.

    ``detect`` must not touch the page and must not raise; ``detect_async`` is
    only provided by strategies that need I/O and is preferred by async runs.
    """

    name: DetectionMethod
    detect: DetectFn
    detect_async: Optional[AsyncDetectFn] = None


def safe_detect(
    classifier: FieldClassifier,
    field: CandidateField,
    logger: Optional[logging.Logger] = None,
) -> Optional[ClassifierResult]:
    try:
        return classifier.detect(field)
    except Exception as exc:  # noqa: BLE001
        (logger or LOGGER).warning(
            "Classifier %s failed on %s: %s", classifier.name.value, field.selector, exc
        )
        return None


async def safe_detect_async(
    classifier: FieldClassifier,
    field: CandidateField,
    logger: Optional[logging.Logger] = None,
) -> Optional[ClassifierResult]:
    if classifier.detect_async is None:
        return safe_detect(classifier, field, logger)
    try:
        return await classifier.detect_async(field)
    except Exception as exc:  # noqa: BLE001
        (logger or LOGGER).warning(
            "Classifier %s failed on %s: %s", classifier.name.value, field.selector, exc
        )
        return None


EXACT_INPUT_TYPES: Dict[str, FieldType] = {
    "checkbox": FieldType.CHECKBOX,
    "radio": FieldType.RADIO,
    "email": FieldType.EMAIL,
    "tel": FieldType.PHONE,
    "password": FieldType.PASSWORD,
    "number": FieldType.NUMBER,
    "range": FieldType.NUMBER,
    "date": FieldType.DATE,
    "time": FieldType.DATE,
    "datetime-local": FieldType.DATE,
    "month": FieldType.DATE,
    "week": FieldType.DATE,
    "url": FieldType.WEBSITE,
    "search": FieldType.TEXT,
}

HTML_FALLBACK_TYPES: Dict[str, FieldType] = {
    "email": FieldType.EMAIL,
    "tel": FieldType.PHONE,
    "password": FieldType.PASSWORD,
    "number": FieldType.NUMBER,
    "date": FieldType.DATE,
    "url": FieldType.TEXT,
}

EXACT_TYPE_CONFIDENCE = 1.0
FALLBACK_CONFIDENCE = 0.1
NATIVE_TAGS = {"input", "select", "textarea"}


def detect_basic_type(tag: str, input_type: Optional[str]) -> FieldType:
    """Map a native tag/type pair to a FieldType, ``UNKNOWN`` when ambiguous."""
    tag = (tag or "").lower()
    if tag == "select":
        return FieldType.SELECT
    if tag != "input":
        return FieldType.UNKNOWN
    return EXACT_INPUT_TYPES.get((input_type or "").lower(), FieldType.UNKNOWN)


def _detect_exact_type(field: CandidateField) -> Optional[ClassifierResult]:
    if (field.tag or "").lower() not in NATIVE_TAGS:
        return None
    field_type = detect_basic_type(field.tag, field.input_type)
    if field_type is FieldType.UNKNOWN:
        return None
    return ClassifierResult(field_type=field_type, confidence=EXACT_TYPE_CONFIDENCE)


def _detect_fallback(field: CandidateField) -> ClassifierResult:
    input_type = (field.input_type or "").lower()
    field_type = HTML_FALLBACK_TYPES.get(input_type, FieldType.UNKNOWN)
    return ClassifierResult(field_type=field_type, confidence=FALLBACK_CONFIDENCE)


exact_type_classifier = FieldClassifier(
    name=DetectionMethod.EXACT_TYPE,
    detect=_detect_exact_type,
)

html_fallback_classifier = FieldClassifier(
    name=DetectionMethod.HTML_FALLBACK,
    detect=_detect_fallback,
)


__all__ = [
    "FieldClassifier",
    "safe_detect",
    "safe_detect_async",
    "detect_basic_type",
    "exact_type_classifier",
    "html_fallback_classifier",
    "EXACT_TYPE_CONFIDENCE",
    "FALLBACK_CONFIDENCE",
]

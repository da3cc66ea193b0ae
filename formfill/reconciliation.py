"""Merge native and adapter-built fields into one classified field list."""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import List, Optional, Sequence

from playwright.async_api import Page

from .adapters.registry import DEFAULT_REGISTRY, AdapterRegistry
from .field_classifier import FieldClassifier, safe_detect, safe_detect_async
from .form_detection import detect_native_fields_async, scan_native_fields
from .form_models import (
    CandidateField,
    ClassifierResult,
    DetectionMethod,
    PipelineResult,
    is_generic,
)
from .keyword_classifier import keyword_classifier
from .pipeline import DetectionPipeline, get_active_pipeline
from .similarity import get_similarity_cache

LOGGER = logging.getLogger(__name__)

CUSTOM_SELECT_CONFIDENCE = 0.8
UNRESOLVED_CUSTOM_CONFIDENCE = 0.3
STRUCTURAL_METHODS = (DetectionMethod.EXACT_TYPE, DetectionMethod.HTML_FALLBACK)


def is_descendant_path(child_path: str, wrapper_path: str) -> bool:
    return bool(child_path and wrapper_path) and child_path.startswith(wrapper_path + " > ")


def remove_wrapped_native(
    native_fields: Sequence[CandidateField], custom_fields: Sequence[CandidateField]
) -> List[CandidateField]:
    """Drop native fields living inside any adapter-claimed wrapper."""
    wrappers = [field.dom_path for field in custom_fields if field.dom_path]
    return [
        field
        for field in native_fields
        if not any(is_descendant_path(field.dom_path, wrapper) for wrapper in wrappers)
    ]


def _adopt(
    field: CandidateField, result: ClassifierResult, method: DetectionMethod, started: float
) -> None:
    field.apply_result(
        PipelineResult(
            field_type=result.field_type,
            method=method,
            confidence=result.confidence,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
    )


def _stamp_custom_select(field: CandidateField) -> None:
    if field.detection_method is not None:
        return
    field.detection_method = DetectionMethod.CUSTOM_SELECT
    field.detection_confidence = (
        UNRESOLVED_CUSTOM_CONFIDENCE if is_generic(field.field_type) else CUSTOM_SELECT_CONFIDENCE
    )


def reclassify_with_keywords(
    field: CandidateField, logger: Optional[logging.Logger] = None
) -> None:
    """Keyword pass over an adapter field that never downgrades a concrete type."""
    started = time.perf_counter()
    result = safe_detect(keyword_classifier, field, logger)
    if result is not None:
        if not is_generic(result.field_type) or is_generic(field.field_type):
            _adopt(field, result, keyword_classifier.name, started)
            return
    _stamp_custom_select(field)


async def reclassify_with_chain(
    field: CandidateField,
    chain: Sequence[FieldClassifier],
    logger: Optional[logging.Logger] = None,
) -> None:
    """Like the keyword pass, but later strategies get a chance after generic answers."""
    started = time.perf_counter()
    fallback: Optional[tuple] = None
    for classifier in chain:
        result = await safe_detect_async(classifier, field, logger)
        if result is None:
            continue
        if not is_generic(result.field_type):
            _adopt(field, result, classifier.name, started)
            return
        if fallback is None and is_generic(field.field_type):
            fallback = (result, classifier.name)
    if fallback is not None:
        _adopt(field, fallback[0], fallback[1], started)
        return
    _stamp_custom_select(field)


def reconcile(
    native_fields: Sequence[CandidateField],
    custom_fields: Sequence[CandidateField],
    logger: Optional[logging.Logger] = None,
) -> List[CandidateField]:
    survivors = remove_wrapped_native(native_fields, custom_fields)
    for field in custom_fields:
        reclassify_with_keywords(field, logger)
    return [*survivors, *custom_fields]


async def reconcile_async(
    native_fields: Sequence[CandidateField],
    custom_fields: Sequence[CandidateField],
    pipeline: Optional[DetectionPipeline] = None,
    logger: Optional[logging.Logger] = None,
) -> List[CandidateField]:
    pipeline = pipeline or get_active_pipeline(logger)
    chain = pipeline.without(*STRUCTURAL_METHODS).classifiers
    survivors = remove_wrapped_native(native_fields, custom_fields)
    for field in custom_fields:
        await reclassify_with_chain(field, chain, logger)
    return [*survivors, *custom_fields]


async def detect_all_fields(
    page: Page,
    pipeline: Optional[DetectionPipeline] = None,
    registry: Optional[AdapterRegistry] = None,
    logger: Optional[logging.Logger] = None,
) -> List[CandidateField]:
    """Snapshot of every fillable field, classified without the oracle."""
    logger = logger or LOGGER
    # the sync similarity pass only sees a model that is already loaded
    await get_similarity_cache().ensure_loaded()
    native = await scan_native_fields(page, pipeline, logger)
    custom = await (registry or DEFAULT_REGISTRY).detect_all(page)
    fields = reconcile(native, custom, logger)
    logger.debug(
        "Detected %s fields (%s native, %s custom)", len(fields), len(native), len(custom)
    )
    return fields


def summarize_methods(fields: Sequence[CandidateField]) -> Counter:
    return Counter(
        field.detection_method.value if field.detection_method else "none" for field in fields
    )


async def detect_all_fields_async(
    page: Page,
    pipeline: Optional[DetectionPipeline] = None,
    registry: Optional[AdapterRegistry] = None,
    logger: Optional[logging.Logger] = None,
) -> List[CandidateField]:
    """Full-chain detection, oracle included."""
    logger = logger or LOGGER
    pipeline = pipeline or get_active_pipeline(logger)
    native = await detect_native_fields_async(page, pipeline, logger)
    custom = await (registry or DEFAULT_REGISTRY).detect_all(page)
    fields = await reconcile_async(native, custom, pipeline, logger)
    summary = summarize_methods(fields)
    logger.info(
        "Detected %s fields: %s",
        len(fields),
        ", ".join(f"{method}={count}" for method, count in sorted(summary.items())) or "none",
    )
    return fields


__all__ = [
    "CUSTOM_SELECT_CONFIDENCE",
    "UNRESOLVED_CUSTOM_CONFIDENCE",
    "is_descendant_path",
    "remove_wrapped_native",
    "reclassify_with_keywords",
    "reclassify_with_chain",
    "reconcile",
    "reconcile_async",
    "detect_all_fields",
    "detect_all_fields_async",
    "summarize_methods",
]

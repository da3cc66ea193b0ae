"""Ordered classifier chain used to assign a semantic type to each field."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .field_classifier import (
    FALLBACK_CONFIDENCE,
    FieldClassifier,
    exact_type_classifier,
    html_fallback_classifier,
    safe_detect,
    safe_detect_async,
)
from .form_models import (
    CandidateField,
    ClassifierResult,
    DetectionMethod,
    FieldType,
    PipelineResult,
)
from .keyword_classifier import keyword_classifier
from .oracle import oracle_classifier
from .similarity import similarity_classifier

LOGGER = logging.getLogger(__name__)

ALL_CLASSIFIERS: List[FieldClassifier] = [
    exact_type_classifier,
    keyword_classifier,
    similarity_classifier,
    oracle_classifier,
    html_fallback_classifier,
]

NAMED_CLASSIFIERS: Dict[str, FieldClassifier] = {
    classifier.name.value: classifier for classifier in ALL_CLASSIFIERS
}


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


def _method_key(name: Union[str, DetectionMethod]) -> str:
    return name.value if isinstance(name, DetectionMethod) else str(name)


class DetectionPipeline:
    """Runs classifiers in priority order until one names a concrete type."""

    def __init__(
        self,
        classifiers: Iterable[FieldClassifier],
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.classifiers: tuple = tuple(classifiers)
        self.logger = logger or LOGGER

    def __repr__(self) -> str:
        names = ", ".join(c.name.value for c in self.classifiers)
        return f"DetectionPipeline([{names}])"

    @property
    def names(self) -> List[DetectionMethod]:
        return [classifier.name for classifier in self.classifiers]

    def _finish(
        self,
        last: Optional[ClassifierResult],
        last_name: Optional[DetectionMethod],
        started: float,
    ) -> PipelineResult:
        if last is not None and last_name is not None:
            return PipelineResult(
                field_type=last.field_type,
                method=last_name,
                confidence=last.confidence,
                duration_ms=_elapsed_ms(started),
            )
        return PipelineResult(
            field_type=FieldType.UNKNOWN,
            method=DetectionMethod.HTML_FALLBACK,
            confidence=FALLBACK_CONFIDENCE,
            duration_ms=_elapsed_ms(started),
        )

    def run(self, field: CandidateField) -> PipelineResult:
        """Synchronous pass; async-only strategies abstain."""
        started = time.perf_counter()
        last: Optional[ClassifierResult] = None
        last_name: Optional[DetectionMethod] = None
        for index, classifier in enumerate(self.classifiers):
            result = safe_detect(classifier, field, self.logger)
            if result is None:
                continue
            if result.field_type is not FieldType.UNKNOWN:
                return PipelineResult(
                    field_type=result.field_type,
                    method=classifier.name,
                    confidence=result.confidence,
                    duration_ms=_elapsed_ms(started),
                )
            if index == len(self.classifiers) - 1:
                last, last_name = result, classifier.name
        return self._finish(last, last_name, started)

    async def run_async(self, field: CandidateField) -> PipelineResult:
        started = time.perf_counter()
        last: Optional[ClassifierResult] = None
        last_name: Optional[DetectionMethod] = None
        for index, classifier in enumerate(self.classifiers):
            result = await safe_detect_async(classifier, field, self.logger)
            if result is None:
                continue
            if result.field_type is not FieldType.UNKNOWN:
                return PipelineResult(
                    field_type=result.field_type,
                    method=classifier.name,
                    confidence=result.confidence,
                    duration_ms=_elapsed_ms(started),
                )
            if index == len(self.classifiers) - 1:
                last, last_name = result, classifier.name
        return self._finish(last, last_name, started)

    def classify(self, field: CandidateField) -> PipelineResult:
        """Run synchronously and record the outcome on ``field``."""
        result = self.run(field)
        field.apply_result(result)
        return result

    async def classify_async(self, field: CandidateField) -> PipelineResult:
        result = await self.run_async(field)
        field.apply_result(result)
        return result

    def with_order(self, names: Sequence[Union[str, DetectionMethod]]) -> "DetectionPipeline":
        by_name = {c.name.value: c for c in self.classifiers}
        keys = [_method_key(name) for name in names]
        ordered = [by_name[key] for key in keys if key in by_name]
        return DetectionPipeline(ordered, self.logger)

    def without(self, *names: Union[str, DetectionMethod]) -> "DetectionPipeline":
        excluded = {_method_key(name) for name in names}
        return DetectionPipeline(
            [c for c in self.classifiers if c.name.value not in excluded], self.logger
        )

    def with_classifier(self, classifier: FieldClassifier) -> "DetectionPipeline":
        return DetectionPipeline([*self.classifiers, classifier], self.logger)

    def insert_before(
        self, before: Union[str, DetectionMethod], classifier: FieldClassifier
    ) -> "DetectionPipeline":
        target = _method_key(before)
        classifiers = list(self.classifiers)
        for index, existing in enumerate(classifiers):
            if existing.name.value == target:
                classifiers.insert(index, classifier)
                return DetectionPipeline(classifiers, self.logger)
        return self.with_classifier(classifier)


DEFAULT_PIPELINE = DetectionPipeline(ALL_CLASSIFIERS)

_active_classifiers: List[FieldClassifier] = list(ALL_CLASSIFIERS)


def get_active_classifiers() -> List[FieldClassifier]:
    return list(_active_classifiers)


def set_active_classifiers(classifiers: Iterable[FieldClassifier]) -> None:
    global _active_classifiers
    _active_classifiers = list(classifiers)


def get_active_pipeline(logger: Optional[logging.Logger] = None) -> DetectionPipeline:
    return DetectionPipeline(_active_classifiers, logger)


def _setting_value(entry: Any, key: str) -> Any:
    if isinstance(entry, Mapping):
        return entry.get(key)
    return getattr(entry, key, None)


def build_classifiers_from_settings(config: Iterable[Any]) -> List[FieldClassifier]:
    """Build the ordered list from ``[{name, enabled}]`` entries.

    Unknown names and disabled entries are skipped, repeated names keep their
    first position, and the html fallback is appended when missing.
    """
    ordered: List[FieldClassifier] = []
    seen = set()
    for entry in config:
        name = _setting_value(entry, "name")
        if not _setting_value(entry, "enabled"):
            continue
        classifier = NAMED_CLASSIFIERS.get(_method_key(name)) if name else None
        if classifier is None or classifier.name in seen:
            continue
        ordered.append(classifier)
        seen.add(classifier.name)
    if DetectionMethod.HTML_FALLBACK not in seen:
        ordered.append(html_fallback_classifier)
    return ordered


__all__ = [
    "ALL_CLASSIFIERS",
    "NAMED_CLASSIFIERS",
    "DetectionPipeline",
    "DEFAULT_PIPELINE",
    "get_active_classifiers",
    "set_active_classifiers",
    "get_active_pipeline",
    "build_classifiers_from_settings",
]

"""Character n-gram similarity classifier backed by a small softmax model.

Signals are turned into L2-normalised trigram histograms over a fixed
vocabulary. Learned vectors (user corrections and oracle answers) are checked
first with cosine similarity; the pretrained model is consulted afterwards.
The model is loaded lazily, once per process, and concurrent callers share the
same in-flight load.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol

import numpy as np

from .field_classifier import FieldClassifier
from .form_models import (
    CandidateField,
    ClassifierResult,
    DetectionMethod,
    FieldType,
    PipelineResult,
    parse_field_type,
)
from .learning_store import LearnedEntriesStore
from .signals import build_signals

LOGGER = logging.getLogger(__name__)

NGRAM_SIZE = 3
LEARNED_THRESHOLD = 0.5
MODEL_THRESHOLD = 0.2

_SEPARATORS = re.compile(r"[_\-/.]+")
_SPACES = re.compile(r"\s+")


def char_ngrams(text: str, size: int = NGRAM_SIZE) -> List[str]:
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    normalized = _SPACES.sub(" ", _SEPARATORS.sub(" ", stripped)).strip()
    padded = f"_{normalized}_"
    return [padded[i : i + size] for i in range(len(padded) - size + 1)]


def vectorize(text: str, vocab: Dict[str, int]) -> np.ndarray:
    """Term-frequency vector of ``text`` over ``vocab``, L2-normalised."""
    vector = np.zeros(len(vocab), dtype=np.float32)
    for gram in char_ngrams(text):
        index = vocab.get(gram)
        if index is not None:
            vector[index] += 1.0
    norm = float(np.linalg.norm(vector))
    if norm > 0:
        vector /= norm
    return vector


@dataclass(slots=True)
class SoftmaxModel:
    weights: np.ndarray
    bias: np.ndarray

    def predict(self, vector: np.ndarray) -> np.ndarray:
        logits = vector @ self.weights + self.bias
        logits = logits - np.max(logits)
        exp = np.exp(logits)
        return exp / np.sum(exp)


@dataclass(slots=True)
class PretrainedModel:
    model: SoftmaxModel
    vocab: Dict[str, int]
    labels: List[str]


class ModelProvider(Protocol):
    async def load(self) -> PretrainedModel:
        ...


class FileModelProvider:
    """Reads ``vocab.json``, ``labels.json`` and ``weights.npz`` from a directory."""

    def __init__(self, model_dir: Path) -> None:
        self.model_dir = Path(model_dir)

    async def load(self) -> PretrainedModel:
        return await asyncio.to_thread(self._load_files)

    def _load_files(self) -> PretrainedModel:
        with (self.model_dir / "vocab.json").open("r", encoding="utf-8") as handle:
            vocab = {str(key): int(value) for key, value in json.load(handle).items()}
        with (self.model_dir / "labels.json").open("r", encoding="utf-8") as handle:
            labels = [str(label) for label in json.load(handle)]
        with np.load(self.model_dir / "weights.npz") as archive:
            weights = np.asarray(archive["weights"], dtype=np.float32)
            bias = np.asarray(archive["bias"], dtype=np.float32)
        if weights.shape != (len(vocab), len(labels)):
            raise ValueError(
                f"weights shape {weights.shape} does not match vocab/labels "
                f"({len(vocab)}, {len(labels)})"
            )
        return PretrainedModel(model=SoftmaxModel(weights, bias), vocab=vocab, labels=labels)


class LoadState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(slots=True)
class _LearnedVectors:
    matrix: Optional[np.ndarray] = None
    types: List[FieldType] = field(default_factory=list)


class SimilarityModelCache:
    def __init__(
        self,
        provider: Optional[ModelProvider] = None,
        store: Optional[LearnedEntriesStore] = None,
        learned_threshold: float = LEARNED_THRESHOLD,
        model_threshold: float = MODEL_THRESHOLD,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.provider = provider
        self.store = store
        self.learned_threshold = learned_threshold
        self.model_threshold = model_threshold
        self.logger = logger or LOGGER
        self.state = LoadState.UNLOADED
        self._pretrained: Optional[PretrainedModel] = None
        self._learned = _LearnedVectors()
        self._learned_stale = False
        self._load_task: Optional[asyncio.Future] = None
        self._learned_task: Optional[asyncio.Future] = None

    @property
    def learned_count(self) -> int:
        return len(self._learned.types)

    async def ensure_loaded(self) -> bool:
        """Load the model once; every concurrent caller awaits the same load."""
        if self.state is LoadState.FAILED:
            return False
        if self.state is not LoadState.LOADED:
            if self._load_task is None:
                self.state = LoadState.LOADING
                self._load_task = asyncio.ensure_future(self._load())
            await asyncio.shield(self._load_task)
        if self.state is LoadState.LOADED and self._learned_stale:
            await self._refresh_learned()
        return self.state is LoadState.LOADED

    async def _load(self) -> None:
        if self.provider is None:
            self.logger.debug("No similarity model provider configured")
            self.state = LoadState.FAILED
            return
        try:
            self._pretrained = await self.provider.load()
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("Failed to load similarity model: %s", exc)
            self.state = LoadState.FAILED
            return
        self.state = LoadState.LOADED
        await self._load_learned()
        self.logger.info(
            "Similarity model loaded: %s classes, vocab %s n-grams, %s learned vectors",
            len(self._pretrained.labels),
            len(self._pretrained.vocab),
            self.learned_count,
        )

    async def _refresh_learned(self) -> None:
        if self._learned_task is None:
            self._learned_task = asyncio.ensure_future(self._load_learned())
        task = self._learned_task
        try:
            await asyncio.shield(task)
        finally:
            if self._learned_task is task and task.done():
                self._learned_task = None

    async def _load_learned(self) -> None:
        self._learned_stale = False
        if self.store is None or self._pretrained is None:
            self._learned = _LearnedVectors()
            return
        try:
            entries = await self.store.get_learned_entries()
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("Failed to read learned entries: %s", exc)
            self._learned = _LearnedVectors()
            return
        vocab = self._pretrained.vocab
        rows: List[np.ndarray] = []
        types: List[FieldType] = []
        for entry in entries:
            vector = vectorize(entry.signals, vocab)
            if not vector.any():
                continue
            rows.append(vector)
            types.append(entry.field_type)
        matrix = np.vstack(rows) if rows else None
        self._learned = _LearnedVectors(matrix=matrix, types=types)
        self.logger.debug("Loaded %s learned vectors from %s entries", len(types), len(entries))

    def invalidate(self) -> None:
        """Drop learned vectors; the next async classification reloads them."""
        self.logger.debug("Invalidating %s learned vectors", self.learned_count)
        self._learned = _LearnedVectors()
        self._learned_stale = True

    def reset(self) -> None:
        self.state = LoadState.UNLOADED
        self._pretrained = None
        self._learned = _LearnedVectors()
        self._learned_stale = False
        self._load_task = None
        self._learned_task = None

    def classify(self, signals: str) -> Optional[ClassifierResult]:
        if self.state is not LoadState.LOADED or self._pretrained is None:
            return None
        if not signals or not signals.strip():
            return None
        vector = vectorize(signals, self._pretrained.vocab)
        if not vector.any():
            return None

        if self._learned.matrix is not None:
            scores = self._learned.matrix @ vector
            best = int(np.argmax(scores))
            if float(scores[best]) >= self.learned_threshold:
                return ClassifierResult(
                    field_type=self._learned.types[best], confidence=float(scores[best])
                )

        probabilities = self._pretrained.model.predict(vector)
        best = int(np.argmax(probabilities))
        score = float(probabilities[best])
        if score < self.model_threshold:
            self.logger.debug("Similarity score %.3f below threshold for %r", score, signals)
            return None
        field_type = parse_field_type(self._pretrained.labels[best])
        if field_type is None:
            return None
        return ClassifierResult(field_type=field_type, confidence=score)


_CACHE = SimilarityModelCache()


def get_similarity_cache() -> SimilarityModelCache:
    return _CACHE


def configure_similarity(
    provider: Optional[ModelProvider] = None,
    store: Optional[LearnedEntriesStore] = None,
    learned_threshold: float = LEARNED_THRESHOLD,
    model_threshold: float = MODEL_THRESHOLD,
    logger: Optional[logging.Logger] = None,
) -> SimilarityModelCache:
    """Replace the process-wide cache; the model loads on first use."""
    global _CACHE
    _CACHE = SimilarityModelCache(
        provider=provider,
        store=store,
        learned_threshold=learned_threshold,
        model_threshold=model_threshold,
        logger=logger,
    )
    return _CACHE


async def load_pretrained_model() -> bool:
    return await _CACHE.ensure_loaded()


def invalidate_classifier() -> None:
    _CACHE.invalidate()


async def reload_classifier() -> bool:
    _CACHE.reset()
    return await _CACHE.ensure_loaded()


async def record_correction(
    field: CandidateField,
    field_type: FieldType,
    store: Optional[LearnedEntriesStore] = None,
) -> bool:
    """Apply a user-chosen type to ``field`` and remember it for similar signals.

    The entry goes to ``store`` (the configured cache store by default) and the
    learned vectors are invalidated so the next classification reloads them.
    Returns whether the correction was persisted.
    """
    field.apply_result(
        PipelineResult(field_type=field_type, method=DetectionMethod.USER_OVERRIDE, confidence=1.0)
    )
    target = store if store is not None else _CACHE.store
    signals = _field_signals(field)
    if target is None or not signals.strip():
        LOGGER.debug("Correction for %s not persisted", field.selector)
        return False
    try:
        await target.store_learned_entry(signals, field_type)
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Could not persist correction for %s: %s", field.selector, exc)
        return False
    invalidate_classifier()
    LOGGER.info("Learned %s for %r", field_type.value, signals)
    return True


def _field_signals(field: CandidateField) -> str:
    if not field.signal_text:
        field.signal_text = build_signals(field)
    return field.signal_text


def _detect_similarity(field: CandidateField) -> Optional[ClassifierResult]:
    return _CACHE.classify(_field_signals(field))


async def _detect_similarity_async(field: CandidateField) -> Optional[ClassifierResult]:
    cache = _CACHE
    if not await cache.ensure_loaded():
        return None
    return cache.classify(_field_signals(field))


similarity_classifier = FieldClassifier(
    name=DetectionMethod.SIMILARITY,
    detect=_detect_similarity,
    detect_async=_detect_similarity_async,
)


__all__ = [
    "NGRAM_SIZE",
    "LEARNED_THRESHOLD",
    "MODEL_THRESHOLD",
    "char_ngrams",
    "vectorize",
    "SoftmaxModel",
    "PretrainedModel",
    "ModelProvider",
    "FileModelProvider",
    "LoadState",
    "SimilarityModelCache",
    "get_similarity_cache",
    "configure_similarity",
    "load_pretrained_model",
    "invalidate_classifier",
    "reload_classifier",
    "record_correction",
    "similarity_classifier",
]

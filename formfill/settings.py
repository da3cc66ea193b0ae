"""User-editable settings: classifier order, thresholds, storage locations."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .dom_watcher import DEFAULT_DEBOUNCE_MS, WatcherConfig
from .io_utils import read_json
from .learning_store import JsonLearningStore, LearnedEntriesStore
from .oracle import DEFAULT_TIMEOUT_SECONDS, MIN_CONFIDENCE, configure_oracle, get_oracle_state
from .pipeline import ALL_CLASSIFIERS, build_classifiers_from_settings, set_active_classifiers
from .similarity import (
    LEARNED_THRESHOLD,
    MODEL_THRESHOLD,
    FileModelProvider,
    configure_similarity,
)

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ClassifierSetting:
    name: str
    enabled: bool = True


def _default_classifiers() -> List[ClassifierSetting]:
    return [ClassifierSetting(name=classifier.name.value) for classifier in ALL_CLASSIFIERS]


@dataclass(slots=True)
class Settings:
    classifiers: List[ClassifierSetting] = field(default_factory=_default_classifiers)
    learned_threshold: float = LEARNED_THRESHOLD
    model_threshold: float = MODEL_THRESHOLD
    model_dir: Optional[Path] = None
    learned_store_path: Optional[Path] = None
    oracle_timeout: float = DEFAULT_TIMEOUT_SECONDS
    oracle_min_confidence: float = MIN_CONFIDENCE
    watcher: WatcherConfig = field(default_factory=WatcherConfig)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["model_dir"] = str(self.model_dir) if self.model_dir else None
        payload["learned_store_path"] = (
            str(self.learned_store_path) if self.learned_store_path else None
        )
        return payload


def settings_from_dict(payload: Dict[str, Any]) -> Settings:
    """Build settings from a plain mapping, keeping defaults for missing keys."""
    settings = Settings()
    entries = payload.get("classifiers")
    if isinstance(entries, list):
        settings.classifiers = [
            ClassifierSetting(name=str(entry["name"]), enabled=bool(entry.get("enabled", True)))
            for entry in entries
            if isinstance(entry, dict) and entry.get("name")
        ]
    for key in ("learned_threshold", "model_threshold", "oracle_timeout", "oracle_min_confidence"):
        if payload.get(key) is not None:
            setattr(settings, key, float(payload[key]))
    if payload.get("model_dir"):
        settings.model_dir = Path(payload["model_dir"])
    if payload.get("learned_store_path"):
        settings.learned_store_path = Path(payload["learned_store_path"])
    watcher = payload.get("watcher") or {}
    settings.watcher = WatcherConfig(
        debounce_ms=int(watcher.get("debounce_ms", DEFAULT_DEBOUNCE_MS)),
        auto_refill=bool(watcher.get("auto_refill", False)),
    )
    return settings


def load_settings(path: Optional[Path]) -> Settings:
    if path is None:
        return Settings()
    payload = read_json(path, default=None)
    if payload is None:
        LOGGER.warning("Settings file %s not found, using defaults", path)
        return Settings()
    if not isinstance(payload, dict):
        raise ValueError(f"Settings file {path} must contain a JSON object")
    return settings_from_dict(payload)


def apply_settings(settings: Settings, logger: Optional[logging.Logger] = None) -> None:
    """Install the classifier order and reconfigure the similarity and oracle state."""
    logger = logger or LOGGER
    classifiers = build_classifiers_from_settings(settings.classifiers)
    set_active_classifiers(classifiers)

    store: Optional[LearnedEntriesStore] = None
    if settings.learned_store_path:
        store = JsonLearningStore(settings.learned_store_path, logger=logger)
    provider = FileModelProvider(settings.model_dir) if settings.model_dir else None
    configure_similarity(
        provider=provider,
        store=store,
        learned_threshold=settings.learned_threshold,
        model_threshold=settings.model_threshold,
        logger=logger,
    )
    configure_oracle(
        client=get_oracle_state().client,
        timeout=settings.oracle_timeout,
        learning_store=store,
        min_confidence=settings.oracle_min_confidence,
        logger=logger,
    )
    logger.debug(
        "Active classifiers: %s", ", ".join(classifier.name.value for classifier in classifiers)
    )


__all__ = [
    "ClassifierSetting",
    "Settings",
    "settings_from_dict",
    "load_settings",
    "apply_settings",
]

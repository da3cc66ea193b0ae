"""Async-only classifier that defers to an external AI oracle."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Union

from .field_classifier import FieldClassifier
from .form_models import (
    CandidateField,
    ClassifierResult,
    DetectionMethod,
    FieldType,
    parse_field_type,
)
from .learning_store import LearnedEntriesStore
from .signals import build_signals
from .similarity import invalidate_classifier

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0
MIN_CONFIDENCE = 0.6
CONTEXT_HTML_LIMIT = 500

_JSON_OBJECT = re.compile(r"\{[^{}]+\}")


@dataclass(slots=True, frozen=True)
class OracleRequest:
    signals: str
    outer_html: str
    context_html: str
    input_type: Optional[str] = None
    autocomplete: Optional[str] = None

    def to_prompt(self) -> str:
        lines = ["Classify this form field:"]
        if self.signals:
            lines.append(f"Signals: {self.signals}")
        if self.input_type and self.input_type != "text":
            lines.append(f"HTML type: {self.input_type}")
        if self.autocomplete:
            lines.append(f"Autocomplete: {self.autocomplete}")
        if self.outer_html:
            lines.append(f"Element: {self.outer_html}")
        if self.context_html:
            lines.append(f"Context: {self.context_html}")
        return "\n".join(lines)


class OracleClient(Protocol):
    async def is_available(self) -> bool:
        ...

    async def classify(self, request: OracleRequest) -> Union[str, Mapping[str, Any], None]:
        ...

    async def generate(self, field: CandidateField) -> str:
        ...


@dataclass(slots=True)
class OracleState:
    client: Optional[OracleClient] = None
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    store: Optional[LearnedEntriesStore] = None
    min_confidence: float = MIN_CONFIDENCE
    available: Optional[bool] = None
    logger: logging.Logger = LOGGER


_STATE = OracleState()


def configure_oracle(
    client: Optional[OracleClient] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    learning_store: Optional[LearnedEntriesStore] = None,
    min_confidence: float = MIN_CONFIDENCE,
    logger: Optional[logging.Logger] = None,
) -> OracleState:
    global _STATE
    _STATE = OracleState(
        client=client,
        timeout=timeout,
        store=learning_store,
        min_confidence=min_confidence,
        logger=logger or LOGGER,
    )
    return _STATE


def get_oracle_state() -> OracleState:
    return _STATE


def build_oracle_request(field: CandidateField) -> OracleRequest:
    if not field.signal_text:
        field.signal_text = build_signals(field)
    return OracleRequest(
        signals=field.signal_text,
        outer_html=field.html_snippet or "",
        context_html=(field.context_html or "")[:CONTEXT_HTML_LIMIT],
        input_type=field.input_type,
        autocomplete=field.autocomplete,
    )


def parse_oracle_response(
    raw: Union[str, Mapping[str, Any], None], min_confidence: float = MIN_CONFIDENCE
) -> Optional[ClassifierResult]:
    """Accept ``{"fieldType": ..., "confidence": ...}`` as a mapping or JSON text."""
    if raw is None:
        return None
    payload: Any = raw
    if isinstance(raw, str):
        match = _JSON_OBJECT.search(raw)
        if not match:
            return None
        try:
            payload = json.loads(match.group(0))
        except ValueError:
            return None
    if not isinstance(payload, Mapping):
        return None
    field_type = parse_field_type(payload.get("fieldType"))
    confidence = payload.get("confidence")
    if field_type is None or isinstance(confidence, bool):
        return None
    if not isinstance(confidence, (int, float)):
        return None
    confidence = max(0.0, min(1.0, float(confidence)))
    if confidence < min_confidence:
        return None
    return ClassifierResult(field_type=field_type, confidence=confidence)


async def _check_available(state: OracleState) -> bool:
    if state.available is None:
        try:
            state.available = bool(
                await asyncio.wait_for(state.client.is_available(), timeout=state.timeout)
            )
        except Exception as exc:  # noqa: BLE001
            state.logger.info("Oracle availability check failed: %s", exc)
            state.available = False
        if not state.available:
            state.logger.info("Oracle unavailable; skipping it for this session")
    return state.available


async def _detect_oracle_async(field: CandidateField) -> Optional[ClassifierResult]:
    state = _STATE
    if state.client is None or not await _check_available(state):
        return None

    request = build_oracle_request(field)
    try:
        raw = await asyncio.wait_for(state.client.classify(request), timeout=state.timeout)
    except asyncio.TimeoutError:
        state.logger.warning(
            "Oracle timed out after %.1fs on %s", state.timeout, field.selector
        )
        return None
    except Exception as exc:  # noqa: BLE001
        state.logger.warning("Oracle failed on %s: %s", field.selector, exc)
        return None

    result = parse_oracle_response(raw, state.min_confidence)
    if result is None:
        state.logger.debug("Oracle gave no usable answer for %s", field.selector)
        return None

    if state.store is not None and result.field_type is not FieldType.UNKNOWN:
        try:
            await state.store.store_learned_entry(request.signals, result.field_type)
        except Exception as exc:  # noqa: BLE001
            state.logger.warning("Could not persist oracle answer: %s", exc)
        else:
            invalidate_classifier()
    return result


async def generate_with_oracle(field: CandidateField) -> Optional[str]:
    """Ask the oracle for a value; ``None`` when it is absent or fails."""
    state = _STATE
    if state.client is None or not await _check_available(state):
        return None
    try:
        return await asyncio.wait_for(state.client.generate(field), timeout=state.timeout)
    except Exception as exc:  # noqa: BLE001
        state.logger.warning("Oracle value generation failed on %s: %s", field.selector, exc)
        return None


oracle_classifier = FieldClassifier(
    name=DetectionMethod.ORACLE,
    detect=lambda field: None,
    detect_async=_detect_oracle_async,
)


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "MIN_CONFIDENCE",
    "CONTEXT_HTML_LIMIT",
    "OracleRequest",
    "OracleClient",
    "OracleState",
    "configure_oracle",
    "get_oracle_state",
    "build_oracle_request",
    "parse_oracle_response",
    "generate_with_oracle",
    "oracle_classifier",
]

"""End-to-end flows driven by the CLI: one-shot detection and a watch session."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from .browser import BrowserConfig, goto_and_settle, open_page
from .dom_watcher import DomWatcher
from .form_filling import fill_fields, sample_value
from .form_models import CandidateField
from .io_utils import RunPaths, write_json
from .reconciliation import detect_all_fields, detect_all_fields_async, summarize_methods
from .settings import Settings, apply_settings
from .similarity import load_pretrained_model


@dataclass(slots=True)
class DetectInputs:
    url: str
    run_paths: RunPaths
    logger: logging.Logger
    settings: Settings = field(default_factory=Settings)
    use_async: bool = False
    fill: bool = False
    headless: bool = True


@dataclass(slots=True)
class WatchInputs:
    url: str
    run_paths: RunPaths
    logger: logging.Logger
    settings: Settings = field(default_factory=Settings)
    seconds: float = 30.0
    auto_refill: bool = False
    headless: bool = True


def _field_report(fields: List[CandidateField]) -> List[Dict[str, object]]:
    return [candidate.to_dict() for candidate in fields]


async def _prepare_classifiers(settings: Settings, logger: logging.Logger) -> None:
    apply_settings(settings, logger)
    if not await load_pretrained_model():
        logger.debug("Similarity model unavailable; that strategy will abstain")


async def run_detection(inputs: DetectInputs) -> Dict[str, object]:
    logger = inputs.logger
    await _prepare_classifiers(inputs.settings, logger)
    status = "failed"
    final_url = inputs.url
    fields: List[CandidateField] = []
    fill_report: List[Dict[str, object]] = []
    notes: List[str] = []

    try:
        async with open_page(BrowserConfig(headless=inputs.headless)) as page:
            final_url = await goto_and_settle(page, inputs.url, logger)
            logger.debug("Loaded %s", final_url)
            if inputs.use_async:
                fields = await detect_all_fields_async(page, logger=logger)
            else:
                fields = await detect_all_fields(page, logger=logger)
            if inputs.fill and fields:
                results = await fill_fields(page, fields, sample_value, logger=logger)
                fill_report = [result.to_dict() for result in results]
            status = "detected" if fields else "no_fields"
    except Exception as exc:  # noqa: BLE001
        logger.exception("Detection failed: %s", exc)
        notes.append(str(exc))

    report_path = write_json(inputs.run_paths.build_path("fields.json"), _field_report(fields))
    return {
        "status": status,
        "final_url": final_url,
        "field_count": len(fields),
        "methods": dict(summarize_methods(fields)),
        "fields": _field_report(fields),
        "filled": fill_report,
        "report": str(report_path),
        "notes": notes,
    }


async def run_watch(inputs: WatchInputs) -> Dict[str, object]:
    logger = inputs.logger
    await _prepare_classifiers(inputs.settings, logger)
    changes: List[int] = []
    notes: List[str] = []
    status = "failed"
    final_signature = ""

    def on_change(delta: int) -> None:
        changes.append(delta)
        logger.info("Field signature changed (delta=%s)", delta)

    try:
        async with open_page(BrowserConfig(headless=inputs.headless)) as page:
            await goto_and_settle(page, inputs.url, logger)

            async def refill(new_fields: List[CandidateField]) -> None:
                await fill_fields(page, new_fields, sample_value, logger=logger)

            watcher = DomWatcher(page, refill=refill, logger=logger)
            await watcher.start(
                on_change, auto_refill=inputs.auto_refill, config=inputs.settings.watcher
            )
            try:
                await asyncio.sleep(inputs.seconds)
            finally:
                final_signature = watcher.last_signature
                watcher.stop()
            status = "watched"
    except Exception as exc:  # noqa: BLE001
        logger.exception("Watch session failed: %s", exc)
        notes.append(str(exc))

    return {
        "status": status,
        "url": inputs.url,
        "changes": changes,
        "signature": final_signature,
        "notes": notes,
    }


__all__ = ["DetectInputs", "WatchInputs", "run_detection", "run_watch"]

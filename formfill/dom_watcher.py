"""Debounced mutation watcher that tracks the page's field signature.

An in-page ``MutationObserver`` forwards compact mutation summaries through an
exposed binding. Relevance filtering, the debounce timer and the signature diff
all live here, on the asyncio loop that drives the page.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from playwright.async_api import Page

from .form_models import CandidateField
from .reconciliation import detect_all_fields

DEFAULT_DEBOUNCE_MS = 600
OWN_UI_PREFIX = "formfill-"
OBSERVED_ATTRIBUTES = ("disabled", "hidden", "style", "class")
BINDING_PREFIX = "__formfillMutations_"

ScanFn = Callable[[], Awaitable[List[CandidateField]]]
RefillFn = Callable[[List[CandidateField]], Awaitable[Any]]
WatcherCallback = Callable[[int], Any]

OBSERVER_SCRIPT = """
([binding, ownPrefix, attributes]) => {
  if (window.__formfillObserver) window.__formfillObserver.disconnect();
  const isOwn = (node) => {
    let el = node && node.nodeType === 1 ? node : node && node.parentElement;
    while (el) {
      if ((el.id || '').startsWith(ownPrefix)) return true;
      if (Array.from(el.classList || []).some((cls) => cls.startsWith(ownPrefix))) return true;
      el = el.parentElement;
    }
    return false;
  };
  const hasFormContent = (el) => {
    if (['INPUT', 'SELECT', 'TEXTAREA', 'FORM'].includes(el.tagName)) return true;
    const cls = typeof el.className === 'string' ? el.className : '';
    if (el.classList.contains('ant-select') || el.classList.contains('ant-form-item')) return true;
    if (cls.includes('MuiFormControl') || cls.includes('react-select')) return true;
    return el.querySelector('input, select, textarea, .ant-select, .ant-form-item') !== null;
  };
  const observer = new MutationObserver((mutations) => {
    const records = mutations.map((m) => {
      const nodes = [...Array.from(m.addedNodes), ...Array.from(m.removedNodes)];
      return {
        type: m.type,
        added: m.addedNodes.length,
        removed: m.removedNodes.length,
        attributeName: m.attributeName,
        ownUi: isOwn(m.target) || (nodes.length > 0 && nodes.every(isOwn)),
        formContent: m.type === 'attributes' && m.target.nodeType === 1 ? hasFormContent(m.target) : false,
      };
    });
    window[binding](records);
  });
  observer.observe(document.body, {
    childList: true,
    subtree: true,
    attributes: true,
    attributeFilter: attributes,
  });
  window.__formfillObserver = observer;
  return true;
}
"""

DISCONNECT_SCRIPT = """
() => {
  if (window.__formfillObserver) {
    window.__formfillObserver.disconnect();
    window.__formfillObserver = null;
  }
}
"""


@dataclass(slots=True)
class WatcherConfig:
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    auto_refill: bool = False


def signature_pairs(fields: Iterable[CandidateField]) -> Set[Tuple[str, str]]:
    return {(field.selector, field.field_type.value) for field in fields}


def build_signature(fields: Iterable[CandidateField]) -> str:
    """Order-independent ``selector:type`` summary of the detected fields."""
    return "|".join(sorted(f"{selector}:{ftype}" for selector, ftype in signature_pairs(fields)))


def is_relevant_mutation(record: Dict[str, Any]) -> bool:
    if record.get("ownUi"):
        return False
    if record.get("type") == "childList":
        return bool(record.get("added") or record.get("removed"))
    if record.get("type") == "attributes":
        if record.get("attributeName") in OBSERVED_ATTRIBUTES:
            return bool(record.get("formContent"))
    return False


class DomWatcher:
    """idle -> start() -> watching -> stop() -> idle."""

    def __init__(
        self,
        page: Page,
        scan: Optional[ScanFn] = None,
        refill: Optional[RefillFn] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.page = page
        self.scan: ScanFn = scan or (lambda: detect_all_fields(page, logger=logger))
        self.refill = refill
        self.logger = logger or logging.getLogger(__name__)
        self.config = WatcherConfig()
        self._callback: Optional[WatcherCallback] = None
        self._active = False
        self._filling = False
        self._generation = 0
        self._pairs: Set[Tuple[str, str]] = set()
        self._signature = ""
        self._timer: Optional[asyncio.TimerHandle] = None
        self._flush_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._binding_name = f"{BINDING_PREFIX}{secrets.token_hex(4)}"
        self._binding_ready = False

    @property
    def last_signature(self) -> str:
        return self._signature

    def is_active(self) -> bool:
        return self._active

    def set_filling_in_progress(self, value: bool) -> None:
        self._filling = value

    async def start(
        self,
        callback: Optional[WatcherCallback] = None,
        auto_refill: Optional[bool] = None,
        config: Optional[WatcherConfig] = None,
    ) -> None:
        if self._active:
            return
        self._active = True
        base = config or WatcherConfig()
        self.config = WatcherConfig(
            debounce_ms=base.debounce_ms,
            auto_refill=base.auto_refill if auto_refill is None else auto_refill,
        )
        self._callback = callback
        generation = self._generation
        try:
            pending = [task for task in self._background if not task.done()]
            if pending:
                # the previous session's disconnect must land before the new observer
                await asyncio.gather(*pending, return_exceptions=True)
            if not self._binding_ready:
                await self.page.expose_binding(self._binding_name, self._on_mutations)
                self._binding_ready = True
            fields = await self.scan()
            self._remember(fields)
            if generation != self._generation:
                return
            await self.page.evaluate(
                OBSERVER_SCRIPT,
                [self._binding_name, OWN_UI_PREFIX, list(OBSERVED_ATTRIBUTES)],
            )
        except Exception:
            self._active = False
            self._callback = None
            raise
        self.logger.debug(
            "DOM watcher started (debounce=%sms, auto_refill=%s, fields=%s)",
            self.config.debounce_ms,
            self.config.auto_refill,
            len(self._pairs),
        )

    def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        self._generation += 1
        self._callback = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._flush_task is not None and not self._flush_task.done():
            self._flush_task.cancel()
        self._flush_task = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.debug("No running loop; in-page observer left for page teardown")
        else:
            self._spawn(loop, self._disconnect())
        self.logger.debug("DOM watcher stopped")

    def _spawn(self, loop: asyncio.AbstractEventLoop, coro: Awaitable[Any]) -> asyncio.Task:
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _disconnect(self) -> None:
        try:
            await self.page.evaluate(DISCONNECT_SCRIPT)
        except Exception as exc:  # noqa: BLE001
            self.logger.debug("Observer disconnect failed: %s", exc)

    def _remember(self, fields: Sequence[CandidateField]) -> None:
        self._pairs = signature_pairs(fields)
        self._signature = build_signature(fields)

    def _on_mutations(self, source: Any, records: Any) -> None:
        if not self._active or self._filling:
            return
        if not isinstance(records, list):
            return
        if not any(isinstance(r, dict) and is_relevant_mutation(r) for r in records):
            return
        self._schedule()

    def _schedule(self) -> None:
        loop = asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        generation = self._generation
        self._timer = loop.call_later(
            self.config.debounce_ms / 1000.0, self._fire, generation
        )

    def _fire(self, generation: int) -> None:
        self._timer = None
        if generation != self._generation or not self._active:
            return
        loop = asyncio.get_running_loop()
        self._flush_task = self._spawn(loop, self._flush(generation))

    async def _flush(self, generation: int) -> None:
        try:
            fields = await self.scan()
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("Field scan failed after mutation: %s", exc)
            return
        if generation != self._generation:
            return
        previous = self._pairs
        current = signature_pairs(fields)
        signature = build_signature(fields)
        if signature == self._signature:
            return
        delta = len(current) - len(previous)
        self._remember(fields)

        if delta > 0:
            self.logger.info("Detected %s new form field(s)", delta)
        else:
            self.logger.info("Form structure changed (%s fields)", delta)
        await self._notify(delta)

        if delta > 0 and self.config.auto_refill:
            new_fields = [
                field
                for field in fields
                if (field.selector, field.field_type.value) not in previous
            ]
            await self._refill(new_fields, generation)

    async def _notify(self, delta: int) -> None:
        if self._callback is None:
            return
        try:
            outcome = self._callback(delta)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("Watcher callback failed: %s", exc)

    async def _refill(self, new_fields: List[CandidateField], generation: int) -> None:
        if self.refill is None:
            self.logger.debug("Auto refill requested but no refill function configured")
            return
        self._filling = True
        try:
            await self.refill(new_fields)
            fields = await self.scan()
            if generation == self._generation:
                self._remember(fields)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("Auto refill failed: %s", exc)
        finally:
            self._filling = False


__all__ = [
    "DEFAULT_DEBOUNCE_MS",
    "OWN_UI_PREFIX",
    "OBSERVER_SCRIPT",
    "DISCONNECT_SCRIPT",
    "WatcherConfig",
    "signature_pairs",
    "build_signature",
    "is_relevant_mutation",
    "DomWatcher",
]

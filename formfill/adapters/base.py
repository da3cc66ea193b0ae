"""Shared pieces for custom widget adapters."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, FrozenSet, Optional

from playwright.async_api import ElementHandle
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..form_detection import DOM_HELPERS, HTML_SNIPPET_LIMIT, build_native_field
from ..form_models import CandidateField, FieldType, infer_category_from_type

LOGGER = logging.getLogger(__name__)

OVERLAY_TIMEOUT_MS = 500

IDENTITY_SCRIPT = (
    "(el) => {"
    + DOM_HELPERS
    + """
  return {
    tag: el.tagName.toLowerCase(),
    classes: Array.from(el.classList || []),
    path: domPath(el),
  };
}"""
)

WIDGET_HELPERS = """
  const innerInput = (node) => node.querySelector('input:not([type="hidden"]), textarea');
  const antLabel = (node) => {
    const item = node.closest('.ant-form-item');
    const label = item ? item.querySelector('.ant-form-item-label label') : null;
    return label && clean(label.textContent) ? clean(label.textContent) : null;
  };
  const plainLabel = (node) => {
    if (node.id) {
      const byFor = document.querySelector(`label[for="${CSS.escape(node.id)}"]`);
      if (byFor && clean(byFor.textContent)) return clean(byFor.textContent);
    }
    const parentLabel = node.closest('label');
    if (parentLabel && clean(parentLabel.textContent)) return clean(parentLabel.textContent);
    const aria = clean(node.getAttribute('aria-label'));
    if (aria) return aria;
    const group = node.closest('.form-group, .form-item, .field, .MuiFormControl-root');
    const groupLabel = group ? group.querySelector('label') : null;
    if (groupLabel && clean(groupLabel.textContent)) return clean(groupLabel.textContent);
    const prev = node.previousElementSibling;
    if (prev && prev.tagName === 'LABEL' && clean(prev.textContent)) return clean(prev.textContent);
    return null;
  };
  const setNativeValue = (input, value) => {
    const proto = input instanceof HTMLTextAreaElement
      ? window.HTMLTextAreaElement.prototype
      : window.HTMLInputElement.prototype;
    const descriptor = Object.getOwnPropertyDescriptor(proto, 'value');
    if (descriptor && descriptor.set) {
      descriptor.set.call(input, value);
    } else {
      input.value = value;
    }
    input.dispatchEvent(new Event('input', { bubbles: true }));
    input.dispatchEvent(new Event('change', { bubbles: true }));
  };
  const simulateClick = (node) => {
    for (const type of ['mousedown', 'mouseup', 'click']) {
      node.dispatchEvent(new MouseEvent(type, { bubbles: true, cancelable: true, view: window }));
    }
  };
  const pickByText = (items, value, textOf) => {
    const wanted = (value || '').toLowerCase();
    if (wanted) {
      const exact = items.find((item) => textOf(item).toLowerCase() === wanted);
      if (exact) return exact;
      const partial = items.find((item) => textOf(item).toLowerCase().includes(wanted));
      if (partial) return partial;
    }
    return items[0] || null;
  };
  const baseProbe = (el) => {
    const input = innerInput(el);
    const combo = el.querySelector("[role='combobox'], [role='listbox']");
    const placeholderNode = el.querySelector(
      '.ant-select-selection-placeholder, .select2-selection__placeholder, [class*="placeholder"]'
    );
    const item = el.closest('.ant-form-item');
    const container = item || el.closest('.form-group, .MuiFormControl-root, fieldset, form') || el.parentElement;
    return {
      tag: el.tagName.toLowerCase(),
      classes: Array.from(el.classList || []),
      selector: cssSelector(el),
      path: domPath(el),
      label: antLabel(el) || plainLabel(input || el) || plainLabel(el),
      id: (input && input.id) || (combo && combo.id) || el.id || null,
      name: input ? input.getAttribute('name') : null,
      placeholder: (placeholderNode && clean(placeholderNode.textContent)) || (input && input.getAttribute('placeholder')) || null,
      required: !!(item && item.querySelector('.ant-form-item-required')) || !!(input && input.required),
      type: input && input.tagName === 'INPUT' ? (input.getAttribute('type') || 'text').toLowerCase() : null,
      pattern: input ? input.getAttribute('pattern') : null,
      maxLength: input && input.maxLength > 0 ? input.maxLength : null,
      minLength: input && input.minLength > 0 ? input.minLength : null,
      options: [],
      html: snippet(el, %(limit)d),
      contextHtml: snippet(container, %(limit)d),
    };
  };
""" % {"limit": HTML_SNIPPET_LIMIT}


def widget_probe_script(extra: str = "return {};") -> str:
    """Probe returning the shared widget dict overlaid with ``extra``'s result."""
    return (
        "(el) => {"
        + DOM_HELPERS
        + WIDGET_HELPERS
        + "  const extra = (() => {"
        + extra
        + "})();\n  return Object.assign(baseProbe(el), extra || {});\n}"
    )


def widget_action_script(body: str) -> str:
    """Script called as ``(el, value)``; ``body`` must return a boolean."""
    return "(el, value) => {" + DOM_HELPERS + WIDGET_HELPERS + body + "\n}"


BASE_PROBE_SCRIPT = widget_probe_script()

SET_VALUE_SCRIPT = widget_action_script(
    """
  const input = el.matches('input, textarea') ? el : innerInput(el);
  if (!input) return false;
  input.focus();
  setNativeValue(input, value);
  return true;"""
)

CLICK_SCRIPT = widget_action_script("\n  simulateClick(el);\n  return true;")


@dataclass(slots=True, frozen=True)
class NodeInfo:
    tag: str
    classes: FrozenSet[str]
    dom_path: str

    def has_class(self, name: str) -> bool:
        return name in self.classes

    @classmethod
    def from_probe(cls, probe: Dict[str, object]) -> "NodeInfo":
        return cls(
            tag=str(probe.get("tag") or ""),
            classes=frozenset(probe.get("classes") or ()),
            dom_path=str(probe.get("path") or ""),
        )


BuildFn = Callable[[ElementHandle, NodeInfo], Awaitable[Optional[CandidateField]]]
FillFn = Callable[[ElementHandle, str], Awaitable[bool]]


@dataclass(slots=True, frozen=True)
class AdapterDescriptor:
    """A custom widget adapter.

    ``matches`` only looks at the node's tag and classes so it stays cheap;
    ``build_field`` probes the node; ``fill`` drives the widget and returns
    whether the value was applied.
    """

    name: str
    selector: str
    matches: Callable[[NodeInfo], bool]
    build_field: BuildFn
    fill: FillFn


async def build_adapter_field(
    node: ElementHandle,
    adapter_name: str,
    field_type: FieldType = FieldType.UNKNOWN,
    script: str = BASE_PROBE_SCRIPT,
) -> Optional[CandidateField]:
    probe = await node.evaluate(script)
    if not isinstance(probe, dict):
        return None
    field = build_native_field(node, probe, order=0)
    field.adapter_name = adapter_name
    field.field_type = field_type
    field.category = infer_category_from_type(field_type)
    return field


async def set_native_value(handle: ElementHandle, value: str) -> bool:
    """Assign through the prototype value setter and fire input/change."""
    return bool(await handle.evaluate(SET_VALUE_SCRIPT, value))


async def simulate_click(handle: ElementHandle) -> None:
    await handle.evaluate(CLICK_SCRIPT, None)


async def wait_for_element(
    handle: ElementHandle, selector: str, timeout_ms: int = OVERLAY_TIMEOUT_MS
) -> Optional[ElementHandle]:
    """Wait for ``selector`` in the handle's frame; ``None`` once the budget is spent."""
    frame = await handle.owner_frame()
    if frame is None:
        return None
    try:
        return await frame.wait_for_selector(selector, timeout=timeout_ms, state="visible")
    except PlaywrightTimeoutError:
        LOGGER.debug("Timed out after %sms waiting for %s", timeout_ms, selector)
        return None


__all__ = [
    "OVERLAY_TIMEOUT_MS",
    "IDENTITY_SCRIPT",
    "WIDGET_HELPERS",
    "BASE_PROBE_SCRIPT",
    "widget_probe_script",
    "widget_action_script",
    "NodeInfo",
    "AdapterDescriptor",
    "build_adapter_field",
    "set_native_value",
    "simulate_click",
    "wait_for_element",
]

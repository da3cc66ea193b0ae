"""Native control discovery: probe, filter and build bare candidate fields."""

from __future__ import annotations

import logging
from typing import AsyncIterator, Dict, List, Optional, Set

from playwright.async_api import ElementHandle, Page

from .form_models import CandidateField, OptionMetadata
from .pipeline import DetectionPipeline, get_active_pipeline
from .signals import build_signals

FIELD_QUERY = "input, select, textarea"
NATIVE_TAGS = {"input", "select", "textarea"}
IGNORED_INPUT_TYPES = {"hidden", "submit", "button", "image", "reset", "file"}
CUSTOM_WIDGET_CONTAINERS = (
    ".ant-select, [class*='react-select'], .MuiSelect-root, [class*='MuiAutocomplete']"
)
HIDDEN_ACCESSIBLE_SELECT = "select.select2-hidden-accessible"
HTML_SNIPPET_LIMIT = 500

# Shared in-page helpers. ``domPath`` walks to <html>; ``cssSelector`` stops at
# the nearest ancestor carrying an id (or <body>).
DOM_HELPERS = """
  const clean = (text) => (text || '').replace(/\\s+/g, ' ').trim();
  const step = (node) => {
    const tag = node.tagName.toLowerCase();
    const parent = node.parentElement;
    if (!parent) return tag;
    const same = Array.from(parent.children).filter((c) => c.tagName === node.tagName);
    return same.length > 1 ? `${tag}:nth-of-type(${same.indexOf(node) + 1})` : tag;
  };
  const domPath = (node) => {
    const parts = [];
    while (node && node.nodeType === 1) {
      parts.unshift(step(node));
      node = node.parentElement;
    }
    return parts.join(' > ');
  };
  const cssSelector = (node) => {
    if (node.id) return `#${CSS.escape(node.id)}`;
    const parts = [];
    while (node && node.nodeType === 1) {
      if (node === document.body) { parts.unshift('body'); break; }
      if (parts.length && node.id) { parts.unshift(`#${CSS.escape(node.id)}`); break; }
      parts.unshift(step(node));
      node = node.parentElement;
    }
    return parts.join(' > ');
  };
  const snippet = (node, limit) => (node && node.outerHTML ? node.outerHTML.slice(0, limit) : null);
  const isVisible = (node) => {
    const rect = node.getBoundingClientRect();
    return rect.width > 0 || rect.height > 0;
  };
"""

FIELD_PROBE_SCRIPT = (
    "(el) => {"
    + DOM_HELPERS
    + """
  const labelFor = (el) => {
    if (el.id) {
      const byFor = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
      if (byFor && clean(byFor.textContent)) return clean(byFor.textContent);
    }
    const parentLabel = el.closest('label');
    if (parentLabel && clean(parentLabel.textContent)) return clean(parentLabel.textContent);
    const labelledBy = el.getAttribute('aria-labelledby');
    if (labelledBy) {
      const text = clean(labelledBy.split(/\\s+/)
        .map((id) => document.getElementById(id))
        .filter(Boolean)
        .map((node) => node.textContent)
        .join(' '));
      if (text) return text;
    }
    const aria = clean(el.getAttribute('aria-label'));
    if (aria) return aria;
    const fieldset = el.closest('fieldset');
    const legend = fieldset ? fieldset.querySelector('legend') : null;
    if (legend && clean(legend.textContent)) return clean(legend.textContent);
    const group = el.closest('.form-group, .form-item, .field, .input-group, .mb-3');
    const groupLabel = group ? group.querySelector('label') : null;
    if (groupLabel && clean(groupLabel.textContent)) return clean(groupLabel.textContent);
    let prev = el.previousElementSibling;
    while (prev) {
      if (prev.tagName === 'LABEL' || clean(prev.textContent)) {
        const text = clean(prev.textContent);
        if (text && text.length <= 80) return text;
        break;
      }
      prev = prev.previousElementSibling;
    }
    const title = clean(el.getAttribute('title'));
    return title || null;
  };
  const tag = el.tagName.toLowerCase();
  // el.type normalises missing or unknown input types to "text"
  const type = (tag === 'input' ? el.type || 'text' : el.getAttribute('type') || '').toLowerCase();
  const options = [];
  if (tag === 'select') {
    for (const opt of Array.from(el.options || [])) {
      options.push({ label: clean(opt.textContent), value: opt.value });
    }
  } else if ((type === 'radio' || type === 'checkbox') && el.name) {
    const group = document.querySelectorAll(`input[type="${type}"][name="${CSS.escape(el.name)}"]`);
    for (const item of Array.from(group)) {
      const text = item.labels && item.labels.length ? clean(item.labels[0].textContent) : '';
      options.push({ label: text || item.value, value: item.value });
    }
  }
  const container = el.closest('.form-group, .form-item, .ant-form-item, fieldset, form') || el.parentElement;
  const maxLength = el.maxLength !== undefined && el.maxLength >= 0 ? el.maxLength : null;
  const minLength = el.minLength !== undefined && el.minLength >= 0 ? el.minLength : null;
  return {
    tag,
    type,
    name: el.getAttribute('name'),
    id: el.id || null,
    placeholder: el.getAttribute('placeholder'),
    autocomplete: el.getAttribute('autocomplete'),
    label: labelFor(el),
    required: !!el.required || el.getAttribute('aria-required') === 'true',
    disabled: !!el.disabled,
    visible: isVisible(el),
    inCustomWidget: !!el.closest("%(containers)s") || el.matches("%(hidden_select)s"),
    selector: cssSelector(el),
    path: domPath(el),
    pattern: el.getAttribute('pattern'),
    maxLength,
    minLength,
    options,
    html: snippet(el, %(limit)d),
    contextHtml: snippet(container, %(limit)d),
  };
}"""
    % {
        "containers": CUSTOM_WIDGET_CONTAINERS,
        "hidden_select": HIDDEN_ACCESSIBLE_SELECT,
        "limit": HTML_SNIPPET_LIMIT,
    }
)


def is_fillable(probe: Dict[str, object]) -> bool:
    """Apply the native collector filters to a probe dict."""
    tag = str(probe.get("tag") or "").lower()
    if tag not in NATIVE_TAGS:
        return False
    if tag == "input" and str(probe.get("type") or "").lower() in IGNORED_INPUT_TYPES:
        return False
    if probe.get("disabled"):
        return False
    if not probe.get("visible"):
        return False
    if probe.get("inCustomWidget"):
        return False
    return True


def _optional_int(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def build_native_field(
    handle: Optional[ElementHandle], probe: Dict[str, object], order: int
) -> CandidateField:
    options = [
        OptionMetadata(label=str(opt.get("label") or ""), value=str(opt.get("value") or ""))
        for opt in probe.get("options") or []
        if isinstance(opt, dict)
    ]
    field = CandidateField(
        element=handle,
        selector=str(probe.get("selector") or ""),
        dom_path=str(probe.get("path") or ""),
        tag=str(probe.get("tag") or "input"),
        input_type=probe.get("type") or None,
        label=probe.get("label") or None,
        name=probe.get("name") or None,
        identifier=probe.get("id") or None,
        placeholder=probe.get("placeholder") or None,
        autocomplete=probe.get("autocomplete") or None,
        required=bool(probe.get("required")),
        options=options,
        pattern=probe.get("pattern") or None,
        max_length=_optional_int(probe.get("maxLength")),
        min_length=_optional_int(probe.get("minLength")),
        html_snippet=probe.get("html") or None,
        context_html=probe.get("contextHtml") or None,
        order=order,
    )
    field.signal_text = build_signals(field)
    return field


async def probe_element(
    handle: ElementHandle, script: str, logger: logging.Logger
) -> Optional[Dict[str, object]]:
    try:
        data = await handle.evaluate(script)
    except Exception as exc:  # noqa: BLE001
        logger.debug("Probe failed on element: %s", exc)
        return None
    return data if isinstance(data, dict) else None


async def collect_native_fields(
    page: Page, logger: Optional[logging.Logger] = None
) -> List[CandidateField]:
    """Bare fields for every fillable native control, in document order."""
    logger = logger or logging.getLogger(__name__)
    handles = await page.query_selector_all(FIELD_QUERY)
    fields: List[CandidateField] = []
    seen: Set[str] = set()
    for handle in handles:
        probe = await probe_element(handle, FIELD_PROBE_SCRIPT, logger)
        if not probe or not is_fillable(probe):
            continue
        field = build_native_field(handle, probe, order=len(fields))
        if field.dom_path in seen:
            continue
        seen.add(field.dom_path)
        fields.append(field)
    logger.debug("Collected %s native fields from %s controls", len(fields), len(handles))
    return fields


async def scan_native_fields(
    page: Page,
    pipeline: Optional[DetectionPipeline] = None,
    logger: Optional[logging.Logger] = None,
) -> List[CandidateField]:
    """Collect and classify without the async-only strategies."""
    pipeline = pipeline or get_active_pipeline(logger)
    fields = await collect_native_fields(page, logger)
    for field in fields:
        pipeline.classify(field)
    return fields


async def stream_native_fields(
    page: Page,
    pipeline: Optional[DetectionPipeline] = None,
    logger: Optional[logging.Logger] = None,
) -> AsyncIterator[CandidateField]:
    """Yield each field as soon as the full chain has classified it."""
    pipeline = pipeline or get_active_pipeline(logger)
    yielded: Set[str] = set()
    for field in await collect_native_fields(page, logger):
        if field.dom_path in yielded:
            continue
        yielded.add(field.dom_path)
        await pipeline.classify_async(field)
        yield field


async def detect_native_fields_async(
    page: Page,
    pipeline: Optional[DetectionPipeline] = None,
    logger: Optional[logging.Logger] = None,
) -> List[CandidateField]:
    return [field async for field in stream_native_fields(page, pipeline, logger)]


__all__ = [
    "FIELD_QUERY",
    "IGNORED_INPUT_TYPES",
    "CUSTOM_WIDGET_CONTAINERS",
    "DOM_HELPERS",
    "FIELD_PROBE_SCRIPT",
    "is_fillable",
    "build_native_field",
    "probe_element",
    "collect_native_fields",
    "scan_native_fields",
    "stream_native_fields",
    "detect_native_fields_async",
]

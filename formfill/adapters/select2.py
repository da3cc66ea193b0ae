"""Adapter for Select2 enhanced ``<select>`` widgets."""

from __future__ import annotations

from typing import Optional

from playwright.async_api import ElementHandle

from ..form_models import CandidateField, FieldType
from .base import (
    AdapterDescriptor,
    NodeInfo,
    build_adapter_field,
    widget_action_script,
    widget_probe_script,
)

ORIGINAL_SELECT_JS = """
  const originalSelect = (wrapper) => {
    const prev = wrapper.previousElementSibling;
    if (prev && prev.tagName === 'SELECT') return prev;
    const parent = wrapper.parentElement;
    if (parent) {
      const select = parent.querySelector('select.select2-hidden-accessible, select[data-select2-id]');
      if (select) return select;
    }
    const outer = wrapper.closest('.select2-container');
    const host = outer ? outer.parentElement : null;
    return host ? host.querySelector('select') : null;
  };
"""

SELECT2_PROBE_SCRIPT = widget_probe_script(
    ORIGINAL_SELECT_JS
    + """
  const select = originalSelect(el);
  if (!select) return {};
  const options = Array.from(select.options)
    .filter((opt) => opt.value !== '')
    .map((opt) => ({ label: clean(opt.text), value: opt.value }));
  return {
    label: plainLabel(select) || plainLabel(el),
    name: select.getAttribute('name'),
    id: select.id || el.id || null,
    required: !!select.required,
    options,
  };"""
)

SELECT2_FILL_SCRIPT = widget_action_script(
    ORIGINAL_SELECT_JS
    + """
  const select = originalSelect(el);
  if (!select) return false;
  const options = Array.from(select.options);
  const byValue = options.find((opt) => opt.value === value);
  const valid = options.filter((opt) => opt.value);
  const chosen = byValue || pickByText(valid, value, (opt) => opt.text || '');
  if (!chosen) return false;
  select.value = chosen.value;
  select.dispatchEvent(new Event('change', { bubbles: true }));
  if (typeof window.jQuery === 'function') {
    try {
      window.jQuery(select).trigger('change.select2');
    } catch (err) {
      console.debug('select2 change trigger failed', err);
    }
  }
  return true;"""
)


def _matches(info: NodeInfo) -> bool:
    return info.has_class("select2-container") or info.has_class("select2")


async def _build_field(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "select2", FieldType.UNKNOWN, SELECT2_PROBE_SCRIPT)


async def _fill(node: ElementHandle, value: str) -> bool:
    return bool(await node.evaluate(SELECT2_FILL_SCRIPT, value))


select2_adapter = AdapterDescriptor(
    name="select2",
    selector=".select2-container, span.select2",
    matches=_matches,
    build_field=_build_field,
    fill=_fill,
)


__all__ = ["select2_adapter"]

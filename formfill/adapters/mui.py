"""Adapters for Material UI select and autocomplete widgets."""

from __future__ import annotations

from typing import Optional

from playwright.async_api import ElementHandle

from ..form_models import CandidateField, FieldType
from .base import (
    AdapterDescriptor,
    NodeInfo,
    build_adapter_field,
    set_native_value,
    wait_for_element,
    widget_action_script,
)

SELECT_OPTION_SELECTOR = "ul[role='listbox'] [role='option']"
AUTOCOMPLETE_OPTION_SELECTOR = ".MuiAutocomplete-popper [role='option']"

OPEN_SELECT_SCRIPT = widget_action_script(
    """
  const trigger = el.querySelector(".MuiSelect-select, [role='button'], [role='combobox']") || el;
  trigger.dispatchEvent(new MouseEvent('mousedown', { bubbles: true, cancelable: true, view: window, button: 0 }));
  return true;"""
)


def _pick_script(option_selector: str) -> str:
    return widget_action_script(
        """
  const items = Array.from(document.querySelectorAll("%s"))
    .filter((item) => item.getAttribute('aria-disabled') !== 'true');
  const chosen = pickByText(items, value, (item) => clean(item.textContent));
  if (!chosen) return false;
  simulateClick(chosen);
  return true;"""
        % option_selector
    )


PICK_SELECT_OPTION_SCRIPT = _pick_script(SELECT_OPTION_SELECTOR)
PICK_AUTOCOMPLETE_OPTION_SCRIPT = _pick_script(AUTOCOMPLETE_OPTION_SELECTOR)


def _select_matches(info: NodeInfo) -> bool:
    return info.has_class("MuiSelect-root") and not info.has_class("Mui-disabled")


async def _select_build(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "mui-select", FieldType.SELECT)


async def _select_fill(node: ElementHandle, value: str) -> bool:
    await node.evaluate(OPEN_SELECT_SCRIPT, None)
    if await wait_for_element(node, SELECT_OPTION_SELECTOR) is None:
        return False
    return bool(await node.evaluate(PICK_SELECT_OPTION_SCRIPT, value))


mui_select_adapter = AdapterDescriptor(
    name="mui-select",
    selector=".MuiSelect-root",
    matches=_select_matches,
    build_field=_select_build,
    fill=_select_fill,
)


def _autocomplete_matches(info: NodeInfo) -> bool:
    return info.has_class("MuiAutocomplete-root") and not info.has_class("Mui-disabled")


async def _autocomplete_build(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "mui-autocomplete")


async def _autocomplete_fill(node: ElementHandle, value: str) -> bool:
    input_handle = await node.query_selector("input")
    if input_handle is None:
        return False
    if not await set_native_value(input_handle, value):
        return False
    if await wait_for_element(node, AUTOCOMPLETE_OPTION_SELECTOR) is None:
        # free-text autocompletes keep the typed value
        return True
    return bool(await node.evaluate(PICK_AUTOCOMPLETE_OPTION_SCRIPT, value))


mui_autocomplete_adapter = AdapterDescriptor(
    name="mui-autocomplete",
    selector=".MuiAutocomplete-root",
    matches=_autocomplete_matches,
    build_field=_autocomplete_build,
    fill=_autocomplete_fill,
)


__all__ = ["mui_select_adapter", "mui_autocomplete_adapter"]

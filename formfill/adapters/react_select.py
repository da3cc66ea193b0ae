"""Adapter for react-select comboboxes."""

from __future__ import annotations

from typing import Optional

from playwright.async_api import ElementHandle

from ..form_models import CandidateField, FieldType
from .base import (
    AdapterDescriptor,
    NodeInfo,
    build_adapter_field,
    simulate_click,
    wait_for_element,
    widget_action_script,
)

MENU_OPTION_SELECTOR = "[class*='react-select__option'], [class*='-option'][id*='react-select']"
CONTAINER_SELECTOR = (
    "[class*='react-select'], :has(> [class*='react-select__control'])"
)

PICK_OPTION_SCRIPT = widget_action_script(
    """
  const items = Array.from(document.querySelectorAll("%s"))
    .filter((item) => !item.getAttribute('aria-disabled') || item.getAttribute('aria-disabled') === 'false');
  const chosen = pickByText(items, value, (item) => clean(item.textContent));
  if (!chosen) return false;
  simulateClick(chosen);
  return true;"""
    % MENU_OPTION_SELECTOR
)


def _matches(info: NodeInfo) -> bool:
    if any("--is-disabled" in name for name in info.classes):
        return False
    prefixed = [name for name in info.classes if "react-select" in name]
    if prefixed:
        return any("__" not in name for name in prefixed)
    # classNamePrefix-only layout: the emotion-classed parent of a prefixed control
    return True


async def _build_field(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "react-select", FieldType.SELECT)


async def _fill(node: ElementHandle, value: str) -> bool:
    control = await node.query_selector("[class*='__control']")
    if control is None:
        return False
    await simulate_click(control)
    if await wait_for_element(node, MENU_OPTION_SELECTOR) is None:
        return False
    return bool(await node.evaluate(PICK_OPTION_SCRIPT, value))


react_select_adapter = AdapterDescriptor(
    name="react-select",
    selector=CONTAINER_SELECTOR,
    matches=_matches,
    build_field=_build_field,
    fill=_fill,
)


__all__ = ["react_select_adapter"]

"""Adapters for Ant Design form widgets."""

from __future__ import annotations

import logging
from typing import Optional

from playwright.async_api import ElementHandle

from ..form_models import CandidateField, FieldType
from .base import (
    AdapterDescriptor,
    NodeInfo,
    build_adapter_field,
    set_native_value,
    simulate_click,
    wait_for_element,
    widget_action_script,
    widget_probe_script,
)

LOGGER = logging.getLogger(__name__)

CASCADER_MAX_LEVELS = 5
TRUTHY_VALUES = {"true", "1", "on", "yes", "sim"}

SELECT_PROBE_SCRIPT = widget_probe_script(
    """
  const combo = el.querySelector("[role='combobox']");
  const listId = combo ? combo.getAttribute('aria-controls') : null;
  const list = listId ? document.getElementById(listId) : null;
  if (!list) return {};
  const options = Array.from(list.querySelectorAll("[role='option']"))
    .map((item) => ({ label: clean(item.textContent), value: item.getAttribute('title') || clean(item.textContent) }))
    .filter((opt) => opt.value);
  return { options };"""
)

RADIO_PROBE_SCRIPT = widget_probe_script(
    """
  const options = Array.from(el.querySelectorAll('.ant-radio-wrapper, .ant-radio-button-wrapper'))
    .map((label) => {
      const input = label.querySelector("input[type='radio']");
      const text = clean(label.textContent);
      return { label: text, value: (input && input.value) || text };
    })
    .filter((opt) => opt.label);
  return { options, type: null };"""
)

CHECKBOX_PROBE_SCRIPT = widget_probe_script(
    """
  const options = Array.from(el.querySelectorAll('.ant-checkbox-wrapper'))
    .map((label) => {
      const input = label.querySelector("input[type='checkbox']");
      const text = clean(label.textContent);
      return { label: text, value: (input && input.value) || text };
    })
    .filter((opt) => opt.label);
  return { options, type: null };"""
)

SLIDER_PROBE_SCRIPT = widget_probe_script(
    """
  const handle = el.querySelector('.ant-slider-handle');
  const min = handle ? handle.getAttribute('aria-valuemin') || '0' : '0';
  const max = handle ? handle.getAttribute('aria-valuemax') || '100' : '100';
  return { placeholder: `${min}-${max}` };"""
)

RATE_PROBE_SCRIPT = widget_probe_script(
    """
  const total = el.querySelectorAll('.ant-rate-star').length;
  return { placeholder: `1-${total}` };"""
)

SELECT_OPTION_SCRIPT = widget_action_script(
    """
  const search = el.querySelector('.ant-select-selection-search-input');
  if (search && value) setNativeValue(search, value);
  const dropdowns = Array.from(document.querySelectorAll('.ant-select-dropdown:not(.ant-select-dropdown-hidden)'));
  for (const dropdown of dropdowns) {
    const items = Array.from(dropdown.querySelectorAll('.ant-select-item-option:not(.ant-select-item-option-disabled)'));
    const chosen = pickByText(items, value, (item) => item.getAttribute('title') || clean(item.textContent));
    if (chosen) {
      simulateClick(chosen);
      return true;
    }
  }
  return false;"""
)

CASCADER_LEVEL_SCRIPT = widget_action_script(
    """
  const menus = el.querySelectorAll('.ant-cascader-menu');
  const menu = menus[Number(value)];
  if (!menu) return null;
  const items = Array.from(menu.querySelectorAll('.ant-cascader-menu-item:not(.ant-cascader-menu-item-disabled)'));
  if (!items.length) return null;
  const item = items[0];
  simulateClick(item);
  return !item.querySelector('.ant-cascader-menu-item-expand-icon') || item.classList.contains('ant-cascader-menu-item-leaf');"""
)

TREE_NODE_SCRIPT = widget_action_script(
    """
  const nodes = Array.from(el.querySelectorAll('.ant-select-tree-treenode:not(.ant-select-tree-treenode-disabled)'));
  const chosen = pickByText(nodes, value, (node) => clean(node.textContent));
  if (!chosen) return false;
  simulateClick(chosen.querySelector('.ant-select-tree-title') || chosen);
  return true;"""
)

DATEPICKER_FILL_SCRIPT = widget_action_script(
    """
  const input = el.querySelector('input');
  if (!input) return false;
  simulateClick(input);
  setNativeValue(input, value);
  input.dispatchEvent(new KeyboardEvent('keydown', { key: 'Enter', bubbles: true }));
  return true;"""
)

RADIO_FILL_SCRIPT = widget_action_script(
    """
  const labels = Array.from(el.querySelectorAll('.ant-radio-wrapper, .ant-radio-button-wrapper'));
  const byValue = labels.find((label) => {
    const input = label.querySelector("input[type='radio']");
    return input && input.value === value;
  });
  const chosen = byValue || pickByText(labels, value, (label) => clean(label.textContent));
  if (!chosen) return false;
  simulateClick(chosen);
  return true;"""
)

CHECKBOX_FILL_SCRIPT = widget_action_script(
    """
  const labels = Array.from(el.querySelectorAll('.ant-checkbox-wrapper'));
  const byValue = labels.find((label) => {
    const input = label.querySelector("input[type='checkbox']");
    return input && input.value === value;
  });
  const chosen = byValue || pickByText(labels, value, (label) => clean(label.textContent));
  if (!chosen) return false;
  if (!chosen.classList.contains('ant-checkbox-wrapper-checked')) simulateClick(chosen);
  return true;"""
)

SWITCH_FILL_SCRIPT = widget_action_script(
    """
  const isOn = el.classList.contains('ant-switch-checked');
  if (value !== isOn) simulateClick(el);
  return true;"""
)

SLIDER_FILL_SCRIPT = widget_action_script(
    """
  const handle = el.querySelector('.ant-slider-handle');
  if (!handle) return false;
  const min = parseFloat(handle.getAttribute('aria-valuemin') || '0');
  const max = parseFloat(handle.getAttribute('aria-valuemax') || '100');
  let target = parseFloat(value);
  if (Number.isNaN(target)) target = (min + max) / 2;
  target = Math.max(min, Math.min(max, target));
  const ratio = max > min ? (target - min) / (max - min) : 0;
  const rail = el.querySelector('.ant-slider-rail') || el;
  const rect = rail.getBoundingClientRect();
  const clientX = rect.left + rect.width * ratio;
  const clientY = rect.top + rect.height / 2;
  const opts = { bubbles: true, cancelable: true, clientX, clientY, view: window };
  rail.dispatchEvent(new MouseEvent('mousedown', opts));
  document.dispatchEvent(new MouseEvent('mousemove', opts));
  document.dispatchEvent(new MouseEvent('mouseup', opts));
  handle.setAttribute('aria-valuenow', String(Math.round(target)));
  return true;"""
)

RATE_FILL_SCRIPT = widget_action_script(
    """
  const stars = Array.from(el.querySelectorAll('.ant-rate-star'));
  if (!stars.length) return false;
  let target = parseInt(value, 10);
  if (Number.isNaN(target) || target < 1) target = Math.min(3, stars.length);
  target = Math.min(target, stars.length);
  const star = stars[target - 1];
  simulateClick(star.querySelector('.ant-rate-star-second') || star);
  return true;"""
)


def _not_disabled(info: NodeInfo, base: str) -> bool:
    return info.has_class(base) and not info.has_class(f"{base}-disabled")


async def _open_select(node: ElementHandle) -> bool:
    trigger = await node.query_selector(".ant-select-selector")
    if trigger is None:
        return False
    await simulate_click(trigger)
    return True


# cascader


def _cascader_matches(info: NodeInfo) -> bool:
    return info.has_class("ant-cascader") and _not_disabled(info, "ant-select")


async def _cascader_build(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "antd-cascader", FieldType.SELECT)


async def _cascader_fill(node: ElementHandle, value: str) -> bool:
    if not await _open_select(node):
        return False
    dropdown = await wait_for_element(node, ".ant-cascader-dropdown")
    if dropdown is None:
        return False
    for level in range(CASCADER_MAX_LEVELS):
        is_leaf = await dropdown.evaluate(CASCADER_LEVEL_SCRIPT, level)
        if is_leaf is None:
            return level > 0
        if is_leaf:
            return True
    return True


antd_cascader_adapter = AdapterDescriptor(
    name="antd-cascader",
    selector=".ant-cascader:not(.ant-select-disabled)",
    matches=_cascader_matches,
    build_field=_cascader_build,
    fill=_cascader_fill,
)


# tree select


def _tree_select_matches(info: NodeInfo) -> bool:
    return info.has_class("ant-tree-select") and _not_disabled(info, "ant-select")


async def _tree_select_build(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "antd-tree-select", FieldType.SELECT)


async def _tree_select_fill(node: ElementHandle, value: str) -> bool:
    if not await _open_select(node):
        LOGGER.debug("Tree select without .ant-select-selector")
        return False
    dropdown = await wait_for_element(node, ".ant-tree-select-dropdown")
    if dropdown is None:
        return False
    return bool(await dropdown.evaluate(TREE_NODE_SCRIPT, value))


antd_tree_select_adapter = AdapterDescriptor(
    name="antd-tree-select",
    selector=".ant-tree-select:not(.ant-select-disabled)",
    matches=_tree_select_matches,
    build_field=_tree_select_build,
    fill=_tree_select_fill,
)


# select


def _select_matches(info: NodeInfo) -> bool:
    return _not_disabled(info, "ant-select") and not info.has_class("ant-select-auto-complete")


async def _select_build(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "antd-select", FieldType.SELECT, SELECT_PROBE_SCRIPT)


async def _select_fill(node: ElementHandle, value: str) -> bool:
    if not await _open_select(node):
        return False
    dropdown = await wait_for_element(
        node, ".ant-select-dropdown:not(.ant-select-dropdown-hidden)"
    )
    if dropdown is None:
        return False
    return bool(await node.evaluate(SELECT_OPTION_SCRIPT, value))


antd_select_adapter = AdapterDescriptor(
    name="antd-select",
    selector=".ant-select",
    matches=_select_matches,
    build_field=_select_build,
    fill=_select_fill,
)


# auto complete


def _auto_complete_matches(info: NodeInfo) -> bool:
    return info.has_class("ant-select-auto-complete") and not info.has_class(
        "ant-select-disabled"
    )


async def _auto_complete_build(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "antd-auto-complete")


async def _auto_complete_fill(node: ElementHandle, value: str) -> bool:
    search = await node.query_selector(".ant-select-selection-search-input")
    if search is None:
        return False
    return await set_native_value(search, value)


antd_auto_complete_adapter = AdapterDescriptor(
    name="antd-auto-complete",
    selector=".ant-select-auto-complete:not(.ant-select-disabled)",
    matches=_auto_complete_matches,
    build_field=_auto_complete_build,
    fill=_auto_complete_fill,
)


# date picker


def _datepicker_matches(info: NodeInfo) -> bool:
    return _not_disabled(info, "ant-picker")


async def _datepicker_build(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "antd-datepicker")


async def _datepicker_fill(node: ElementHandle, value: str) -> bool:
    return bool(await node.evaluate(DATEPICKER_FILL_SCRIPT, value))


antd_datepicker_adapter = AdapterDescriptor(
    name="antd-datepicker",
    selector=".ant-picker",
    matches=_datepicker_matches,
    build_field=_datepicker_build,
    fill=_datepicker_fill,
)


# input


def _input_matches(info: NodeInfo) -> bool:
    return (
        _not_disabled(info, "ant-input-affix-wrapper")
        or _not_disabled(info, "ant-input-number")
        or _not_disabled(info, "ant-mentions")
    ) and not info.has_class("ant-input-disabled")


async def _input_build(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "antd-input")


async def _input_fill(node: ElementHandle, value: str) -> bool:
    return await set_native_value(node, value)


antd_input_adapter = AdapterDescriptor(
    name="antd-input",
    selector=".ant-input-affix-wrapper, .ant-input-number, .ant-mentions",
    matches=_input_matches,
    build_field=_input_build,
    fill=_input_fill,
)


# radio group


def _radio_matches(info: NodeInfo) -> bool:
    return info.has_class("ant-radio-group")


async def _radio_build(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "antd-radio", FieldType.RADIO, RADIO_PROBE_SCRIPT)


async def _radio_fill(node: ElementHandle, value: str) -> bool:
    return bool(await node.evaluate(RADIO_FILL_SCRIPT, value))


antd_radio_adapter = AdapterDescriptor(
    name="antd-radio",
    selector=".ant-radio-group",
    matches=_radio_matches,
    build_field=_radio_build,
    fill=_radio_fill,
)


# checkbox group


def _checkbox_matches(info: NodeInfo) -> bool:
    return info.has_class("ant-checkbox-group")


async def _checkbox_build(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "antd-checkbox", FieldType.UNKNOWN, CHECKBOX_PROBE_SCRIPT)


async def _checkbox_fill(node: ElementHandle, value: str) -> bool:
    return bool(await node.evaluate(CHECKBOX_FILL_SCRIPT, value))


antd_checkbox_adapter = AdapterDescriptor(
    name="antd-checkbox",
    selector=".ant-checkbox-group",
    matches=_checkbox_matches,
    build_field=_checkbox_build,
    fill=_checkbox_fill,
)


# switch


def _switch_matches(info: NodeInfo) -> bool:
    return _not_disabled(info, "ant-switch")


async def _switch_build(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "antd-switch")


async def _switch_fill(node: ElementHandle, value: str) -> bool:
    wanted = str(value).strip().lower() in TRUTHY_VALUES
    return bool(await node.evaluate(SWITCH_FILL_SCRIPT, wanted))


antd_switch_adapter = AdapterDescriptor(
    name="antd-switch",
    selector="button.ant-switch",
    matches=_switch_matches,
    build_field=_switch_build,
    fill=_switch_fill,
)


# slider


def _slider_matches(info: NodeInfo) -> bool:
    return _not_disabled(info, "ant-slider")


async def _slider_build(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "antd-slider", FieldType.NUMBER, SLIDER_PROBE_SCRIPT)


async def _slider_fill(node: ElementHandle, value: str) -> bool:
    return bool(await node.evaluate(SLIDER_FILL_SCRIPT, value))


antd_slider_adapter = AdapterDescriptor(
    name="antd-slider",
    selector=".ant-slider",
    matches=_slider_matches,
    build_field=_slider_build,
    fill=_slider_fill,
)


# rate


def _rate_matches(info: NodeInfo) -> bool:
    return _not_disabled(info, "ant-rate")


async def _rate_build(node: ElementHandle, info: NodeInfo) -> Optional[CandidateField]:
    return await build_adapter_field(node, "antd-rate", FieldType.NUMBER, RATE_PROBE_SCRIPT)


async def _rate_fill(node: ElementHandle, value: str) -> bool:
    return bool(await node.evaluate(RATE_FILL_SCRIPT, value))


antd_rate_adapter = AdapterDescriptor(
    name="antd-rate",
    selector="ul.ant-rate",
    matches=_rate_matches,
    build_field=_rate_build,
    fill=_rate_fill,
)


ANTD_ADAPTERS = [
    antd_cascader_adapter,
    antd_tree_select_adapter,
    antd_select_adapter,
    antd_auto_complete_adapter,
    antd_datepicker_adapter,
    antd_input_adapter,
    antd_radio_adapter,
    antd_checkbox_adapter,
    antd_switch_adapter,
    antd_slider_adapter,
    antd_rate_adapter,
]


__all__ = [
    "ANTD_ADAPTERS",
    "antd_cascader_adapter",
    "antd_tree_select_adapter",
    "antd_select_adapter",
    "antd_auto_complete_adapter",
    "antd_datepicker_adapter",
    "antd_input_adapter",
    "antd_radio_adapter",
    "antd_checkbox_adapter",
    "antd_switch_adapter",
    "antd_slider_adapter",
    "antd_rate_adapter",
]
